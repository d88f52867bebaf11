"""Wire-level values, server errors and the response parser."""

from __future__ import annotations

import io
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, BinaryIO, Union

__all__ = [
    "ErrorKind",
    "RedisError",
    "Status",
    "Okay",
    "Parser",
    "parse_redis_value",
    "as_str",
    "as_int",
    "as_float",
    "as_list",
    "as_map",
]


class ErrorKind(Enum):
    """Categories of failures reported by the server or by this client."""

    RESPONSE_ERROR = "response error"
    EXEC_ABORT_ERROR = "script execution aborted"
    BUSY_LOADING_ERROR = "busy loading"
    NO_SCRIPT_ERROR = "no script"
    MOVED = "key moved"
    ASK = "key moved (ask)"
    TRY_AGAIN = "try again"
    CLUSTER_DOWN = "cluster down"
    CROSS_SLOT = "cross-slot"
    MASTER_DOWN = "master down"
    READ_ONLY = "read-only"
    TYPE_ERROR = "type error"
    IO_ERROR = "I/O error"
    EXTENSION_ERROR = "extension error"


_SERVER_CODES = {
    "ERR": ErrorKind.RESPONSE_ERROR,
    "EXECABORT": ErrorKind.EXEC_ABORT_ERROR,
    "LOADING": ErrorKind.BUSY_LOADING_ERROR,
    "NOSCRIPT": ErrorKind.NO_SCRIPT_ERROR,
    "MOVED": ErrorKind.MOVED,
    "ASK": ErrorKind.ASK,
    "TRYAGAIN": ErrorKind.TRY_AGAIN,
    "CLUSTERDOWN": ErrorKind.CLUSTER_DOWN,
    "CROSSSLOT": ErrorKind.CROSS_SLOT,
    "MASTERDOWN": ErrorKind.MASTER_DOWN,
    "READONLY": ErrorKind.READ_ONLY,
}

_SERVER_ERROR_DESCRIPTION = "An error was signalled by the server"


class RedisError(Exception):
    """An error signalled by the server or raised while handling a response."""

    def __init__(
        self,
        kind: ErrorKind,
        description: str,
        detail: str | None = None,
        *,
        code: str | None = None,
    ) -> None:
        self.kind = kind
        self.description = description
        self.detail = detail
        self.code = code
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.code is not None:
            return f"{self.code}: {self.detail}" if self.detail else self.code
        if self.detail is not None:
            return f"{self.description}: {self.detail}"
        return self.description

    def __repr__(self) -> str:
        return (
            f"RedisError({self.kind!r}, {self.description!r}, "
            f"{self.detail!r}, code={self.code!r})"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RedisError):
            return NotImplemented
        return (self.kind, self.description, self.detail, self.code) == (
            other.kind,
            other.description,
            other.detail,
            other.code,
        )

    def __hash__(self) -> int:
        return hash((self.kind, self.description, self.detail, self.code))


@dataclass(frozen=True)
class Status:
    """A simple status reply other than ``OK``."""

    text: str


@dataclass(frozen=True)
class Okay:
    """The ``+OK`` status reply."""

    def __repr__(self) -> str:
        return "Okay()"


Value = Union[None, int, bytes, list, Status, Okay]


class _Incomplete(Exception):
    """More input is needed to finish the current value."""


class _ParseError(Exception):
    """The input does not follow the protocol."""


_INT_RE = re.compile(r"[+-]?[0-9]+")
_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1
_CRLF = b"\r\n"


def _read_line(buf: bytearray, pos: int) -> tuple[str, int]:
    end = buf.find(_CRLF, pos)
    if end < 0:
        raise _Incomplete
    try:
        text = bytes(buf[pos:end]).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise _ParseError(f"invalid utf-8 in line: {exc}") from None
    return text, end + 2


def _read_int(buf: bytearray, pos: int) -> tuple[int, int]:
    text, pos = _read_line(buf, pos)
    stripped = text.strip()
    if not _INT_RE.fullmatch(stripped):
        raise _ParseError("Expected integer, got garbage")
    number = int(stripped)
    if not _I64_MIN <= number <= _I64_MAX:
        raise _ParseError("Expected integer, got garbage")
    return number, pos


def _server_error(line: str) -> RedisError:
    code, sep, detail = line.partition(" ")
    rest = detail if sep else None
    kind = _SERVER_CODES.get(code)
    if kind is None:
        return RedisError(
            ErrorKind.EXTENSION_ERROR, _SERVER_ERROR_DESCRIPTION, rest, code=code
        )
    return RedisError(kind, _SERVER_ERROR_DESCRIPTION, rest)


def _parse(buf: bytearray, pos: int) -> tuple[Any, int]:
    """Parse one value at ``pos``; a server error is returned, not raised."""
    if pos >= len(buf):
        raise _Incomplete
    marker = buf[pos]
    pos += 1
    if marker == ord("+"):
        line, pos = _read_line(buf, pos)
        return (Okay() if line == "OK" else Status(line)), pos
    if marker == ord(":"):
        return _read_int(buf, pos)
    if marker == ord("$"):
        size, pos = _read_int(buf, pos)
        if size < 0:
            return None, pos
        end = pos + size
        trailer = bytes(buf[end : end + 2])
        if not _CRLF.startswith(trailer):
            raise _ParseError(f"Expected CRLF after bulk data, got {trailer!r}")
        if len(trailer) < 2:
            raise _Incomplete
        return bytes(buf[pos:end]), end + 2
    if marker == ord("*"):
        length, pos = _read_int(buf, pos)
        if length < 0:
            return None, pos
        items = []
        first_error = None
        for _ in range(length):
            item, pos = _parse(buf, pos)
            if isinstance(item, RedisError):
                first_error = first_error or item
            else:
                items.append(item)
        return (first_error if first_error is not None else items), pos
    if marker == ord("-"):
        line, pos = _read_line(buf, pos)
        return _server_error(line), pos
    raise _ParseError(f"Unexpected token {bytes([marker])!r}")


class Parser:
    """Parses server responses from a byte stream, one value per call.

    Bytes read past the end of a value are kept for the next call, so a
    single stream may carry any number of values.
    """

    _CHUNK = 8192

    def __init__(self) -> None:
        self._buffer = bytearray()

    def parse_value(self, reader: BinaryIO | bytes | bytearray) -> Value:
        """Read and return the next value; server errors are raised."""
        if isinstance(reader, (bytes, bytearray, memoryview)):
            reader = io.BytesIO(bytes(reader))
        read = getattr(reader, "read1", None) or reader.read
        while True:
            if self._buffer:
                try:
                    result, consumed = _parse(self._buffer, 0)
                except _Incomplete:
                    pass
                except _ParseError as exc:
                    self._buffer.clear()
                    raise RedisError(
                        ErrorKind.RESPONSE_ERROR, "parse error", str(exc)
                    ) from None
                else:
                    del self._buffer[:consumed]
                    if isinstance(result, RedisError):
                        raise result
                    return result
            chunk = read(self._CHUNK)
            if not chunk:
                raise RedisError(ErrorKind.IO_ERROR, "unexpected end of input")
            self._buffer += chunk


def parse_redis_value(data: bytes) -> Value:
    """Parse a single value from ``data``."""
    return Parser().parse_value(io.BytesIO(bytes(data)))


def _type_error(value: Any, detail: str) -> RedisError:
    return RedisError(
        ErrorKind.TYPE_ERROR,
        "Response was of incompatible type",
        f"{detail} (response was {value!r})",
    )


def _text_of(value: Any, what: str) -> str:
    if isinstance(value, Status):
        return value.text
    if isinstance(value, Okay):
        return "OK"
    if isinstance(value, (bytes, bytearray)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            raise _type_error(value, f"Invalid UTF-8 for {what}") from None
    raise _type_error(value, f"Response type not {what} compatible.")


def as_str(value: Value) -> str:
    """Convert a value to text."""
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return _text_of(value, "string")


def as_int(value: Value) -> int:
    """Convert a value to an integer."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = _text_of(value, "integer")
    if not _INT_RE.fullmatch(text):
        raise _type_error(value, "Could not convert from string.")
    return int(text)


def as_float(value: Value) -> float:
    """Convert a value to a float."""
    if isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    text = _text_of(value, "float")
    if "_" in text or text != text.strip():
        raise _type_error(value, "Could not convert from string.")
    try:
        return float(text)
    except ValueError:
        raise _type_error(value, "Could not convert from string.") from None


def as_list(value: Value) -> list:
    """Return the items of a multi-bulk value; nil is empty, a scalar is one item."""
    if value is None:
        return []
    if isinstance(value, list):
        return list(value)
    return [value]


def as_map(value: Value) -> dict:
    """Turn a flat key/value multi-bulk into a dict with text keys."""
    if value is None:
        return {}
    if not isinstance(value, list):
        raise _type_error(value, "Response type not hashmap compatible")
    if len(value) % 2:
        raise _type_error(value, "Response has an odd number of elements")
    pairs = iter(value)
    return {as_str(key): item for key, item in zip(pairs, pairs)}