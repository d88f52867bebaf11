"""Command building, wire encoding and pipelines of commands."""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from .protocol import ErrorKind, RedisError, Value

__all__ = [
    "ConnectionLike",
    "Cmd",
    "Pipeline",
    "cmd",
    "pipe",
    "to_redis_args",
    "pack_command",
]


class ConnectionLike(Protocol):
    """What a connection must offer to run commands and pipelines."""

    def req_packed_command(self, packed: bytes) -> Value:
        """Send one encoded command and return its reply."""

    def req_packed_commands(
        self, packed: bytes, offset: int, count: int
    ) -> list[Value]:
        """Send encoded commands, skip ``offset`` replies and return ``count``."""

    def supports_pipelining(self) -> bool:
        """Whether several commands may be sent in one go."""


def _format_float(number: float) -> bytes:
    if math.isfinite(number) and number.is_integer():
        return str(int(number)).encode()
    if math.isnan(number):
        return b"NaN"
    if math.isinf(number):
        return b"inf" if number > 0 else b"-inf"
    return repr(number).encode()


def to_redis_args(value: Any) -> list[bytes]:
    """Turn a Python value into the list of arguments it stands for.

    Objects with a ``to_redis_args`` method supply their own arguments;
    ``None`` contributes nothing; sequences and sets are flattened; mappings
    contribute their keys and values in turn.
    """
    encoder = getattr(value, "to_redis_args", None)
    if callable(encoder) and not isinstance(value, type):
        return list(encoder())
    if value is None:
        return []
    if isinstance(value, (bytes, bytearray, memoryview)):
        return [bytes(value)]
    if isinstance(value, str):
        return [value.encode("utf-8")]
    if isinstance(value, bool):
        return [b"1" if value else b"0"]
    if isinstance(value, int):
        return [str(value).encode()]
    if isinstance(value, float):
        return [_format_float(value)]
    if isinstance(value, Mapping):
        out: list[bytes] = []
        for key, item in value.items():
            out.extend(to_redis_args(key))
            out.extend(to_redis_args(item))
        return out
    if isinstance(value, (list, tuple, set, frozenset)):
        return [arg for item in value for arg in to_redis_args(item)]
    raise TypeError(f"cannot use {type(value).__name__} as a command argument")


def pack_command(args: list[bytes]) -> bytes:
    """Encode arguments as one request in the wire format."""
    parts = [b"*%d\r\n" % len(args)]
    for arg in args:
        parts.append(b"$%d\r\n" % len(arg))
        parts.append(bytes(arg))
        parts.append(b"\r\n")
    return b"".join(parts)


@dataclass
class Cmd:
    """A single command with its arguments."""

    args: list[bytes] = field(default_factory=list)

    def arg(self, arg: Any) -> Cmd:
        """Append the arguments that ``arg`` stands for."""
        self.args.extend(to_redis_args(arg))
        return self

    def packed(self) -> bytes:
        """Return the command encoded for the wire."""
        return pack_command(self.args)

    def query(self, con: ConnectionLike) -> Value:
        """Send the command and return the reply; server errors are raised."""
        return con.req_packed_command(self.packed())


def cmd(name: str) -> Cmd:
    """Start a command with the given name."""
    return Cmd().arg(name)


def _supports_pipelining(con: Any) -> bool:
    check = getattr(con, "supports_pipelining", None)
    return True if check is None else bool(check())


class Pipeline:
    """Several commands sent in one go, optionally inside MULTI/EXEC."""

    def __init__(self) -> None:
        self._commands: list[Cmd] = []
        self._transaction_mode = False
        self._ignored: set[int] = set()

    def atomic(self) -> Pipeline:
        """Wrap the pipeline in MULTI/EXEC when it is sent."""
        self._transaction_mode = True
        return self

    def packed_pipeline(self) -> bytes:
        """Return all commands encoded for the wire."""
        return self._encode(self._transaction_mode)

    def _encode(self, atomic: bool) -> bytes:
        body = b"".join(command.packed() for command in self._commands)
        if atomic:
            return cmd("MULTI").packed() + body + cmd("EXEC").packed()
        return body

    def add_command(self, command: Cmd) -> Pipeline:
        """Append a ready-made command."""
        self._commands.append(command)
        return self

    def cmd(self, name: str) -> Pipeline:
        """Start a new command; ``arg`` then adds to it."""
        return self.add_command(cmd(name))

    def commands(self) -> Iterator[Cmd]:
        """Iterate over the commands in the pipeline."""
        return iter(self._commands)

    def ignore(self) -> Pipeline:
        """Leave the reply of the last command out of the results."""
        if self._commands:
            self._ignored.add(len(self._commands) - 1)
        return self

    def arg(self, arg: Any) -> Pipeline:
        """Add an argument to the last started command."""
        if not self._commands:
            raise IndexError("No command on stack")
        self._commands[-1].arg(arg)
        return self

    def clear(self) -> None:
        """Remove all commands and ignore marks."""
        self._commands.clear()
        self._ignored.clear()

    def _results(self, replies: list[Value]) -> list[Value]:
        return [
            reply for index, reply in enumerate(replies) if index not in self._ignored
        ]

    def query(self, con: ConnectionLike) -> Value:
        """Send the pipeline and return the replies that are not ignored.

        An aborted transaction gives ``None``.
        """
        if not _supports_pipelining(con):
            raise RedisError(
                ErrorKind.RESPONSE_ERROR,
                "This connection does not support pipelining.",
            )
        if not self._commands:
            return []
        if not self._transaction_mode:
            replies = con.req_packed_commands(
                self._encode(False), 0, len(self._commands)
            )
            return self._results(list(replies))
        replies = con.req_packed_commands(
            self._encode(True), len(self._commands) + 1, 1
        )
        last = replies[-1] if replies else _MISSING
        if last is None:
            return None
        if isinstance(last, list):
            return self._results(last)
        raise RedisError(
            ErrorKind.RESPONSE_ERROR, "Invalid response when parsing multi response"
        )

    def execute(self, con: ConnectionLike) -> None:
        """Send the pipeline, discarding the replies; errors are raised."""
        self.query(con)


_MISSING = object()


def pipe() -> Pipeline:
    """Create an empty pipeline."""
    return Pipeline()