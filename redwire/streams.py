"""Option builders and reply types for the stream commands."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from .pipeline import to_redis_args
from .protocol import ErrorKind, RedisError, Value, as_int, as_list, as_map, as_str

__all__ = [
    "StreamMaxlen",
    "StreamClaimOptions",
    "StreamReadOptions",
    "StreamId",
    "StreamKey",
    "StreamReadReply",
    "StreamRangeReply",
    "StreamClaimReply",
    "StreamInfoConsumer",
    "StreamPendingData",
    "StreamPendingReply",
    "StreamPendingId",
    "StreamPendingCountReply",
    "StreamInfoStreamReply",
    "StreamInfoConsumersReply",
    "StreamInfoGroup",
    "StreamInfoGroupsReply",
]

T = TypeVar("T")


def _type_error(value: Any, description: str) -> RedisError:
    return RedisError(ErrorKind.TYPE_ERROR, description, repr(value))


def _exact_items(value: Value, length: int) -> list:
    if not isinstance(value, list) or len(value) != length:
        raise RedisError(
            ErrorKind.TYPE_ERROR,
            "Response was of incompatible type",
            f"Bulk response of wrong dimension (response was {value!r})",
        )
    return value


def _optional_str(value: Value) -> str | None:
    return None if value is None else as_str(value)


@dataclass(frozen=True)
class StreamMaxlen:
    """The ``MAXLEN = n`` or ``MAXLEN ~ n`` trimming argument."""

    count: int
    approximate: bool = False

    @classmethod
    def equals(cls, count: int) -> StreamMaxlen:
        """Trim to exactly ``count`` entries."""
        return cls(count, approximate=False)

    @classmethod
    def approx(cls, count: int) -> StreamMaxlen:
        """Trim to about ``count`` entries."""
        return cls(count, approximate=True)

    def to_redis_args(self) -> list[bytes]:
        """Return the trimming arguments."""
        return [b"MAXLEN", b"~" if self.approximate else b"="] + to_redis_args(
            self.count
        )


class StreamClaimOptions:
    """Options for XCLAIM, built by chaining."""

    def __init__(self) -> None:
        self._idle: int | None = None
        self._time: int | None = None
        self._retry: int | None = None
        self._force = False
        self._justid = False

    def idle(self, ms: int) -> StreamClaimOptions:
        """Set ``IDLE <milliseconds>``."""
        self._idle = ms
        return self

    def time(self, ms_time: int) -> StreamClaimOptions:
        """Set ``TIME <mstime>``."""
        self._time = ms_time
        return self

    def retry(self, count: int) -> StreamClaimOptions:
        """Set ``RETRYCOUNT <count>``."""
        self._retry = count
        return self

    def with_force(self) -> StreamClaimOptions:
        """Set ``FORCE``."""
        self._force = True
        return self

    def with_justid(self) -> StreamClaimOptions:
        """Set ``JUSTID``; the reply then holds only IDs."""
        self._justid = True
        return self

    def to_redis_args(self) -> list[bytes]:
        """Return the options as command arguments."""
        out: list[bytes] = []
        for name, number in (
            (b"IDLE", self._idle),
            (b"TIME", self._time),
            (b"RETRYCOUNT", self._retry),
        ):
            if number is not None:
                out += [name, str(number).encode()]
        if self._force:
            out.append(b"FORCE")
        if self._justid:
            out.append(b"JUSTID")
        return out


class StreamReadOptions:
    """Options for XREAD and XREADGROUP, built by chaining."""

    def __init__(self) -> None:
        self._block: int | None = None
        self._count: int | None = None
        self._noack = False
        self._group: tuple[list[bytes], list[bytes]] | None = None

    def read_only(self) -> bool:
        """True unless a consumer group is set."""
        return self._group is None

    def noack(self) -> StreamReadOptions:
        """Do not add read messages to the pending entries list."""
        self._noack = True
        return self

    def block(self, ms: int) -> StreamReadOptions:
        """Block for up to ``ms`` milliseconds."""
        self._block = ms
        return self

    def count(self, n: int) -> StreamReadOptions:
        """Return at most ``n`` entries per stream."""
        self._count = n
        return self

    def group(self, group_name: Any, consumer_name: Any) -> StreamReadOptions:
        """Read as ``consumer_name`` in consumer group ``group_name``."""
        self._group = (to_redis_args(group_name), to_redis_args(consumer_name))
        return self

    def to_redis_args(self) -> list[bytes]:
        """Return the options as command arguments."""
        out: list[bytes] = []
        if self._block is not None:
            out += [b"BLOCK", str(self._block).encode()]
        if self._count is not None:
            out += [b"COUNT", str(self._count).encode()]
        if self._group is not None:
            if self._noack:
                out.append(b"NOACK")
            group_name, consumer_name = self._group
            out.append(b"GROUP")
            out += group_name
            out += consumer_name
        return out


@dataclass
class StreamId:
    """A stream entry: its ID and its fields."""

    id: str = ""
    map: dict[str, Value] = field(default_factory=dict)

    @classmethod
    def _from_bulk_value(cls, value: Value) -> StreamId:
        entry = cls()
        if isinstance(value, list):
            if len(value) > 0:
                entry.id = as_str(value[0])
            if len(value) > 1:
                entry.map = as_map(value[1])
        return entry

    def get(
        self, key: str, convert: Callable[[Value], T] = as_str
    ) -> T | None:
        """Return a field converted by ``convert``, or None if missing or unconvertible."""
        if key not in self.map:
            return None
        try:
            return convert(self.map[key])
        except RedisError:
            return None

    def contains_key(self, key: str) -> bool:
        """Whether the entry has the field ``key``."""
        return key in self.map

    def __len__(self) -> int:
        return len(self.map)


def _stream_ids(rows: Value) -> list[StreamId]:
    return [
        StreamId(entry_id, as_map(fields))
        for row in as_list(rows)
        for entry_id, fields in as_map(row).items()
    ]


@dataclass
class StreamKey:
    """A stream key and the entries read from it."""

    key: str = ""
    ids: list[StreamId] = field(default_factory=list)


@dataclass
class StreamReadReply:
    """Reply of XREAD and XREADGROUP."""

    keys: list[StreamKey] = field(default_factory=list)

    @classmethod
    def from_redis_value(cls, value: Value) -> StreamReadReply:
        """Read the per-key entries of the reply."""
        return cls(
            [
                StreamKey(key, _stream_ids(entries))
                for row in as_list(value)
                for key, entries in as_map(row).items()
            ]
        )


@dataclass
class StreamRangeReply:
    """Reply of XRANGE and XREVRANGE."""

    ids: list[StreamId] = field(default_factory=list)

    @classmethod
    def from_redis_value(cls, value: Value) -> StreamRangeReply:
        """Read the entries of the reply."""
        return cls(_stream_ids(value))


@dataclass
class StreamClaimReply:
    """Reply of XCLAIM."""

    ids: list[StreamId] = field(default_factory=list)

    @classmethod
    def from_redis_value(cls, value: Value) -> StreamClaimReply:
        """Read the claimed entries of the reply."""
        return cls(_stream_ids(value))


@dataclass
class StreamInfoConsumer:
    """A consumer of a consumer group."""

    name: str = ""
    pending: int = 0
    idle: int = 0


@dataclass
class StreamPendingData:
    """Summary of pending messages of a consumer group."""

    count: int = 0
    start_id: str = ""
    end_id: str = ""
    consumers: list[StreamInfoConsumer] = field(default_factory=list)


def _parse_count(text: str) -> int:
    return int(text) if text.isascii() and text.isdigit() else 0


@dataclass
class StreamPendingReply:
    """Reply of the summary form of XPENDING; ``data`` is None when nothing is pending."""

    data: StreamPendingData | None = None

    def count(self) -> int:
        """Number of pending messages."""
        return 0 if self.data is None else self.data.count

    @classmethod
    def from_redis_value(cls, value: Value) -> StreamPendingReply:
        """Read the summary reply."""
        raw_count, raw_start, raw_end, raw_consumers = _exact_items(value, 4)
        count = as_int(raw_count)
        start_id = _optional_str(raw_start)
        end_id = _optional_str(raw_end)
        consumer_rows = [
            _exact_items(row, 2) for row in as_list(raw_consumers) if row is not None
        ]
        if count == 0:
            return cls()
        if start_id is None:
            raise RedisError(
                ErrorKind.IO_ERROR, "IllegalState: Non-zero pending expects start id"
            )
        if end_id is None:
            raise RedisError(
                ErrorKind.IO_ERROR, "IllegalState: Non-zero pending expects end id"
            )
        consumers = [
            StreamInfoConsumer(name=as_str(name), pending=_parse_count(as_str(pending)))
            for name, pending in consumer_rows
        ]
        return cls(StreamPendingData(count, start_id, end_id, consumers))


@dataclass
class StreamPendingId:
    """A pending message listed by the extended form of XPENDING."""

    id: str = ""
    consumer: str = ""
    last_delivered_ms: int = 0
    times_delivered: int = 0


def _utf8(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        raise RedisError(ErrorKind.TYPE_ERROR, "Invalid UTF-8", repr(data)) from None


@dataclass
class StreamPendingCountReply:
    """Reply of the extended form of XPENDING."""

    ids: list[StreamPendingId] = field(default_factory=list)

    @classmethod
    def from_redis_value(cls, value: Value) -> StreamPendingCountReply:
        """Read the list of pending messages."""
        if not isinstance(value, list):
            raise _type_error(value, "Cannot parse redis data (1)")
        reply = cls()
        for outer in value:
            if not isinstance(outer, list):
                raise _type_error(outer, "Cannot parse redis data (2)")
            match outer:
                case [bytes() as id_bytes, bytes() as consumer_bytes, int() as ms, int() as times] if not (
                    isinstance(ms, bool) or isinstance(times, bool)
                ):
                    reply.ids.append(
                        StreamPendingId(
                            _utf8(id_bytes), _utf8(consumer_bytes), ms, times
                        )
                    )
                case _:
                    raise _type_error(outer, "Cannot parse redis data (3)")
        return reply


@dataclass
class StreamInfoStreamReply:
    """Reply of XINFO STREAM."""

    last_generated_id: str = ""
    radix_tree_keys: int = 0
    groups: int = 0
    length: int = 0
    first_entry: StreamId = field(default_factory=StreamId)
    last_entry: StreamId = field(default_factory=StreamId)

    @classmethod
    def from_redis_value(cls, value: Value) -> StreamInfoStreamReply:
        """Read the stream information reply."""
        info = as_map(value)
        reply = cls()
        if "last-generated-id" in info:
            reply.last_generated_id = as_str(info["last-generated-id"])
        if "radix-tree-nodes" in info:
            reply.radix_tree_keys = as_int(info["radix-tree-nodes"])
        if "groups" in info:
            reply.groups = as_int(info["groups"])
        if "length" in info:
            reply.length = as_int(info["length"])
        if "first-entry" in info:
            reply.first_entry = StreamId._from_bulk_value(info["first-entry"])
        if "last-entry" in info:
            reply.last_entry = StreamId._from_bulk_value(info["last-entry"])
        return reply


@dataclass
class StreamInfoConsumersReply:
    """Reply of XINFO CONSUMERS."""

    consumers: list[StreamInfoConsumer] = field(default_factory=list)

    @classmethod
    def from_redis_value(cls, value: Value) -> StreamInfoConsumersReply:
        """Read every consumer of the group."""
        reply = cls()
        for item in as_list(value):
            info = as_map(item)
            consumer = StreamInfoConsumer()
            if "name" in info:
                consumer.name = as_str(info["name"])
            if "pending" in info:
                consumer.pending = as_int(info["pending"])
            if "idle" in info:
                consumer.idle = as_int(info["idle"])
            reply.consumers.append(consumer)
        return reply


@dataclass
class StreamInfoGroup:
    """A consumer group of a stream."""

    name: str = ""
    consumers: int = 0
    pending: int = 0
    last_delivered_id: str = ""


@dataclass
class StreamInfoGroupsReply:
    """Reply of XINFO GROUPS."""

    groups: list[StreamInfoGroup] = field(default_factory=list)

    @classmethod
    def from_redis_value(cls, value: Value) -> StreamInfoGroupsReply:
        """Read every consumer group of the stream."""
        reply = cls()
        for item in as_list(value):
            info = as_map(item)
            group = StreamInfoGroup()
            if "name" in info:
                group.name = as_str(info["name"])
            if "pending" in info:
                group.pending = as_int(info["pending"])
            if "consumers" in info:
                group.consumers = as_int(info["consumers"])
            if "last-delivered-id" in info:
                group.last_delivered_id = as_str(info["last-delivered-id"])
            reply.groups.append(group)
        return reply