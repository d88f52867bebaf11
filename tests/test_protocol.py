import io

import pytest

from redwire.protocol import (
    ErrorKind,
    Okay,
    Parser,
    RedisError,
    Status,
    as_float,
    as_int,
    as_list,
    as_map,
    as_str,
    parse_redis_value,
)


class TrickleReader:
    """Hands out its data one byte at a time."""

    def __init__(self, data):
        self._data = data
        self._pos = 0

    def read(self, n=-1):
        chunk = self._data[self._pos : self._pos + 1]
        self._pos += len(chunk)
        return chunk


def test_status_with_spaces():
    assert parse_redis_value(b"+GET 123\r\n") == Status("GET 123")


def test_stream_is_exhausted_after_single_value():
    parser = Parser()
    stream = io.BytesIO(b"+GET 123\r\n")
    assert parser.parse_value(stream) == parse_redis_value(b"+GET 123\r\n")
    with pytest.raises(RedisError) as info:
        parser.parse_value(stream)
    assert info.value.kind is ErrorKind.IO_ERROR
    with pytest.raises(RedisError) as again:
        parser.parse_value(stream)
    assert again.value.kind is ErrorKind.IO_ERROR


def test_ok_status():
    assert parse_redis_value(b"+OK\r\n") == Okay()


def test_integer():
    assert parse_redis_value(b":-42\r\n") == -42


def test_integer_with_surrounding_spaces():
    assert parse_redis_value(b": 7 \r\n") == 7


def test_bulk_data():
    assert parse_redis_value(b"$5\r\nhel\r\n\r\n") == b"hel\r\n"


def test_empty_bulk_data():
    assert parse_redis_value(b"$0\r\n\r\n") == b""


def test_nil_data():
    assert parse_redis_value(b"$-1\r\n") is None


def test_nil_multi_bulk():
    assert parse_redis_value(b"*-1\r\n") is None


def test_nested_multi_bulk():
    data = b"*3\r\n:1\r\n*2\r\n$1\r\na\r\n+OK\r\n$-1\r\n"
    assert parse_redis_value(data) == [1, [b"a", Okay()], None]


def test_empty_multi_bulk():
    assert parse_redis_value(b"*0\r\n") == []


@pytest.mark.parametrize(
    "code, kind",
    [
        ("ERR", ErrorKind.RESPONSE_ERROR),
        ("EXECABORT", ErrorKind.EXEC_ABORT_ERROR),
        ("LOADING", ErrorKind.BUSY_LOADING_ERROR),
        ("NOSCRIPT", ErrorKind.NO_SCRIPT_ERROR),
        ("MOVED", ErrorKind.MOVED),
        ("ASK", ErrorKind.ASK),
        ("TRYAGAIN", ErrorKind.TRY_AGAIN),
        ("CLUSTERDOWN", ErrorKind.CLUSTER_DOWN),
        ("CROSSSLOT", ErrorKind.CROSS_SLOT),
        ("MASTERDOWN", ErrorKind.MASTER_DOWN),
        ("READONLY", ErrorKind.READ_ONLY),
    ],
)
def test_server_error_kinds(code, kind):
    with pytest.raises(RedisError) as info:
        parse_redis_value(f"-{code} something went wrong\r\n".encode())
    assert info.value.kind is kind
    assert info.value.detail == "something went wrong"
    assert info.value.code is None


def test_server_error_without_detail():
    with pytest.raises(RedisError) as info:
        parse_redis_value(b"-ERR\r\n")
    assert info.value.kind is ErrorKind.RESPONSE_ERROR
    assert info.value.detail is None


def test_extension_error_keeps_code():
    with pytest.raises(RedisError) as info:
        parse_redis_value(b"-WRONGTYPE Operation against a key\r\n")
    assert info.value.kind is ErrorKind.EXTENSION_ERROR
    assert info.value.code == "WRONGTYPE"
    assert info.value.detail == "Operation against a key"
    assert str(info.value) == "WRONGTYPE: Operation against a key"


def test_error_inside_bulk_keeps_stream_in_sync():
    parser = Parser()
    stream = io.BytesIO(b"*3\r\n:1\r\n-ERR first\r\n-ERR second\r\n:9\r\n")
    with pytest.raises(RedisError) as info:
        parser.parse_value(stream)
    assert info.value.detail == "first"
    assert parser.parse_value(stream) == 9


def test_garbage_integer():
    with pytest.raises(RedisError) as info:
        parse_redis_value(b":abc\r\n")
    assert info.value.kind is ErrorKind.RESPONSE_ERROR
    assert info.value.description == "parse error"
    assert "Expected integer, got garbage" in info.value.detail


def test_integer_out_of_range_is_garbage():
    with pytest.raises(RedisError) as info:
        parse_redis_value(b":9223372036854775808\r\n")
    assert info.value.description == "parse error"


def test_unknown_type_marker():
    with pytest.raises(RedisError) as info:
        parse_redis_value(b"!oops\r\n")
    assert info.value.kind is ErrorKind.RESPONSE_ERROR
    assert info.value.description == "parse error"


def test_missing_crlf_after_bulk_data():
    with pytest.raises(RedisError) as info:
        parse_redis_value(b"$3\r\nabcXY")
    assert info.value.description == "parse error"


def test_truncated_input_is_eof():
    with pytest.raises(RedisError) as info:
        parse_redis_value(b"$10\r\nabc")
    assert info.value.kind is ErrorKind.IO_ERROR


def test_empty_input_is_eof():
    with pytest.raises(RedisError) as info:
        parse_redis_value(b"")
    assert info.value.kind is ErrorKind.IO_ERROR


def test_several_values_on_one_stream():
    parser = Parser()
    stream = io.BytesIO(b"+OK\r\n:5\r\n$3\r\nfoo\r\n")
    assert [parser.parse_value(stream) for _ in range(3)] == [Okay(), 5, b"foo"]


def test_values_arriving_byte_by_byte():
    parser = Parser()
    reader = TrickleReader(b"*2\r\n$3\r\nbar\r\n:12\r\n+PONG\r\n")
    assert parser.parse_value(reader) == [b"bar", 12]
    assert parser.parse_value(reader) == Status("PONG")


def test_parse_value_accepts_bytes():
    assert Parser().parse_value(b":3\r\n") == 3


@pytest.mark.parametrize(
    "value, expected",
    [(b"hello", "hello"), (Status("PONG"), "PONG"), (Okay(), "OK"), (42, "42")],
)
def test_as_str(value, expected):
    assert as_str(value) == expected


@pytest.mark.parametrize("value", [None, [b"a"], b"\xff\xfe"])
def test_as_str_rejects(value):
    with pytest.raises(RedisError) as info:
        as_str(value)
    assert info.value.kind is ErrorKind.TYPE_ERROR


@pytest.mark.parametrize("value, expected", [(5, 5), (b"-17", -17), (Status("3"), 3)])
def test_as_int(value, expected):
    assert as_int(value) == expected


@pytest.mark.parametrize("value", [None, b"1.5", b"x", b"1_0"])
def test_as_int_rejects(value):
    with pytest.raises(RedisError) as info:
        as_int(value)
    assert info.value.kind is ErrorKind.TYPE_ERROR


@pytest.mark.parametrize(
    "value, expected", [(2, 2.0), (b"13.361389", 13.361389), (b"-0.5", -0.5)]
)
def test_as_float(value, expected):
    assert as_float(value) == expected


@pytest.mark.parametrize("value", [None, b"abc", b" 1.0", b"1_0.0"])
def test_as_float_rejects(value):
    with pytest.raises(RedisError) as info:
        as_float(value)
    assert info.value.kind is ErrorKind.TYPE_ERROR


def test_as_list():
    assert as_list([1, b"a"]) == [1, b"a"]
    assert as_list(None) == []
    assert as_list(b"x") == [b"x"]


def test_as_map():
    assert as_map([b"name", b"alice", b"pending", 3]) == {
        "name": b"alice",
        "pending": 3,
    }
    assert as_map(None) == {}


@pytest.mark.parametrize("value", [[b"k"], b"flat", 4])
def test_as_map_rejects(value):
    with pytest.raises(RedisError) as info:
        as_map(value)
    assert info.value.kind is ErrorKind.TYPE_ERROR