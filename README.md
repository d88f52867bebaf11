# redwire

redwire is a small client-side toolkit for the Redis serialization protocol (RESP).
It uses only the standard library. It does no networking of its own: you supply
the connection object that carries the bytes.

## What it provides

- **`redwire.protocol`**: the reply parser and the value helpers.
  - `Parser` and `parse_redis_value` turn reply bytes into Python values. The values are `Okay`, `Status`, `int`, `bytes`, `None` (nil) and lists.
  - `RedisError` is raised for error replies and for malformed input. Its `kind` is an `ErrorKind` member.
  - `as_str`, `as_int`, `as_float`, `as_list` and `as_map` convert parsed values.
- **`redwire.pipeline`**: building and sending commands.
  - `cmd`, `Cmd`, `to_redis_args` and `pack_command` build commands and encode them.
  - `pipe` and `Pipeline` group commands. A pipeline can be wrapped in `MULTI`/`EXEC`, and the replies of chosen commands can be ignored.
- **`redwire.script`**: Lua scripts.
  - `Script` and `ScriptInvocation` call a script by its SHA1 hash.
  - When the server answers `NOSCRIPT`, the script is loaded and the call is retried.
- **`redwire.geo`**: helpers for the geospatial commands.
  - `Unit`, `Coord`, `RadiusOrder` and `RadiusOptions` build arguments.
  - `RadiusSearchResult` reads search results.
- **`redwire.streams`**: option builders and reply types for the stream commands.
  - The option builders are `StreamMaxlen`, `StreamClaimOptions` and `StreamReadOptions`.
  - The reply types are `StreamReadReply`, `StreamRangeReply`, `StreamClaimReply`, `StreamPendingReply`, `StreamPendingCountReply`, `StreamInfoStreamReply`, `StreamInfoConsumersReply` and `StreamInfoGroupsReply`.

## Installing

```
pip install .
pip install ".[test]"   # with test dependencies
```

## Parsing replies

```python
from redwire.protocol import parse_redis_value, Okay, RedisError, ErrorKind

parse_redis_value(b"+OK\r\n")               # Okay()
parse_redis_value(b":42\r\n")               # 42
parse_redis_value(b"$3\r\nfoo\r\n")         # b"foo"
parse_redis_value(b"*2\r\n:1\r\n:2\r\n")    # [1, 2]

try:
    parse_redis_value(b"-ERR bad thing\r\n")
except RedisError as err:
    assert err.kind is ErrorKind.RESPONSE_ERROR
    assert err.detail == "bad thing"
```

### Errors

An error reply is raised as a `RedisError`. Known codes such as `ERR`,
`NOSCRIPT`, `MOVED` and `READONLY` map to their own `ErrorKind`. Any other code
gives `ErrorKind.EXTENSION_ERROR`, and the code itself is kept in `err.code`.

Some input raises instead of returning a value:

- Malformed input raises `ErrorKind.RESPONSE_ERROR` with the description `"parse error"`.
- A stream that ends in the middle of a reply raises `ErrorKind.IO_ERROR`.

### Reading several replies

`Parser.parse_value` accepts a binary file-like object or a bytes object, and
returns one reply per call. Any bytes read past the end of a reply are kept for
the next call. One parser can therefore read several replies in turn from the
same stream.

### Converting values

- `as_list` treats nil as an empty list and a single value as a one-item list.
- `as_map` turns a flat key/value list into a dict with text keys.

## Building commands and pipelines

```python
from redwire.pipeline import cmd, pipe

cmd("SET").arg("key").arg(42).packed()
# b"*3\r\n$3\r\nSET\r\n$3\r\nkey\r\n$2\r\n42\r\n"

p = pipe().atomic()
p.cmd("SET").arg("key_1").arg(42).ignore()
p.cmd("GET").arg("key_1")
payload = p.packed_pipeline()   # MULTI, SET, GET, EXEC
```

`to_redis_args` decides how an argument is encoded:

| Value | Encoded as |
|---|---|
| `str` | UTF-8 bytes |
| `int` | decimal text |
| `bool` | `1` or `0` |
| `None` | no argument at all |
| list, tuple or set | flattened, one argument per item |
| mapping | its keys and values in turn |
| object with a `to_redis_args()` method | whatever that method returns |

## Connections

`Cmd.query(con)`, `Pipeline.query(con)` and the script `invoke` methods need a
connection object. It must offer:

- `req_packed_command(packed) -> value`: sends one encoded command and returns its parsed reply. Error replies must be raised as `RedisError`.
- `req_packed_commands(packed, offset, count) -> list`: sends several encoded commands. It skips the first `offset` replies and returns the next `count`.
- `supports_pipelining() -> bool`: optional. If the method is missing, pipelining is assumed to be supported.

`Pipeline.query` behaves as follows:

- It returns the replies that were not ignored.
- An empty pipeline returns `[]`.
- An atomic pipeline whose transaction was aborted returns `None`.
- It raises `RedisError` if the connection does not support pipelining.

## Scripts

```python
from redwire.script import Script

script = Script("return tonumber(ARGV[1]) + tonumber(ARGV[2])")
script.hash                                   # SHA1 of the code, hex
result = script.arg(1).arg(2).invoke(con)     # EVALSHA, loading on NOSCRIPT
```

## Geo and stream options

```python
from redwire.geo import RadiusOptions, RadiusOrder, Coord
from redwire.streams import StreamReadOptions, StreamMaxlen

RadiusOptions().order(RadiusOrder.ASC).limit(10).with_dist().to_redis_args()
# [b"WITHDIST", b"COUNT", b"10", b"ASC"]

Coord.lon_lat("13.361389", "38.115556").to_redis_args()
# [b"13.361389", b"38.115556"]

StreamReadOptions().count(5).group("group", "consumer").to_redis_args()
# [b"COUNT", b"5", b"GROUP", b"group", b"consumer"]

StreamMaxlen.approx(1000).to_redis_args()
# [b"MAXLEN", b"~", b"1000"]
```

The reply types each have a `from_redis_value` class method, which builds the
typed object from a parsed value.

`StreamId.get(key, convert)` reads one field through a converter such as
`as_int`. It returns `None` if the field is missing or cannot be converted.

## What it does not do

redwire does not cover everything a Redis client usually offers:

- It does not open sockets or manage connections.
- It does not parse connection URLs.
- It has no high-level command methods, no pub/sub, no cluster support and no asyncio interface.

Pair it with a transport of your own that follows the connection interface
described above.

## Running the tests

```
pytest
```