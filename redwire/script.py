"""Lua scripts that are loaded on demand and invoked by their hash."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any

from .pipeline import ConnectionLike, cmd, to_redis_args
from .protocol import ErrorKind, RedisError, Value

__all__ = ["Script", "ScriptInvocation"]


class Script:
    """A Lua script, identified on the server by the SHA1 of its code."""

    def __init__(self, code: str) -> None:
        self._code = code
        self._hash = hashlib.sha1(code.encode("utf-8")).hexdigest()

    @property
    def code(self) -> str:
        """The script's source text."""
        return self._code

    @property
    def hash(self) -> str:
        """The script's SHA1 hash in hexadecimal."""
        return self._hash

    def __repr__(self) -> str:
        return f"Script(hash={self._hash!r})"

    def key(self, key: Any) -> ScriptInvocation:
        """Start an invocation with a key filled in."""
        return ScriptInvocation(self, keys=to_redis_args(key))

    def arg(self, arg: Any) -> ScriptInvocation:
        """Start an invocation with an argument filled in."""
        return ScriptInvocation(self, args=to_redis_args(arg))

    def prepare_invoke(self) -> ScriptInvocation:
        """Start an empty invocation."""
        return ScriptInvocation(self)

    def invoke(self, con: ConnectionLike) -> Value:
        """Run the script without keys or arguments."""
        return ScriptInvocation(self).invoke(con)


@dataclass
class ScriptInvocation:
    """Keys and arguments collected for one call of a script."""

    script: Script
    args: list[bytes] = field(default_factory=list)
    keys: list[bytes] = field(default_factory=list)

    def arg(self, arg: Any) -> ScriptInvocation:
        """Add an argument; it becomes ``ARGV[i]`` in the script."""
        self.args.extend(to_redis_args(arg))
        return self

    def key(self, key: Any) -> ScriptInvocation:
        """Add a key; it becomes ``KEYS[i]`` in the script."""
        self.keys.extend(to_redis_args(key))
        return self

    def invoke(self, con: ConnectionLike) -> Value:
        """Run the script, loading it first if the server does not know it."""
        while True:
            try:
                return (
                    cmd("EVALSHA")
                    .arg(self.script.hash.encode("ascii"))
                    .arg(len(self.keys))
                    .arg(self.keys)
                    .arg(self.args)
                    .query(con)
                )
            except RedisError as err:
                if err.kind is not ErrorKind.NO_SCRIPT_ERROR:
                    raise
                cmd("SCRIPT").arg("LOAD").arg(self.script.code.encode("utf-8")).query(
                    con
                )