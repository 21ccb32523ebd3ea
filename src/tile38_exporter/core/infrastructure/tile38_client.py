from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from redis.asyncio import BlockingConnectionPool
from redis.asyncio.connection import Connection
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from tile38_exporter.core.settings import Settings
from tile38_exporter.utils.exceptions import (
    BackendError,
    ExporterError,
    ParseError,
    Tile38ConnectionError,
)
from tile38_exporter.utils.logging import get_logger
from tile38_exporter.utils.metrics import inc

_log = get_logger("tile38.client")

# reply fields that change on every call and are not statistics
_VOLATILE_FIELDS = ("elapsed",)


def parse_reply(raw: Any) -> dict[str, Any]:
    """
    Decode a JSON-mode Tile38 reply.

    Raises:
        ParseError: the reply is not a JSON object
        BackendError: the reply carries ``"ok": false``; the message is ``err`` verbatim
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        raise ParseError(f"unexpected tile38 reply of type {type(raw).__name__}")
    try:
        doc = json.loads(raw)
    except ValueError as exc:
        raise ParseError(f"tile38 reply is not valid JSON: {exc}") from exc
    if not isinstance(doc, dict):
        raise ParseError("tile38 reply is not a JSON object")
    if doc.get("ok") is not True:
        raise BackendError(str(doc.get("err") or "tile38 reported a failure without a message"))
    return doc


def _is_pong(raw: Any) -> bool:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        return False
    if raw.upper() == "PONG":
        return True
    try:
        doc = json.loads(raw)
    except ValueError:
        return False
    return isinstance(doc, dict) and str(doc.get("ping", "")).lower() == "pong"


class Tile38Client:
    """
    Pooled Tile38 client.

    Features:
      - BlockingConnectionPool: callers beyond ``max_connections`` wait for a free slot;
      - every new socket runs ``OUTPUT json`` then (optionally) ``AUTH``;
      - a borrowed connection is PING-probed before use, a stale one is redialed once;
      - connections go back to the pool on every exit path.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 9851,
        *,
        password: str = "",
        max_connections: int = 5,
        pool_timeout: Optional[float] = None,
        socket_timeout: Optional[float] = None,
        pool: Optional[BlockingConnectionPool] = None,
    ) -> None:
        self._addr = f"{host}:{port}"
        self._password = password
        if pool is None:
            pool = BlockingConnectionPool(
                max_connections=max_connections,
                timeout=pool_timeout,
                host=host,
                port=port,
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout,
                # Tile38 knows no CLIENT SETINFO; redis 7 moves this to driver_info
                lib_name=None,
                lib_version=None,
                redis_connect_func=self._on_connect,
            )
        self._pool = pool

    @classmethod
    def from_settings(cls, settings: Settings) -> "Tile38Client":
        return cls(
            settings.tile38_host,
            settings.tile38_port,
            password=settings.TILE38_AUTH,
            max_connections=settings.POOL_MAX_CONNECTIONS,
            pool_timeout=settings.POOL_TIMEOUT_SEC,
            socket_timeout=settings.TIMEOUT_SEC,
        )

    @property
    def addr(self) -> str:
        return self._addr

    @property
    def pool(self) -> BlockingConnectionPool:
        return self._pool

    # ------------------------------------------------------------------ #
    # connection setup
    # ------------------------------------------------------------------ #

    async def _on_connect(self, connection: Connection) -> None:
        """Handshake for a freshly dialed socket: JSON output, then AUTH."""
        try:
            await connection.on_connect()
            await self._negotiate(connection, "OUTPUT", "json")
            if self._password:
                await self._negotiate(connection, "AUTH", self._password)
        except (RedisError, ExporterError, OSError) as exc:
            await connection.disconnect()
            inc("tile38_exporter_handshake_failures_total")
            _log.warning("tile38_handshake_failed", extra={"addr": self._addr, "error": str(exc)})
            raise Tile38ConnectionError(f"tile38 handshake failed: {exc}") from exc

    @staticmethod
    async def _negotiate(connection: Connection, *args: Any) -> None:
        await connection.send_command(*args)
        reply = await connection.read_response()
        # RESP mode acknowledges with +OK, JSON mode with {"ok":true}
        if isinstance(reply, str) and reply.upper() == "OK":
            return
        parse_reply(reply)

    @staticmethod
    async def _ping(connection: Connection) -> None:
        await connection.send_command("PING")
        reply = await connection.read_response()
        if not _is_pong(reply):
            raise Tile38ConnectionError(f"expected PONG, got {reply!r}")

    async def _probe(self, connection: Connection) -> None:
        """Liveness check on borrow; a dead socket is redialed once."""
        try:
            await self._ping(connection)
            return
        except (RedisError, ExporterError, OSError) as exc:
            _log.info("tile38_stale_connection", extra={"addr": self._addr, "error": str(exc)})
            await connection.disconnect()

        try:
            await connection.connect()
        except (RedisError, OSError) as exc:
            raise Tile38ConnectionError(f"cannot reconnect to tile38 at {self._addr}: {exc}") from exc

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[Connection]:
        try:
            connection = await self._pool.get_connection()
        except (RedisError, OSError) as exc:
            raise Tile38ConnectionError(f"cannot connect to tile38 at {self._addr}: {exc}") from exc

        try:
            await self._probe(connection)
            yield connection
        except (RedisConnectionError, RedisTimeoutError, OSError) as exc:
            # half-read replies leave the socket unusable
            await connection.disconnect()
            raise Tile38ConnectionError(f"tile38 connection lost: {exc}") from exc
        finally:
            await self._pool.release(connection)

    # ------------------------------------------------------------------ #
    # commands
    # ------------------------------------------------------------------ #

    @staticmethod
    async def _call(connection: Connection, *args: Any) -> Any:
        await connection.send_command(*args)
        try:
            return await connection.read_response()
        except ResponseError as exc:
            raise BackendError(str(exc)) from exc

    async def fetch_status(self) -> dict[str, Any]:
        """
        Run ``SERVER ext`` and return the decoded reply without ``elapsed``.

        Raises:
            Tile38ConnectionError, BackendError, ParseError
        """
        async with self._connection() as connection:
            reply = await self._call(connection, "SERVER", "ext")

        doc = parse_reply(reply)
        for field in _VOLATILE_FIELDS:
            doc.pop(field, None)
        return doc

    async def ping(self) -> None:
        """Borrow a connection and probe it (readiness)."""
        async with self._connection():
            pass

    async def close(self) -> None:
        """Disconnect every pooled connection."""
        await self._pool.disconnect()


__all__ = ["Tile38Client", "parse_reply"]
