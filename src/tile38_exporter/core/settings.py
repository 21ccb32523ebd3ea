"""
Settings module for tile38-exporter.
Single source of configuration.

Philosophy:
- Flags = what the operator types on the command line
- ENV = overrides flags when set (container deployments)
- Code = defaults

Precedence: non-empty ENV > flag > default.
"""
from __future__ import annotations

import os
import re
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from tile38_exporter.utils.exceptions import ValidationError

DEFAULT_TILE38_ADDR = ":9851"
DEFAULT_HTTP_ADDR = ":8080"
DEFAULT_POOL_MAX_CONNECTIONS = 5
MAX_POOL_MAX_CONNECTIONS = 64
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Prometheus metric name grammar
_NAMESPACE_RE = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")


# ============= HELPERS =============

def _get_env(env: Mapping[str, str], name: str, default: str = "") -> str:
    """Value from ENV, stripped"""
    return (env.get(name) or default).strip()


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    """ENV variable as int"""
    val = _get_env(env, name)
    if not val:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValidationError(f"{name} must be an integer, got {val!r}") from None


def _get_optional_float(env: Mapping[str, str], name: str, default: Optional[float]) -> Optional[float]:
    """ENV variable as float; unset keeps the default"""
    val = _get_env(env, name)
    if not val:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValidationError(f"{name} must be a number, got {val!r}") from None


def _get_secret(env: Mapping[str, str], name: str, default: str = "") -> str:
    """
    Secret from ENV.
    A ``<NAME>_FILE`` variable pointing to a file takes priority (docker secrets).
    """
    file_path = _get_env(env, f"{name}_FILE")
    if file_path:
        try:
            return Path(file_path).read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ValidationError(f"cannot read {name}_FILE {file_path!r}: {exc}") from exc
    return _get_env(env, name, default)


def split_addr(addr: str, default_host: str) -> tuple[str, int]:
    """
    Split ``host:port``. An empty host (``:9851``) becomes ``default_host``.
    IPv6 hosts may be bracketed: ``[::1]:9851``.
    """
    host, sep, port = addr.strip().rpartition(":")
    if not sep:
        raise ValidationError(f"address {addr!r} must be in host:port form")
    host = host.strip("[]") or default_host
    try:
        port_num = int(port)
    except ValueError:
        raise ValidationError(f"address {addr!r} has an invalid port") from None
    if not 0 < port_num < 65536:
        raise ValidationError(f"address {addr!r} has an out of range port")
    return host, port_num


# ============= SETTINGS =============

@dataclass
class Settings:
    """
    Exporter configuration.

    Structure:
    - Tile38 connection (address, AUTH password, pool, socket timeout)
    - HTTP listener
    - Output (metric namespace) and logging
    """

    # --- Tile38 ---
    TILE38_ADDR: str = DEFAULT_TILE38_ADDR
    TILE38_AUTH: str = ""
    POOL_MAX_CONNECTIONS: int = DEFAULT_POOL_MAX_CONNECTIONS
    POOL_TIMEOUT_SEC: Optional[float] = None  # None = wait for a free connection forever
    TIMEOUT_SEC: Optional[float] = None       # socket/connect timeout, None = none

    # --- HTTP ---
    HTTP_ADDR: str = DEFAULT_HTTP_ADDR

    # --- Output ---
    NAMESPACE: str = ""
    LOG_LEVEL: str = "INFO"

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        split_addr(self.TILE38_ADDR, "127.0.0.1")
        split_addr(self.HTTP_ADDR, "0.0.0.0")

        if self.NAMESPACE and not _NAMESPACE_RE.match(self.NAMESPACE):
            raise ValidationError(f"namespace {self.NAMESPACE!r} is not a valid metric name prefix")

        if not 1 <= self.POOL_MAX_CONNECTIONS <= MAX_POOL_MAX_CONNECTIONS:
            raise ValidationError(
                f"pool size must be between 1 and {MAX_POOL_MAX_CONNECTIONS}, got {self.POOL_MAX_CONNECTIONS}"
            )

        for name in ("POOL_TIMEOUT_SEC", "TIMEOUT_SEC"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValidationError(f"{name} must be > 0, got {value}")

        # names known to both logging and uvicorn (lowercased there)
        self.LOG_LEVEL = self.LOG_LEVEL.strip().upper()
        if self.LOG_LEVEL not in LOG_LEVELS:
            raise ValidationError(f"log level must be one of {', '.join(LOG_LEVELS)}, got {self.LOG_LEVEL!r}")

    # --- derived ---

    @property
    def tile38_host(self) -> str:
        return split_addr(self.TILE38_ADDR, "127.0.0.1")[0]

    @property
    def tile38_port(self) -> int:
        return split_addr(self.TILE38_ADDR, "127.0.0.1")[1]

    @property
    def http_host(self) -> str:
        return split_addr(self.HTTP_ADDR, "0.0.0.0")[0]

    @property
    def http_port(self) -> int:
        return split_addr(self.HTTP_ADDR, "0.0.0.0")[1]

    def as_dict(self) -> dict[str, Any]:
        """Settings as a dict, secrets masked (safe to log)."""
        d = asdict(self)
        if d["TILE38_AUTH"]:
            d["TILE38_AUTH"] = "***MASKED***"
        return d

    @classmethod
    def load(cls, args: Any = None, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from parsed CLI flags and the environment.

        Args:
            args: argparse.Namespace from the CLI (None = defaults only)
            env: mapping to read instead of os.environ (tests)
        """
        env = os.environ if env is None else env

        def flag(name: str, default: Any) -> Any:
            value = getattr(args, name, None) if args is not None else None
            return default if value is None else value

        return cls(
            TILE38_ADDR=_get_env(env, "TILE38_ADDR") or flag("tile38_addr", DEFAULT_TILE38_ADDR),
            TILE38_AUTH=_get_secret(env, "TILE38_AUTH") or flag("tile38_auth", ""),
            POOL_MAX_CONNECTIONS=_get_int(
                env, "POOL_MAX_CONNECTIONS", flag("pool_size", DEFAULT_POOL_MAX_CONNECTIONS)
            ),
            POOL_TIMEOUT_SEC=_get_optional_float(env, "POOL_TIMEOUT_SEC", flag("pool_timeout", None)),
            TIMEOUT_SEC=_get_optional_float(env, "TILE38_TIMEOUT_SEC", flag("timeout", None)),
            HTTP_ADDR=_get_env(env, "HTTP_ADDR") or flag("http_addr", DEFAULT_HTTP_ADDR),
            NAMESPACE=_get_env(env, "METRICS_NAMESPACE") or flag("namespace", ""),
            LOG_LEVEL=_get_env(env, "LOG_LEVEL") or flag("log_level", "INFO"),
        )


__all__ = ["LOG_LEVELS", "Settings", "split_addr"]
