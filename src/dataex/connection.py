"""Connection descriptor - parse a connection string into driver options.

Supported spellings
-------------------
==============  =====================================================
Form            Example
==============  =====================================================
URL             ``mysql://user:pw@host:3306/shop?connect_timeout=5``
key/value       ``Server=host;Port=3306;Database=shop;Uid=user;Pwd=pw;``
==============  =====================================================

URL query parameters are passed to ``mysql.connector.connect()`` as
keyword options. Key/value keys are case-insensitive and accept the
common aliases (``Host``, ``Data Source``, ``User Id``, ``Password``,
``Initial Catalog``, ``Character Set``, ``Connect Timeout``...).

Usage
-----
::

    from dataex.connection import ConnectionDescriptor

    desc = ConnectionDescriptor.parse("Server=db;Database=shop;Uid=app;Pwd=s3cret")
    desc
    # ConnectionDescriptor(host='db', port=3306, database='shop', user='app')
    mysql.connector.connect(**desc.connect_kwargs())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qsl, unquote, urlsplit

from dataex.errors import ConfigError, InvalidConfigError

DEFAULT_PORT = 3306
DEFAULT_CHARSET = "utf8mb4"

_URL_SCHEMES = ("mysql", "mariadb", "mysql+mysqlconnector")

# key/value alias -> descriptor field
_KEY_ALIASES: dict[str, str] = {
    "server": "host",
    "host": "host",
    "data source": "host",
    "datasource": "host",
    "address": "host",
    "port": "port",
    "database": "database",
    "initial catalog": "database",
    "schema": "database",
    "uid": "user",
    "user": "user",
    "user id": "user",
    "userid": "user",
    "username": "user",
    "pwd": "password",
    "password": "password",
    "charset": "charset",
    "character set": "charset",
    "characterset": "charset",
    "connect timeout": "connect_timeout",
    "connection timeout": "connect_timeout",
    "connecttimeout": "connect_timeout",
}


def _alias(key: str) -> str | None:
    """Descriptor field for a key; case, spacing and underscores are ignored."""
    return _KEY_ALIASES.get(" ".join(key.lower().replace("_", " ").split()))


@dataclass(frozen=True)
class ConnectionDescriptor:
    """Immutable description of how to reach the database."""

    host: str = "localhost"
    port: int = DEFAULT_PORT
    database: str = ""
    user: str | None = None
    password: str | None = field(default=None, repr=False)
    charset: str = DEFAULT_CHARSET
    connect_timeout: int | None = None
    autocommit: bool = True
    options: dict[str, Any] = field(default_factory=dict, repr=False, hash=False)

    @classmethod
    def parse(cls, connection_string: str) -> ConnectionDescriptor:
        """Parse either a ``mysql://`` URL or a ``key=value;`` string."""
        text = (connection_string or "").strip()
        if not text:
            raise ConfigError("Connection string is empty")
        if "://" in text:
            return cls._parse_url(text)
        return cls._parse_pairs(text)

    @classmethod
    def _parse_url(cls, url: str) -> ConnectionDescriptor:
        parts = urlsplit(url)
        if parts.scheme.lower() not in _URL_SCHEMES:
            raise InvalidConfigError(
                "scheme",
                parts.scheme,
                f"Unsupported connection URL scheme: {parts.scheme!r} (expected one of {', '.join(_URL_SCHEMES)})",
            )

        try:
            port = parts.port or DEFAULT_PORT
        except ValueError as e:
            raise InvalidConfigError("port", parts.netloc, f"Invalid port in connection URL: {e}") from e

        values: dict[str, Any] = {
            "host": parts.hostname or "localhost",
            "port": port,
            "database": unquote(parts.path.lstrip("/")),
            "user": unquote(parts.username) if parts.username else None,
            "password": unquote(parts.password) if parts.password is not None else None,
        }

        options: dict[str, Any] = {}
        for key, value in parse_qsl(parts.query, keep_blank_values=True):
            target = _alias(key)
            if target in ("charset", "connect_timeout"):
                values[target] = value
            else:
                options[key] = value
        values["options"] = options

        return cls._build(values)

    @classmethod
    def _parse_pairs(cls, text: str) -> ConnectionDescriptor:
        values: dict[str, Any] = {}
        for chunk in text.split(";"):
            if not chunk.strip():
                continue
            key, sep, value = chunk.partition("=")
            if not sep:
                raise InvalidConfigError("connection_string", chunk.strip(), f"Expected key=value, got {chunk.strip()!r}")
            target = _alias(key)
            if target is None:
                raise InvalidConfigError(key.strip(), "...", f"Unknown connection string key: {key.strip()!r}")
            values[target] = value.strip()
        return cls._build(values)

    @classmethod
    def _build(cls, values: dict[str, Any]) -> ConnectionDescriptor:
        for key in ("port", "connect_timeout"):
            if key in values and not isinstance(values[key], int):
                raw = values[key]
                try:
                    values[key] = int(raw)
                except (TypeError, ValueError):
                    raise InvalidConfigError(key, raw) from None
        if not values.get("host"):
            values.pop("host", None)
        return cls(**values)

    def connect_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``mysql.connector.connect()``."""
        kwargs: dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "charset": self.charset,
            "autocommit": self.autocommit,
        }
        if self.database:
            kwargs["database"] = self.database
        if self.user is not None:
            kwargs["user"] = self.user
        if self.password is not None:
            kwargs["password"] = self.password
        if self.connect_timeout is not None:
            kwargs["connection_timeout"] = self.connect_timeout
        kwargs.update(self.options)
        return kwargs


__all__ = [
    "ConnectionDescriptor",
    "DEFAULT_PORT",
    "DEFAULT_CHARSET",
]
