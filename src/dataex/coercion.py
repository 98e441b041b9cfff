"""Scalar coercion between database values and requested Python types.

``coerce(None, T)`` yields ``default_for(T)``; this is the "absent result"
rule used by scalar queries and by typed record fields holding NULL.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar

from dataex.errors import CoercionError

T = TypeVar("T")

_DEFAULTS: dict[type, Any] = {
    bool: False,
    int: 0,
    float: 0.0,
    Decimal: Decimal(0),
    str: "",
    bytes: b"",
}


def default_for(target: type[T] | None) -> T | None:
    """Default value of ``target``: zero/empty for scalars, ``None`` otherwise."""
    if target is None:
        return None
    return _DEFAULTS.get(target)


def _to_int(value: Any) -> int:
    if isinstance(value, float) and not value.is_integer():
        raise ValueError("non-integral value")
    if isinstance(value, Decimal) and value != value.to_integral_value():
        raise ValueError("non-integral value")
    if isinstance(value, (float, Decimal)):
        return int(value)
    if isinstance(value, bytes):
        value = value.decode()
    return int(value)


def _to_float(value: Any) -> float:
    if isinstance(value, bytes):
        value = value.decode()
    return float(value)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bytes):
        value = value.decode()
    if isinstance(value, float):
        value = repr(value)
    return Decimal(value)


def _to_bool(value: Any) -> bool:
    # TINYINT(1) and BIT(1) columns
    if isinstance(value, (int, Decimal)):
        return bool(value)
    if isinstance(value, bytes) and len(value) == 1:
        return value != b"\x00"
    raise TypeError("only numeric values convert to bool")


def _to_str(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode()
    return str(value)


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return value.encode()
    if isinstance(value, bytearray):
        return bytes(value)
    raise TypeError("only text converts to bytes")


def _to_date(value: Any) -> date:
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise TypeError("only ISO text converts to date")


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    if type(value) is date:
        return datetime(value.year, value.month, value.day)
    raise TypeError("only ISO text or dates convert to datetime")


_CONVERTERS: dict[type, Callable[[Any], Any]] = {
    int: _to_int,
    float: _to_float,
    Decimal: _to_decimal,
    bool: _to_bool,
    str: _to_str,
    bytes: _to_bytes,
    date: _to_date,
    datetime: _to_datetime,
}


def coerce(value: Any, target: type[T] | None) -> T | Any:
    """
    Convert ``value`` to ``target``.

    ``target=None`` returns the value unchanged. Values already of the
    target type pass through, except that a ``bool`` requested as ``int``
    is converted to ``0``/``1`` rather than returned as-is.
    Lossy or ambiguous conversions (``2.5 -> int``, ``"false" -> bool``)
    raise :class:`CoercionError`.
    """
    if target is None:
        return value
    if value is None:
        return default_for(target)
    if isinstance(value, target) and not (isinstance(value, bool) and target is not bool):
        if target is date and isinstance(value, datetime):
            return value.date()
        return value

    converter = _CONVERTERS.get(target)
    if converter is None:
        if target in (time, timedelta):
            raise CoercionError(value, target)
        try:
            return target(value)  # type: ignore[call-arg]
        except (TypeError, ValueError) as e:
            raise CoercionError(value, target, cause=e) from e

    try:
        return converter(value)
    except (TypeError, ValueError, InvalidOperation, UnicodeDecodeError) as e:
        raise CoercionError(value, target, cause=e) from e


__all__ = [
    "coerce",
    "default_for",
]
