"""Reduce gateway SDK objects and payloads to plain JSON-safe dicts for storage."""

from collections.abc import Mapping

SESSION_KEYS = (
    "id",
    "object",
    "created",
    "livemode",
    "status",
    "amount",
    "amount_total",
    "currency",
    "payment_status",
    "metadata",
    "customer_email",
)


def to_plain(source, keys: tuple[str, ...] = SESSION_KEYS) -> dict:
    plain = {}
    for key in keys:
        if isinstance(source, Mapping):
            value = source.get(key)
        else:
            value = getattr(source, key, None)
        plain[key] = _jsonable(value)
    return plain


def _jsonable(value):
    if value is None or isinstance(value, str | int | float | bool):
        return value
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_jsonable(v) for v in value]
    return str(value)


def to_minor_units(amount: float) -> int:
    return int(round(amount * 100))


def from_minor_units(amount) -> float | None:
    if amount is None:
        return None
    return round(int(amount) / 100, 2)
