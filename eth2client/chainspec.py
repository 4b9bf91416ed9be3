"""Chain configuration maps as reported by beacon nodes."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from .exceptions import DecodingError
from .spec.constants import DOMAIN_APPLICATION_MASK, DOMAIN_BLS_TO_EXECUTION_CHANGE

logger = logging.getLogger(__name__)

# Not every node reports these.
DEFAULT_ENTRIES = {
    "DOMAIN_APPLICATION_MASK": DOMAIN_APPLICATION_MASK,
    "DOMAIN_BLS_TO_EXECUTION_CHANGE": DOMAIN_BLS_TO_EXECUTION_CHANGE,
    "DOMAIN_APPLICATION_BUILDER": DOMAIN_APPLICATION_MASK,
}


def _hex_bytes(value: str):
    try:
        return bytes.fromhex(value[2:])
    except ValueError:
        return None


def _fixed4(raw: bytes) -> bytes:
    return (raw + b"\x00" * 4)[:4]


def _uint(value: str):
    if value.isascii() and value.isdigit():
        return int(value)
    return None


def parse_value(key: str, value: Any) -> Any:
    """Convert one reported configuration value to its natural type."""
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return value
    if isinstance(value, int):
        value = str(value)

    if value.startswith("0x"):
        raw = _hex_bytes(value)
        if raw is not None:
            if key.startswith("DOMAIN_") or key.endswith("_FORK_VERSION"):
                return _fixed4(raw)
            return raw

    number = _uint(value)
    if number is not None and number != 0:
        if key.endswith("_TIME"):
            return datetime.fromtimestamp(number, tz=timezone.utc)
        if key.startswith("SECONDS_PER_") or key == "GENESIS_DELAY":
            return timedelta(seconds=number)
    if number is not None:
        return number
    return value


def parse_spec(data: dict) -> dict:
    """Convert a node's configuration map to typed values.

    Hex values become bytes (4 bytes for domain types and fork versions),
    non-zero ``*_TIME`` values become UTC datetimes, non-zero
    ``SECONDS_PER_*`` and ``GENESIS_DELAY`` become timedeltas and other
    decimal strings become ints. Anything else is kept as reported.
    """
    spec = {key: parse_value(key, value) for key, value in data.items()}
    for key, value in DEFAULT_ENTRIES.items():
        spec.setdefault(key, value)
    return spec


def slot_duration(spec: dict) -> timedelta:
    value = spec.get("SECONDS_PER_SLOT")
    if isinstance(value, timedelta):
        return value
    if isinstance(value, int):
        return timedelta(seconds=value)
    raise DecodingError("missing or non-numeric value", "SECONDS_PER_SLOT")


def spec_uint(spec: dict, key: str) -> int:
    value = spec.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodingError("missing or non-numeric value", key)
    return value
