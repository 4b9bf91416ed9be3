"""Unsigned counters on the wire.

JSON numbers lose precision above 2**53, so counters travel as quoted
decimal strings. Most are uint64; execution payloads also carry uint256.
"""

from typing import Union

from ..exceptions import DecodingError


def encode_uint(value: int, bits: int) -> str:
    """Return the decimal string form of an unsigned ``bits``-wide ``value``."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected int, got {type(value).__name__}")
    if value < 0 or value >= 2**bits:
        raise ValueError(f"{value} is outside the uint{bits} range")
    return str(value)


def encode_uint64(value: int) -> str:
    return encode_uint(value, 64)


def decode_uint(value: Union[str, int], bits: int, path: str = "", allow_number: bool = False) -> int:
    """Parse an unsigned ``bits``-wide counter from its decimal string form.

    Args:
        value: the decoded JSON/YAML value
        bits: width of the counter
        path: field path reported on failure
        allow_number: also accept a bare integer (loose dialects only)

    Raises:
        DecodingError: empty, non-numeric, negative or out-of-range input
    """
    if isinstance(value, bool):
        raise DecodingError("expected decimal string, got bool", path)
    if isinstance(value, int):
        if not allow_number:
            raise DecodingError("expected decimal string, got number", path)
        number = value
    elif isinstance(value, str):
        if value == "":
            raise DecodingError("empty value", path)
        if value.startswith("-"):
            raise DecodingError(f"negative value {value} for unsigned type", path)
        if not value.isdigit() or not value.isascii():
            raise DecodingError(f"invalid value {value}", path)
        number = int(value)
    else:
        raise DecodingError(f"expected decimal string, got {type(value).__name__}", path)

    if number < 0:
        raise DecodingError(f"negative value {number} for unsigned type", path)
    if number >= 2**bits:
        raise DecodingError(f"value {number} overflows uint{bits}", path)
    return number


def decode_uint64(value: Union[str, int], path: str = "", allow_number: bool = False) -> int:
    """Parse a uint64 from its decimal string form."""
    return decode_uint(value, 64, path, allow_number)


def marshal_json(value: int) -> str:
    """Render a counter as a JSON string token."""
    return '"' + encode_uint64(value) + '"'


def unmarshal_json(raw: Union[str, bytes], path: str = "") -> int:
    """Parse a JSON string token holding a counter."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if len(raw) < 2 or not raw.startswith('"') or not raw.endswith('"'):
        raise DecodingError("counter must be a quoted decimal string", path)
    return decode_uint64(raw[1:-1], path)


def marshal_yaml(value: int) -> str:
    """Render a counter as a single-quoted YAML scalar."""
    return "'" + encode_uint64(value) + "'"


def unmarshal_yaml(raw: Union[str, bytes], path: str = "") -> int:
    """Parse a single-quoted YAML scalar holding a counter."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if len(raw) < 2 or not raw.startswith("'") or not raw.endswith("'"):
        raise DecodingError("counter must be a single-quoted decimal string", path)
    return decode_uint64(raw[1:-1], path)
