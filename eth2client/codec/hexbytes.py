"""Fixed-length byte values on the wire.

Every fixed-length byte type renders as ``0x`` followed by exactly twice its
length in lowercase hex. JSON wraps the text in double quotes, YAML in single
quotes. Decoding refuses anything that is not exactly that shape.
"""

from typing import Union

from ..exceptions import DecodingError

JSON_QUOTE = '"'
YAML_QUOTE = "'"


def _fromhex(text: str, path: str) -> bytes:
    payload = text[2:]
    # bytes.fromhex tolerates whitespace between pairs; the wire format does not
    if any(c.isspace() for c in payload):
        raise DecodingError(f"invalid value {text}: whitespace in hex", path)
    try:
        return bytes.fromhex(payload)
    except ValueError as e:
        raise DecodingError(f"invalid value {text}: {e}", path) from e


def encode_hex(value: bytes) -> str:
    """Return ``value`` as ``0x``-prefixed lowercase hex."""
    return "0x" + bytes(value).hex()


def decode_hex(text: str, length: int, path: str = "") -> bytes:
    """Decode ``0x``-prefixed hex that must hold exactly ``length`` bytes.

    Args:
        text: the unquoted value, e.g. ``0x0102``
        length: the declared byte length of the destination type
        path: field path reported on failure

    Returns:
        The decoded bytes

    Raises:
        DecodingError: on a missing prefix, bad hex digits or a length mismatch
    """
    if not isinstance(text, str):
        raise DecodingError(f"expected hex string, got {type(text).__name__}", path)
    if not text.startswith("0x"):
        raise DecodingError("invalid prefix", path)
    raw = _fromhex(text, path)
    if len(raw) != length:
        raise DecodingError(f"incorrect length: expected {length} bytes, got {len(raw)}", path)
    return raw


def decode_hex_variable(text: str, limit: int, path: str = "") -> bytes:
    """Decode ``0x``-prefixed hex of any length up to ``limit`` bytes."""
    if not isinstance(text, str):
        raise DecodingError(f"expected hex string, got {type(text).__name__}", path)
    if not text.startswith("0x"):
        raise DecodingError("invalid prefix", path)
    raw = _fromhex(text, path)
    if len(raw) > limit:
        raise DecodingError(f"too long: limit {limit} bytes, got {len(raw)}", path)
    return raw


def _unquote(raw: Union[str, bytes], quote: str, path: str) -> str:
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodingError("input is not valid UTF-8", path) from e
    if len(raw) < 2 or not raw.startswith(quote):
        raise DecodingError("missing opening quote", path)
    if not raw.endswith(quote):
        raise DecodingError("missing closing quote", path)
    return raw[1:-1]


def marshal_json(value: bytes, length: int) -> str:
    """Render a fixed-length byte value as a JSON string token."""
    if len(value) != length:
        raise ValueError(f"value is {len(value)} bytes, type holds {length}")
    return JSON_QUOTE + encode_hex(value) + JSON_QUOTE


def unmarshal_json(raw: Union[str, bytes], length: int, path: str = "") -> bytes:
    """Parse a JSON string token holding a fixed-length byte value."""
    return decode_hex(_unquote(raw, JSON_QUOTE, path), length, path)


def marshal_yaml(value: bytes, length: int) -> str:
    """Render a fixed-length byte value as a single-quoted YAML scalar."""
    if len(value) != length:
        raise ValueError(f"value is {len(value)} bytes, type holds {length}")
    return YAML_QUOTE + encode_hex(value) + YAML_QUOTE


def unmarshal_yaml(raw: Union[str, bytes], length: int, path: str = "") -> bytes:
    """Parse a single-quoted YAML scalar holding a fixed-length byte value."""
    return decode_hex(_unquote(raw, YAML_QUOTE, path), length, path)

