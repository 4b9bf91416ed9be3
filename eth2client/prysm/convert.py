"""Conversion between Prysm's JSON gateway and canonical views.

The gateway renders protobuf messages: field names are lowerCamelCase
versions of the proto names, byte fields are base64, 64-bit counters are
decimal strings and omitted fields take their zero value. A few proto
messages name their fields differently from the canonical containers.
"""

import base64
import binascii
import re
from datetime import datetime, timezone
from typing import Any

from remerkleable.basic import boolean, uint
from remerkleable.bitfields import Bitlist, Bitvector
from remerkleable.byte_arrays import ByteList, ByteVector
from remerkleable.complex import Container, List, Vector
from remerkleable.core import View

from ..codec import decode_uint64, encode_hex
from ..exceptions import DecodingError

# (container, canonical field) -> proto field
PROTO_FIELD_NAMES = {
    ("AttestationData", "index"): "committee_index",
    ("ProposerSlashing", "signed_header_1"): "header_1",
    ("ProposerSlashing", "signed_header_2"): "header_2",
    ("SignedBeaconBlockHeader", "message"): "header",
    ("SignedBeaconBlock", "message"): "block",
    ("SignedVoluntaryExit", "message"): "exit",
    ("Validator", "pubkey"): "public_key",
    ("DepositData", "pubkey"): "public_key",
}

# Gateway config names that do not split cleanly on case changes.
CONFIG_NAME_OVERRIDES = {
    "WhistleBlowerRewardQuotient": "WHISTLEBLOWER_REWARD_QUOTIENT",
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_BYTE_ARRAY = re.compile(r"^\[([0-9]+( [0-9]+)*)?\]$")


def camel(name: str) -> str:
    """``proposer_index`` -> ``proposerIndex``, ``header_1`` -> ``header1``."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def proto_name(container: type, field: str) -> str:
    return camel(PROTO_FIELD_NAMES.get((container.__name__, field), field))


def config_name(name: str) -> str:
    """``SecondsPerETH1Block`` -> ``SECONDS_PER_ETH1_BLOCK``."""
    if name in CONFIG_NAME_OVERRIDES:
        return CONFIG_NAME_OVERRIDES[name]
    return _CAMEL_BOUNDARY.sub("_", name).upper()


def parse_byte_array(value: str) -> bytes:
    """Parse Go's ``[1 2 3 4]`` rendering of a byte slice."""
    if not _BYTE_ARRAY.match(value):
        raise ValueError(f"not a byte array: {value}")
    inner = value[1:-1]
    if not inner:
        return b""
    return bytes(int(part) for part in inner.split(" "))


def config_to_spec(config: dict) -> dict:
    """Map a gateway config map onto canonical names and textual values.

    Byte arrays are re-rendered as ``0x`` hex so the canonical spec parser
    treats them like every other backend's.
    """
    values = {}
    for key, value in config.items():
        if isinstance(value, str) and _BYTE_ARRAY.match(value):
            value = encode_hex(parse_byte_array(value))
        values[config_name(key)] = value
    return values


def decode_base64(text: Any, path: str = "") -> bytes:
    if not isinstance(text, str):
        raise DecodingError(f"expected base64 string, got {type(text).__name__}", path)
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        pass
    try:
        return base64.urlsafe_b64decode(text)
    except (binascii.Error, ValueError) as e:
        raise DecodingError(f"invalid base64 value: {e}", path) from e


def encode_base64(value: bytes) -> str:
    return base64.b64encode(bytes(value)).decode("ascii")


def decode_fixed(text: Any, length: int, path: str = "") -> bytes:
    raw = decode_base64(text, path)
    if len(raw) != length:
        raise DecodingError(f"incorrect length: expected {length} bytes, got {len(raw)}", path)
    return raw


def parse_timestamp(text: Any, path: str = "") -> datetime:
    """Parse a protobuf timestamp (RFC 3339, UTC) as rendered by the gateway."""
    if not isinstance(text, str):
        raise DecodingError(f"expected timestamp, got {type(text).__name__}", path)
    value = text.replace("Z", "+00:00")
    if "." in value:
        # Trim nanoseconds to what datetime can hold.
        whole, _, rest = value.partition(".")
        digits = "".join(c for c in rest if c.isdigit())
        zone = rest[len(digits):]
        value = f"{whole}.{digits[:6]}{zone}"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise DecodingError(f"invalid timestamp {text}", path) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_gateway(view: View) -> Any:
    """Render a view as gateway JSON values."""
    if isinstance(view, boolean):
        return bool(view)
    if isinstance(view, uint):
        return str(int(view))
    if isinstance(view, (ByteVector, ByteList)):
        return encode_base64(bytes(view))
    if isinstance(view, (Bitlist, Bitvector)):
        return encode_base64(view.encode_bytes())
    if isinstance(view, Container):
        cls = view.__class__
        return {proto_name(cls, name): to_gateway(getattr(view, name)) for name in cls.fields().keys()}
    if isinstance(view, (List, Vector)):
        return [to_gateway(item) for item in view]
    raise TypeError(f"unsupported view type {type(view).__name__}")


def from_gateway(cls: type, obj: Any, path: str = "") -> View:
    """Build a view of ``cls`` from gateway JSON values."""
    if obj is None:
        # Omitted fields hold their zero value.
        return cls.default(None)
    if issubclass(cls, boolean):
        if not isinstance(obj, bool):
            raise DecodingError(f"expected bool, got {type(obj).__name__}", path)
        return cls(obj)
    if issubclass(cls, uint):
        number = decode_uint64(obj, path, allow_number=True)
        if number >= 2 ** (cls.type_byte_length() * 8):
            raise DecodingError(f"value {number} overflows {cls.__name__}", path)
        return cls(number)
    if issubclass(cls, ByteVector):
        return cls(decode_fixed(obj, cls.type_byte_length(), path))
    if issubclass(cls, ByteList):
        raw = decode_base64(obj, path)
        if len(raw) > cls.limit():
            raise DecodingError(f"too long: limit {cls.limit()} bytes, got {len(raw)}", path)
        return cls(raw)
    if issubclass(cls, (Bitlist, Bitvector)):
        raw = decode_base64(obj, path)
        try:
            return cls.decode_bytes(raw)
        except Exception as e:
            raise DecodingError(f"invalid bitfield: {e}", path) from e
    if issubclass(cls, Container):
        if not isinstance(obj, dict):
            raise DecodingError(f"expected object, got {type(obj).__name__}", path)
        values = {}
        for name, field_cls in cls.fields().items():
            key = proto_name(cls, name)
            field_path = f"{path}.{key}" if path else key
            values[name] = from_gateway(field_cls, obj.get(key), field_path)
        return cls(**values)
    if issubclass(cls, (List, Vector)):
        if not isinstance(obj, list):
            raise DecodingError(f"expected array, got {type(obj).__name__}", path)
        if issubclass(cls, List) and len(obj) > cls.limit():
            raise DecodingError(f"too many elements: limit {cls.limit()}, got {len(obj)}", path)
        if issubclass(cls, Vector) and len(obj) != cls.vector_length():
            raise DecodingError(
                f"incorrect length: expected {cls.vector_length()} elements, got {len(obj)}", path
            )
        element_cls = cls.element_cls()
        return cls(*(from_gateway(element_cls, item, f"{path}[{i}]") for i, item in enumerate(obj)))
    raise TypeError(f"unsupported view type {cls.__name__}")
