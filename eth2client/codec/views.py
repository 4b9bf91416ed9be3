"""Canonical JSON/YAML rendering of remerkleable views.

One walker covers every container instead of a marshal function per type:
counters become decimal strings, fixed and variable byte values become
``0x`` hex, bitfields become the hex of their SSZ encoding, containers become
objects keyed by field name and lists/vectors become arrays.
"""

import json
from typing import Any, Union

import yaml
from remerkleable.basic import boolean, uint
from remerkleable.bitfields import Bitlist, Bitvector
from remerkleable.byte_arrays import ByteList, ByteVector
from remerkleable.complex import Container, List, Vector
from remerkleable.core import View

from ..exceptions import DecodingError
from .hexbytes import encode_hex, decode_hex, decode_hex_variable
from .uint import encode_uint, decode_uint


def to_obj(view: View) -> Any:
    """Convert a view to plain JSON-compatible Python values."""
    if isinstance(view, boolean):
        return bool(view)
    if isinstance(view, uint):
        return encode_uint(int(view), view.type_byte_length() * 8)
    if isinstance(view, (ByteVector, ByteList)):
        return encode_hex(bytes(view))
    if isinstance(view, (Bitlist, Bitvector)):
        return encode_hex(view.encode_bytes())
    if isinstance(view, Container):
        return {name: to_obj(getattr(view, name)) for name in view.__class__.fields().keys()}
    if isinstance(view, (List, Vector)):
        return [to_obj(item) for item in view]
    raise TypeError(f"unsupported view type {type(view).__name__}")


def from_obj(cls: type, obj: Any, path: str = "") -> View:
    """Build a view of ``cls`` from plain values, reporting the failing field path."""
    if issubclass(cls, boolean):
        if not isinstance(obj, bool):
            raise DecodingError(f"expected bool, got {type(obj).__name__}", path)
        return cls(obj)
    if issubclass(cls, uint):
        return cls(decode_uint(obj, cls.type_byte_length() * 8, path))
    if issubclass(cls, ByteVector):
        return cls(decode_hex(obj, cls.type_byte_length(), path))
    if issubclass(cls, ByteList):
        return cls(decode_hex_variable(obj, cls.limit(), path))
    if issubclass(cls, (Bitlist, Bitvector)):
        raw = decode_hex_variable(obj, 2**32, path)
        try:
            return cls.decode_bytes(raw)
        except Exception as e:
            raise DecodingError(f"invalid bitfield: {e}", path) from e
    if issubclass(cls, Container):
        if not isinstance(obj, dict):
            raise DecodingError(f"expected object, got {type(obj).__name__}", path)
        values = {}
        for name, field_cls in cls.fields().items():
            field_path = f"{path}.{name}" if path else name
            if name not in obj:
                raise DecodingError("missing field", field_path)
            values[name] = from_obj(field_cls, obj[name], field_path)
        return cls(**values)
    if issubclass(cls, (List, Vector)):
        if not isinstance(obj, list):
            raise DecodingError(f"expected array, got {type(obj).__name__}", path)
        element_cls = cls.element_cls()
        if issubclass(cls, List) and len(obj) > cls.limit():
            raise DecodingError(f"too many elements: limit {cls.limit()}, got {len(obj)}", path)
        if issubclass(cls, Vector) and len(obj) != cls.vector_length():
            raise DecodingError(
                f"incorrect length: expected {cls.vector_length()} elements, got {len(obj)}", path
            )
        items = [from_obj(element_cls, item, f"{path}[{i}]") for i, item in enumerate(obj)]
        return cls(*items)
    raise TypeError(f"unsupported view type {cls.__name__}")


def to_json(view: View) -> str:
    """Render a view as compact canonical JSON."""
    return json.dumps(to_obj(view), separators=(",", ":"))


def from_json(cls: type, data: Union[str, bytes]) -> View:
    """Parse canonical JSON into a view of ``cls``."""
    try:
        obj = json.loads(data)
    except json.JSONDecodeError as e:
        raise DecodingError(f"invalid JSON: {e}") from e
    return from_obj(cls, obj)


class _QuotedStr(str):
    """A string the YAML dumper must wrap in single quotes."""


class _WireDumper(yaml.SafeDumper):
    pass


def _represent_quoted(dumper: yaml.SafeDumper, data: _QuotedStr) -> yaml.ScalarNode:
    return dumper.represent_scalar("tag:yaml.org,2002:str", str(data), style="'")


_WireDumper.add_representer(_QuotedStr, _represent_quoted)


def _quote_scalars(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {key: _quote_scalars(value) for key, value in obj.items()}
    if isinstance(obj, list):
        return [_quote_scalars(item) for item in obj]
    if isinstance(obj, str):
        return _QuotedStr(obj)
    return obj


def to_yaml(view: View) -> str:
    """Render a view as flow-style YAML with single-quoted scalars."""
    text = yaml.dump(
        _quote_scalars(to_obj(view)),
        Dumper=_WireDumper,
        default_flow_style=True,
        sort_keys=False,
        width=2**31 - 1,
    )
    return text.strip()


def from_yaml(cls: type, data: Union[str, bytes]) -> View:
    """Parse YAML into a view of ``cls``."""
    try:
        obj = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise DecodingError(f"invalid YAML: {e}") from e
    return from_obj(cls, obj)
