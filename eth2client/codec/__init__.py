"""Wire codec: fixed-length hex, decimal-string counters and view rendering."""

from . import hexbytes, uint
from .hexbytes import encode_hex, decode_hex, decode_hex_variable
from .uint import encode_uint, encode_uint64, decode_uint, decode_uint64
from .views import to_obj, from_obj, to_json, from_json, to_yaml, from_yaml

__all__ = [
    "hexbytes",
    "uint",
    "encode_hex",
    "decode_hex",
    "decode_hex_variable",
    "encode_uint",
    "encode_uint64",
    "decode_uint",
    "decode_uint64",
    "to_obj",
    "from_obj",
    "to_json",
    "from_json",
    "to_yaml",
    "from_yaml",
]
