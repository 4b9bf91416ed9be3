"""Text rewrites between backend JSON dialects and canonical JSON.

Lighthouse's legacy API writes counters as bare JSON numbers where the
canonical dialect quotes them. The rewrite is a fixed set of regular
expressions applied to the raw text, in both directions. It only handles the
compact form Lighthouse emits (no whitespace around separators).

Teku's legacy API speaks quoted counters already but names a few fields
differently.
"""

import re
from typing import Union

_LOOSE_TO_CANONICAL = (
    (re.compile(r":([0-9]+)"), r':"\1"'),
    (re.compile(r"\[([0-9]+)"), r'["\1"'),
    (re.compile(r",([0-9]+)"), r',"\1"'),
    (re.compile(r"([0-9]+)\]"), r'"\1"]'),
)

_CANONICAL_TO_LOOSE = (
    (re.compile(r':"([0-9]+)"'), r":\1"),
    (re.compile(r'\["([0-9]+)"'), r"[\1"),
    (re.compile(r',"([0-9]+)"'), r",\1"),
    (re.compile(r'"([0-9]+)"\]'), r"\1]"),
)

_TEKU_BLOCK_HEADERS = re.compile(r'"header_([12])"')
_TEKU_AGGREGATOR_INDEX = re.compile(r'"aggregator_index"')
_TEKU_AGGREGATE = re.compile(r'"aggregate"')


def _text(data: Union[str, bytes]) -> str:
    if isinstance(data, (bytes, bytearray)):
        return data.decode("utf-8")
    return data


def lighthouse_to_canonical(data: Union[str, bytes]) -> str:
    """Quote every bare integer in Lighthouse JSON."""
    text = _text(data)
    for pattern, replacement in _LOOSE_TO_CANONICAL:
        text = pattern.sub(replacement, text)
    return text


def canonical_to_lighthouse(data: Union[str, bytes]) -> str:
    """Unquote every decimal-string integer for Lighthouse."""
    text = _text(data)
    for pattern, replacement in _CANONICAL_TO_LOOSE:
        text = pattern.sub(replacement, text)
    return text


def teku_block_to_canonical(data: Union[str, bytes]) -> str:
    """Rename Teku's proposer slashing ``header_N`` fields to ``signed_header_N``."""
    return _TEKU_BLOCK_HEADERS.sub(r'"signed_header_\1"', _text(data))


def canonical_aggregate_to_teku(data: Union[str, bytes]) -> str:
    """Rename aggregate-and-proof fields to the names Teku expects."""
    text = _TEKU_AGGREGATOR_INDEX.sub('"index"', _text(data))
    return _TEKU_AGGREGATE.sub('"attestation"', text)


__all__ = [
    "lighthouse_to_canonical",
    "canonical_to_lighthouse",
    "teku_block_to_canonical",
    "canonical_aggregate_to_teku",
]
