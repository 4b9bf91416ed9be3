"""Tests for chain configuration parsing."""

from datetime import datetime, timedelta, timezone

import pytest

from eth2client.chainspec import parse_spec, parse_value, slot_duration, spec_uint
from eth2client.exceptions import DecodingError
from eth2client.spec.constants import DOMAIN_APPLICATION_MASK


@pytest.mark.parametrize(
    "key, value, expected",
    [
        ("SLOTS_PER_EPOCH", "32", 32),
        ("SLOTS_PER_EPOCH", 32, 32),
        ("SECONDS_PER_SLOT", "12", timedelta(seconds=12)),
        ("GENESIS_DELAY", "604800", timedelta(days=7)),
        ("MIN_GENESIS_TIME", "1606824000", datetime(2020, 12, 1, 12, 0, tzinfo=timezone.utc)),
        ("MIN_GENESIS_TIME", "0", 0),
        ("DOMAIN_RANDAO", "0x02000000", b"\x02\x00\x00\x00"),
        ("ALTAIR_FORK_VERSION", "0x01", b"\x01\x00\x00\x00"),
        ("DEPOSIT_CONTRACT_ADDRESS", "0x00000000219ab540356cbb839cbe05303d7705fa",
         bytes.fromhex("00000000219ab540356cbb839cbe05303d7705fa")),
        ("CONFIG_NAME", "mainnet", "mainnet"),
        ("BAD_HEX", "0xzz", "0xzz"),
        ("FLAG", True, True),
    ],
)
def test_parse_value(key, value, expected):
    assert parse_value(key, value) == expected


def test_parse_spec_adds_defaults():
    spec = parse_spec({"SLOTS_PER_EPOCH": "32", "DOMAIN_APPLICATION_MASK": "0x00000002"})
    assert spec["SLOTS_PER_EPOCH"] == 32
    assert spec["DOMAIN_APPLICATION_MASK"] == b"\x00\x00\x00\x02"
    assert spec["DOMAIN_APPLICATION_BUILDER"] == DOMAIN_APPLICATION_MASK
    assert "DOMAIN_BLS_TO_EXECUTION_CHANGE" in spec


def test_slot_duration():
    assert slot_duration({"SECONDS_PER_SLOT": timedelta(seconds=6)}) == timedelta(seconds=6)
    assert slot_duration({"SECONDS_PER_SLOT": 0}) == timedelta(0)
    with pytest.raises(DecodingError):
        slot_duration({})


def test_spec_uint():
    assert spec_uint({"SLOTS_PER_EPOCH": 32}, "SLOTS_PER_EPOCH") == 32
    with pytest.raises(DecodingError) as excinfo:
        spec_uint({"SLOTS_PER_EPOCH": "x"}, "SLOTS_PER_EPOCH")
    assert excinfo.value.path == "SLOTS_PER_EPOCH"
    with pytest.raises(DecodingError):
        spec_uint({"FLAG": True}, "FLAG")
