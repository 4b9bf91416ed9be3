"""Tests for the Prysm JSON gateway adapter."""

import asyncio
import base64
import json

import pytest

from eth2client.api.types import BeaconCommitteeSubscription, Fork, HeadEvent
from eth2client.exceptions import BackendRejected, DecodingError
from eth2client.prysm import PrysmClient
from eth2client.spec.constants import FAR_FUTURE_EPOCH
from eth2client.spec.types import Attestation

from .conftest import PUBKEY_1, PUBKEY_2, ROOT_A, ROOT_B, ROOT_C, ROOT_D

PREFIX = "/eth/v1alpha1"


def b64(value: str) -> str:
    return base64.b64encode(bytes.fromhex(value[2:])).decode("ascii")


def block(slot: str, state_root: str = ROOT_A) -> dict:
    return {"blockContainers": [{"block": {"block": {"slot": slot, "stateRoot": b64(state_root)}}}]}


def validator_entry(index: str, pubkey: str) -> dict:
    return {
        "index": index,
        "validator": {
            "publicKey": b64(pubkey),
            "effectiveBalance": "32000000000",
            "exitEpoch": str(FAR_FUTURE_EPOCH),
            "withdrawableEpoch": str(FAR_FUTURE_EPOCH),
        },
    }


@pytest.fixture
def client(config, transport):
    transport.get_json(
        f"{PREFIX}/beacon/config",
        {
            "config": {
                "SlotsPerEpoch": "32",
                "SecondsPerSlot": "12",
                "GenesisForkVersion": "[0 0 0 1]",
                "WhistleBlowerRewardQuotient": "512",
            }
        },
    )
    transport.get_json(
        f"{PREFIX}/node/genesis",
        {"genesisTime": "2020-12-01T12:00:23Z", "genesisValidatorsRoot": b64(ROOT_D)},
    )
    transport.get_json(
        f"{PREFIX}/beacon/chainhead",
        {
            "headSlot": "130",
            "headEpoch": "4",
            "headBlockRoot": b64(ROOT_B),
            "finalizedSlot": "64",
            "finalizedEpoch": "2",
            "finalizedBlockRoot": b64(ROOT_C),
            "justifiedSlot": "96",
            "justifiedEpoch": "3",
            "justifiedBlockRoot": b64(ROOT_D),
            "previousJustifiedEpoch": "2",
            "previousJustifiedBlockRoot": b64(ROOT_C),
        },
    )
    transport.get_json(f"{PREFIX}/beacon/blocks", block("130"))
    return PrysmClient(config, transport)


@pytest.mark.asyncio
async def test_spec_and_genesis(client):
    spec = await client.spec()
    assert await client.slots_per_epoch() == 32
    assert spec["WHISTLEBLOWER_REWARD_QUOTIENT"] == 512
    genesis = await client.genesis()
    assert int(genesis.genesis_time.timestamp()) == 1606824023
    assert genesis.genesis_validators_root == bytes.fromhex(ROOT_D[2:])
    assert genesis.genesis_fork_version == b"\x00\x00\x00\x01"
    version = b"\x00\x00\x00\x01"
    assert await client.fork_schedule() == [Fork(previous_version=version, current_version=version, epoch=0)]


@pytest.mark.asyncio
async def test_chain_head_takes_state_root_from_block(client, transport):
    head = await client.chain_head()
    assert head.slot == 130
    assert head.block_root == bytes.fromhex(ROOT_B[2:])
    assert head.state_root == bytes.fromhex(ROOT_A[2:])
    assert head.finalized_slot == 64
    assert transport.sent("GET", f"{PREFIX}/beacon/blocks")[0].params == [("slot", "130")]


@pytest.mark.asyncio
async def test_finality(client):
    finality = await client.finality("head")
    assert finality.finalized.epoch == 2
    assert finality.current_justified.epoch == 3
    assert finality.current_justified.root == bytes.fromhex(ROOT_D[2:])
    assert finality.previous_justified.root == bytes.fromhex(ROOT_C[2:])


@pytest.mark.asyncio
async def test_block_from_earlier_slot_is_empty(client):
    assert await client.signed_beacon_block(131) is None


@pytest.mark.asyncio
async def test_block_from_later_slot_fails(client, transport):
    transport.responses[("GET", f"{PREFIX}/beacon/blocks")] = [json.dumps(block("132")).encode()]
    with pytest.raises(DecodingError, match="requested 131, returned 132"):
        await client.signed_beacon_block(131)


@pytest.mark.asyncio
async def test_block_with_omitted_zero_fields(client, transport):
    transport.responses[("GET", f"{PREFIX}/beacon/blocks")] = [json.dumps(block("130")).encode()]
    signed = await client.signed_beacon_block(130)
    assert signed.message.slot == 130
    assert signed.message.proposer_index == 0
    assert bytes(signed.message.parent_root) == b"\x00" * 32
    assert bytes(signed.signature) == b"\x00" * 96
    assert len(signed.message.body.attestations) == 0


@pytest.mark.asyncio
async def test_empty_slot_and_genesis_block(client, transport):
    transport.responses[("GET", f"{PREFIX}/beacon/blocks")] = [json.dumps({"blockContainers": []}).encode()]
    assert await client.signed_beacon_block(0) is None
    assert transport.sent("GET", f"{PREFIX}/beacon/blocks")[0].params == [("genesis", "true")]


@pytest.mark.asyncio
async def test_beacon_committees(client, transport):
    transport.get_json(
        f"{PREFIX}/beacon/committees",
        {
            "epoch": "4",
            "committees": {
                "129": {"committees": [{"validatorIndices": ["4"]}]},
                "128": {"committees": [{"validatorIndices": ["3", "1"]}, {"validatorIndices": ["2"]}]},
            },
        },
    )
    committees = await client.beacon_committees(130)
    assert [(c.slot, c.index, c.validators) for c in committees] == [
        (128, 0, (3, 1)),
        (128, 1, (2,)),
        (129, 0, (4,)),
    ]
    assert transport.sent("GET", f"{PREFIX}/beacon/committees")[0].params == [("epoch", "4")]


@pytest.mark.asyncio
async def test_validators_follow_page_size_and_tokens(client, transport):
    path = f"{PREFIX}/validators"
    transport.add(
        "GET",
        path,
        error=BackendRejected(400, "Requested page size 9999999 can not be greater than max size 500"),
    )
    transport.get_json(path, {"validatorList": [validator_entry("0", PUBKEY_1)], "nextPageToken": "2"})
    transport.get_json(path, {"validatorList": [validator_entry("1", PUBKEY_2)], "nextPageToken": ""})
    transport.get_json(
        f"{PREFIX}/validators/balances",
        {"balances": [{"index": "0", "balance": "32000000000"}, {"index": "1", "balance": "31000000000"}]},
    )

    validators = await client.validators("head")
    assert sorted(validators) == [0, 1]
    assert validators[1].balance == 31000000000
    assert validators[0].pubkey == bytes.fromhex(PUBKEY_1[2:])
    assert validators[0].status.is_active()

    requests = transport.sent("GET", path)
    assert requests[0].params == [("pageSize", "9999999")]
    assert requests[1].params == [("epoch", "4"), ("pageSize", "500")]
    assert requests[2].params == [("epoch", "4"), ("pageSize", "500"), ("pageToken", "2")]


@pytest.mark.asyncio
async def test_page_size_falls_back_to_default(client, transport):
    path = f"{PREFIX}/validators/balances"
    transport.add("GET", f"{PREFIX}/validators", error=BackendRejected(500, "boom"))
    transport.get_json(path, {"balances": [{"index": "7", "balance": "5"}]})
    balances = await client.validator_balances(64, [7])
    assert balances == {7: 5}
    assert transport.sent("GET", path)[0].params == [("epoch", "2"), ("indices", "7"), ("pageSize", "250")]


@pytest.mark.asyncio
async def test_duties(client, transport):
    transport.get_json(f"{PREFIX}/validators", {"validatorList": [validator_entry("0", PUBKEY_1)]})
    transport.get_json(
        f"{PREFIX}/validator/duties",
        {
            "currentEpochDuties": [
                {
                    "committee": ["5", "0", "9"],
                    "committeeIndex": "2",
                    "attesterSlot": "131",
                    "proposerSlots": ["133"],
                    "validatorIndex": "0",
                    "publicKey": b64(PUBKEY_1),
                },
                {"committee": [], "validatorIndex": "1", "publicKey": b64(PUBKEY_2)},
            ]
        },
    )
    duties = await client.attester_duties(4, [0])
    assert len(duties) == 1
    duty = duties[0]
    assert duty.slot == 131
    assert duty.committee_index == 2
    assert duty.committee_length == 3
    assert duty.validator_committee_index == 1
    assert duty.committees_at_slot == 0
    assert transport.sent("GET", f"{PREFIX}/validator/duties")[0].params == [
        ("epoch", "4"),
        ("publicKeys", b64(PUBKEY_1)),
    ]

    proposals = await client.proposer_duties(4, [0])
    assert [(p.slot, p.validator_index) for p in proposals] == [(133, 0)]
    assert await client.attester_duties(4, []) == []


@pytest.mark.asyncio
async def test_submissions(client, transport):
    transport.post_json(f"{PREFIX}/validator/attestation", {})
    transport.post_json(f"{PREFIX}/validator/subnet/subscribe", {})
    await client.submit_attestation(Attestation())
    body = transport.sent("POST", f"{PREFIX}/validator/attestation")[0].json()
    assert body["data"]["committeeIndex"] == "0"
    assert body["aggregationBits"] == base64.b64encode(b"\x01").decode("ascii")

    await client.submit_beacon_committee_subscriptions(
        [BeaconCommitteeSubscription(slot=40, committee_index=3, committee_size=64, validator_index=1, aggregate=True)]
    )
    assert transport.sent("POST", f"{PREFIX}/validator/subnet/subscribe")[0].json() == {
        "slots": ["40"],
        "committeeIds": ["3"],
        "isAggregator": [True],
    }


@pytest.mark.asyncio
async def test_head_stream(client, transport):
    transport.stream(
        f"{PREFIX}/beacon/chainhead/stream",
        [
            json.dumps({"result": {"headSlot": "130", "headEpoch": "4", "headBlockRoot": b64(ROOT_B)}}) + "\n",
            json.dumps({"error": {"message": "stream closed"}}) + "\n",
        ],
    )
    received = asyncio.Queue()
    await client.on_beacon_chain_head_updated(received.put_nowait)
    event = await asyncio.wait_for(received.get(), timeout=1)
    assert event == HeadEvent(
        slot=130,
        block=bytes.fromhex(ROOT_B[2:]),
        state=bytes.fromhex(ROOT_A[2:]),
        epoch_transition=True,
    )
    await client.close()
