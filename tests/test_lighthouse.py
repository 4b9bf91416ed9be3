"""Tests for the Lighthouse legacy API adapter."""

import json

import pytest

from eth2client.codec import to_obj
from eth2client.domain import compute_domain
from eth2client.exceptions import BackendRejected, SubmissionFailed
from eth2client.api.types import BeaconCommitteeSubscription
from eth2client.lighthouse import LighthouseClient
from eth2client.quirks import canonical_to_lighthouse
from eth2client.spec.constants import DOMAIN_BEACON_ATTESTER, FAR_FUTURE_EPOCH
from eth2client.spec.types import Attestation, Fork, Validator

from .conftest import PUBKEY_1, PUBKEY_2, ROOT_A, ROOT_B, ROOT_C, ROOT_D

HEAD = (
    '{"slot":130,"block_root":"%s","state_root":"%s","finalized_slot":64,"finalized_block_root":"%s",'
    '"justified_slot":96,"justified_block_root":"%s","previous_justified_slot":64,'
    '"previous_justified_block_root":"%s"}'
) % (ROOT_B, ROOT_A, ROOT_C, ROOT_D, ROOT_C)

REFUSAL = "Invalid attestation: expected: SubnetId(7), got: SubnetId(0)"


def loose(obj):
    """Render canonical JSON the way Lighthouse writes it."""
    return canonical_to_lighthouse(json.dumps(obj, separators=(",", ":")))


def validator_record(pubkey):
    record = Validator(
        pubkey=bytes.fromhex(pubkey[2:]),
        effective_balance=32000000000,
        exit_epoch=FAR_FUTURE_EPOCH,
        withdrawable_epoch=FAR_FUTURE_EPOCH,
    )
    return to_obj(record)


@pytest.fixture
def client(config, transport):
    transport.get_json("/spec", loose({"slots_per_epoch": "32", "seconds_per_slot": "12", "genesis_fork_version": "0x00000000"}))
    transport.get_json("/beacon/head", HEAD)
    transport.get_json("/beacon/genesis_time", "1606824023")
    transport.get_json("/beacon/genesis_validators_root", f'"{ROOT_A}"')
    return LighthouseClient(config, transport)


@pytest.mark.asyncio
async def test_spec_and_genesis(client):
    assert await client.slots_per_epoch() == 32
    genesis = await client.genesis()
    assert int(genesis.genesis_time.timestamp()) == 1606824023
    assert genesis.genesis_validators_root == bytes.fromhex(ROOT_A[2:])
    assert genesis.genesis_fork_version == b"\x00\x00\x00\x00"


@pytest.mark.asyncio
async def test_spec_without_slots_per_epoch(config, transport):
    transport.get_json("/spec", loose({"seconds_per_slot": "12"}))
    transport.get_json("/spec/slots_per_epoch", "8")
    client = LighthouseClient(config, transport)
    assert await client.slots_per_epoch() == 8


@pytest.mark.asyncio
async def test_chain_head_and_finality(client):
    head = await client.chain_head()
    assert head.slot == 130
    assert head.finalized_slot == 64
    finality = await client.finality("head")
    assert finality.finalized.epoch == 2
    assert finality.current_justified.epoch == 3
    assert finality.current_justified.root == bytes.fromhex(ROOT_D[2:])


@pytest.mark.asyncio
async def test_domain_uses_state_fork(client, transport):
    fork = {"previous_version": "0x00000000", "current_version": "0x01000000", "epoch": "2"}
    transport.get_json("/beacon/state", loose({"beacon_state": {"slot": "64", "fork": fork}}))
    domain = await client.domain(DOMAIN_BEACON_ATTESTER, 2)
    expected = compute_domain(
        DOMAIN_BEACON_ATTESTER,
        2,
        Fork(previous_version=b"\x00\x00\x00\x00", current_version=b"\x01\x00\x00\x00", epoch=2),
        bytes.fromhex(ROOT_A[2:]),
    )
    assert domain == expected
    assert transport.sent("GET", "/beacon/state")[0].params == {"slot": "64"}


@pytest.mark.asyncio
async def test_validators(client, transport):
    transport.get_json(
        "/beacon/validators/all",
        loose(
            [
                {"pubkey": PUBKEY_1, "validator_index": "0", "balance": "32000000000", "validator": validator_record(PUBKEY_1)},
                {"pubkey": PUBKEY_2, "validator_index": None, "balance": None, "validator": None},
            ]
        ),
    )
    validators = await client.validators("head")
    assert list(validators) == [0]
    assert validators[0].balance == 32000000000
    assert validators[0].status.is_active()
    assert transport.sent("GET", "/beacon/validators/all")[0].params == {"state_root": ROOT_A}


@pytest.mark.asyncio
async def test_attester_duties(client, transport):
    transport.get_json(
        "/beacon/committees",
        loose(
            [
                {"slot": "128", "index": "0", "committee": ["0", "1"]},
                {"slot": "128", "index": "1", "committee": ["2", "3", "4"]},
            ]
        ),
    )
    transport.get_json(
        "/beacon/validators/all",
        loose([{"validator_index": "3", "balance": "32000000000", "validator": validator_record(PUBKEY_1)}]),
    )
    transport.post_json(
        "/validator/duties",
        loose(
            [
                {
                    "validator_pubkey": PUBKEY_1,
                    "validator_index": "3",
                    "attestation_slot": "128",
                    "attestation_committee_index": "1",
                    "attestation_committee_position": "1",
                    "block_proposal_slots": [],
                }
            ]
        ),
    )
    duties = await client.attester_duties(4, [3])
    assert len(duties) == 1
    duty = duties[0]
    assert duty.committee_length == 3
    assert duty.committees_at_slot == 2
    assert duty.validator_committee_index == 1
    body = transport.sent("POST", "/validator/duties")[0].json()
    assert body == {"epoch": 4, "pubkeys": [PUBKEY_1]}


@pytest.mark.asyncio
async def test_proposer_duties_all(client, transport):
    transport.get_json(
        "/validator/duties/all",
        loose([{"validator_pubkey": PUBKEY_2, "validator_index": "5", "block_proposal_slots": ["130", "135"]}]),
    )
    duties = await client.proposer_duties(4)
    assert [duty.slot for duty in duties] == [130, 135]
    assert {duty.validator_index for duty in duties} == {5}


@pytest.mark.asyncio
async def test_submit_attestation_retries_subnet(client, transport):
    transport.add("POST", "/validator/attestations", error=BackendRejected(400, REFUSAL))
    transport.add("POST", "/validator/attestations", "null")
    await client.submit_attestation(Attestation())
    requests = transport.sent("POST", "/validator/attestations")
    assert len(requests) == 2
    assert requests[0].json()[0][1] == 0
    assert requests[1].json()[0][1] == 7
    assert requests[1].json()[0][0]["data"]["slot"] == 0


@pytest.mark.asyncio
async def test_submit_attestation_no_subnet(client, transport):
    transport.add("POST", "/validator/attestations", "invalid signature")
    with pytest.raises(SubmissionFailed, match="invalid signature"):
        await client.submit_attestation(Attestation())
    assert len(transport.sent("POST", "/validator/attestations")) == 1


@pytest.mark.asyncio
async def test_subscriptions_need_null(client, transport):
    subscription = BeaconCommitteeSubscription(
        slot=40, committee_index=3, committee_size=100, validator_index=7, aggregate=False
    )
    transport.post_json("/validator/subscribe", "null")
    await client.submit_beacon_committee_subscriptions([subscription])
    assert transport.sent("POST", "/validator/subscribe")[0].json()[0]["slot"] == 40

    transport.responses.clear()
    transport.post_json("/validator/subscribe", '"oops"')
    with pytest.raises(SubmissionFailed):
        await client.submit_beacon_committee_subscriptions([subscription])
