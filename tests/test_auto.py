"""Tests for backend selection and auto-detection."""

import pytest

from eth2client.auto import DETECTION_ORDER, connect
from eth2client.config import ClientConfig
from eth2client.exceptions import NoBackendDetected
from eth2client.lighthouse import LighthouseClient
from eth2client.prysm import PrysmClient
from eth2client.service import Backend
from eth2client.standard import StandardClient
from eth2client.teku import TekuClient


@pytest.fixture
def auto_config():
    return ClientConfig(address="http://localhost:5052", backend="auto")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "backend, cls",
    [
        ("standard", StandardClient),
        ("lighthouse", LighthouseClient),
        ("teku", TekuClient),
        ("prysm", PrysmClient),
    ],
)
async def test_named_backend_skips_detection(transport, backend, cls):
    client = await connect(ClientConfig(address="http://localhost:5052", backend=backend), transport)
    assert type(client) is cls
    assert client.name == backend
    assert transport.requests == []


@pytest.mark.asyncio
async def test_detects_legacy_dialect_before_standard(auto_config, transport):
    transport.get_json("/node/version", '"Lighthouse/v0.3.0-95c96ac5"')
    transport.get_json("/eth/v1/node/version", {"data": {"version": "Lighthouse/v0.3.0-95c96ac5"}})
    client = await connect(auto_config, transport)
    assert isinstance(client, LighthouseClient)
    requested = [request.path for request in transport.requests]
    assert requested == ["/eth/v1alpha1/node/version", "/node/version"]


@pytest.mark.asyncio
async def test_detects_prysm(auto_config, transport):
    transport.get_json("/eth/v1alpha1/node/version", {"version": "Prysm/v1.0.0"})
    client = await connect(auto_config, transport)
    assert isinstance(client, PrysmClient)


@pytest.mark.asyncio
async def test_falls_through_to_standard(auto_config, transport):
    transport.get_json("/eth/v1/node/version", {"data": {"version": "Nimbus/v1.0.0"}})
    client = await connect(auto_config, transport)
    assert isinstance(client, StandardClient)


@pytest.mark.asyncio
async def test_nothing_detected(auto_config, transport):
    with pytest.raises(NoBackendDetected) as excinfo:
        await connect(auto_config, transport)
    assert set(excinfo.value.failures) == {backend.value for backend in DETECTION_ORDER}
    assert excinfo.value.address == "http://localhost:5052"


def test_detection_tries_standard_last():
    assert DETECTION_ORDER[-1] is Backend.STANDARD
