"""Shared fixtures: fake collaborators and a stub lease server."""

import pytest

from lease_agent.agent import WgLeaseAgent
from lease_agent.client import LeaseClient
from lease_agent.schemas import LeaseResponse
from lease_agent.testing import FakeKeyStore, FakeLinkConfigurator, FakeTunnelFactory
from lease_agent.testing.lease_server import LeaseServerThread, create_lease_server_app

DEVICE = "wg-test"
TOKEN = "test-token"


@pytest.fixture
def sample_lease() -> LeaseResponse:
    return LeaseResponse.model_validate({
        "IP": "10.0.0.5/32",
        "AllowedIPs": "10.0.1.0/24,10.0.2.0/24",
        "PubKey": "abc=",
        "Endpoint": "1.2.3.4:51820",
    })


@pytest.fixture
def lease_app(sample_lease):
    return create_lease_server_app(sample_lease, token=TOKEN)


@pytest.fixture
def lease_server(lease_app):
    with LeaseServerThread(lease_app) as server:
        yield server


@pytest.fixture
def key_store() -> FakeKeyStore:
    return FakeKeyStore()


@pytest.fixture
def link() -> FakeLinkConfigurator:
    return FakeLinkConfigurator()


@pytest.fixture
def tunnel_factory() -> FakeTunnelFactory:
    return FakeTunnelFactory()


@pytest.fixture
def agent(key_store, link, tunnel_factory):
    agent = WgLeaseAgent.new(
        DEVICE,
        key_store=key_store,
        link=link,
        tunnel_factory=tunnel_factory,
        lease_client=LeaseClient(timeout=5),
    )
    yield agent
    agent.stop()
    agent.join(timeout=2)
