"""Tests for the agent orchestrator lifecycle and lease application."""

from unittest.mock import MagicMock

import pytest

from lease_agent.agent import WgLeaseAgent
from lease_agent.client import LeaseClient
from lease_agent.errors import (
    AgentNotStartedError,
    DeviceStartError,
    KeyRetrievalError,
    LeaseRejectedError,
    LinkStateError,
    ParseError,
)
from lease_agent.schemas import LeaseResponse
from lease_agent.testing import FakeKeyStore, FakeLinkConfigurator, FakeTunnelFactory
from lease_agent.wireguard.keys import EMPTY_KEY

from .conftest import DEVICE, TOKEN


def _stub_client(lease: LeaseResponse) -> MagicMock:
    client = MagicMock(spec=LeaseClient)
    client.request_lease.return_value = lease
    return client


# === Construction ===

def test_new_brings_device_up_in_order(agent, link, key_store, tunnel_factory) -> None:
    assert len(tunnel_factory.created) == 1
    assert link.calls == [("link_up", DEVICE)]
    assert agent.ready
    assert agent.identity.private_key != EMPTY_KEY
    assert agent.public_key == agent.identity.public_key
    assert key_store.set_calls == [(DEVICE, agent.identity.private_key)]


def test_run_loop_starts_in_background(agent) -> None:
    assert agent._thread.is_alive()
    assert not agent.stop_signal.is_set()


def test_device_start_failure_aborts_construction() -> None:
    link = FakeLinkConfigurator()
    key_store = FakeKeyStore()

    with pytest.raises(DeviceStartError):
        WgLeaseAgent.new(DEVICE, key_store=key_store, link=link, tunnel_factory=FakeTunnelFactory(fail=True))

    assert link.calls == []
    assert key_store.get_calls == 0


def test_link_up_failure_skips_key_setup() -> None:
    key_store = FakeKeyStore()
    agent = WgLeaseAgent(
        DEVICE,
        key_store=key_store,
        link=FakeLinkConfigurator(fail_on={DEVICE}),
        tunnel_factory=FakeTunnelFactory(),
    )

    with pytest.raises(LinkStateError):
        agent.start()

    assert key_store.get_calls == 0
    assert not agent.ready
    agent.stop()
    assert agent.join(timeout=2)


def test_key_failure_aborts_construction() -> None:
    agent = WgLeaseAgent(
        DEVICE,
        key_store=FakeKeyStore(fail_reads=True),
        link=FakeLinkConfigurator(),
        tunnel_factory=FakeTunnelFactory(),
    )

    with pytest.raises(KeyRetrievalError):
        agent.start()
    agent.stop()
    agent.join(timeout=2)


def test_lease_before_start_is_refused() -> None:
    agent = WgLeaseAgent(DEVICE, key_store=FakeKeyStore(), link=FakeLinkConfigurator())

    with pytest.raises(AgentNotStartedError):
        agent.get_new_wg_lease("http://lease.example", TOKEN)


# === Leases ===

def test_lease_scenario_end_to_end(agent, link, lease_server, lease_app) -> None:
    peer, allowed_ips = agent.get_new_wg_lease(lease_server.url, TOKEN)

    assert link.addresses == ["10.0.0.5/32"]
    assert link.routes == ["10.0.1.0/24", "10.0.2.0/24"]
    assert allowed_ips == ["10.0.1.0/24", "10.0.2.0/24"]
    assert peer.public_key == "abc="
    assert peer.endpoint == "1.2.3.4:51820"
    assert peer.allowed_ips == ["10.0.1.0/24", "10.0.2.0/24"]
    assert peer.preshared_key is None
    # the lease server only ever sees the public key
    assert [r.pub_key for r in lease_app.state.requests] == [agent.identity.public_key]


def test_address_applied_before_routes(agent, link, lease_server) -> None:
    agent.get_new_wg_lease(lease_server.url, TOKEN)
    kinds = [c[0] for c in link.calls]
    assert kinds == ["link_up", "address", "route", "route"]


def test_server_error_changes_nothing(agent, link, lease_server, lease_app) -> None:
    lease_app.state.status_code = 500

    with pytest.raises(LeaseRejectedError):
        agent.get_new_wg_lease(lease_server.url, TOKEN)

    assert link.addresses == []
    assert link.routes == []


def test_lease_can_be_renewed(agent, link, lease_server) -> None:
    agent.get_new_wg_lease(lease_server.url, TOKEN)
    agent.get_new_wg_lease(lease_server.url, TOKEN)

    assert link.addresses == ["10.0.0.5/32", "10.0.0.5/32"]
    assert len(link.routes) == 4


def test_route_failure_keeps_address_and_stops(key_store, tunnel_factory, sample_lease) -> None:
    link = FakeLinkConfigurator(fail_on={"10.0.1.0/24"})
    agent = WgLeaseAgent.new(
        DEVICE,
        key_store=key_store,
        link=link,
        tunnel_factory=tunnel_factory,
        lease_client=_stub_client(sample_lease),
    )

    with pytest.raises(LinkStateError):
        agent.get_new_wg_lease("http://lease.example", TOKEN)

    assert link.addresses == ["10.0.0.5/32"]
    assert link.routes == []
    agent.stop()
    agent.join(timeout=2)


def test_bad_address_is_parse_error(key_store, link, tunnel_factory) -> None:
    lease = LeaseResponse(ip="10.0.0.500/32", allowed_ips="10.0.1.0/24", pub_key="abc=")
    agent = WgLeaseAgent.new(
        DEVICE, key_store=key_store, link=link, tunnel_factory=tunnel_factory, lease_client=_stub_client(lease)
    )

    with pytest.raises(ParseError):
        agent.get_new_wg_lease("http://lease.example", TOKEN)

    assert link.routes == []
    agent.stop()
    agent.join(timeout=2)


def test_empty_allowed_ip_entry_is_not_filtered(key_store, link, tunnel_factory) -> None:
    lease = LeaseResponse(ip="10.0.0.5/32", allowed_ips="10.0.1.0/24,", pub_key="abc=")
    agent = WgLeaseAgent.new(
        DEVICE, key_store=key_store, link=link, tunnel_factory=tunnel_factory, lease_client=_stub_client(lease)
    )

    with pytest.raises(ParseError):
        agent.get_new_wg_lease("http://lease.example", TOKEN)

    assert link.routes == ["10.0.1.0/24"]
    agent.stop()
    agent.join(timeout=2)


def test_persistent_keepalive_is_passed_to_peer(key_store, link, tunnel_factory, sample_lease) -> None:
    agent = WgLeaseAgent.new(
        DEVICE,
        key_store=key_store,
        link=link,
        tunnel_factory=tunnel_factory,
        lease_client=_stub_client(sample_lease),
        persistent_keepalive=25,
    )

    peer, _ = agent.get_new_wg_lease("http://lease.example", TOKEN)

    assert peer.persistent_keepalive == 25
    agent.stop()
    agent.join(timeout=2)


# === Stop ===

def test_stop_sends_exactly_one_notification(agent, tunnel_factory) -> None:
    assert agent.stop() is True
    assert agent.stop() is False

    assert agent.stop_signal.notifications == 1
    assert agent.join(timeout=2)
    assert tunnel_factory.created[0].closed


def test_run_loop_exits_when_device_goes_away(agent, tunnel_factory) -> None:
    tunnel_factory.created[0].healthy = False
    assert agent.join(timeout=2)
    assert not agent.stop_signal.is_set()
