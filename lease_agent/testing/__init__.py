# lease_agent/testing/__init__.py
"""
Test doubles for the agent's collaborators

The stub lease server lives in lease_agent.testing.lease_server and needs
the test extra (fastapi, uvicorn).
"""

from .fakes import FakeKeyStore, FakeLinkConfigurator, FakeTunnelDevice, FakeTunnelFactory

__all__ = [
    'FakeKeyStore',
    'FakeLinkConfigurator',
    'FakeTunnelDevice',
    'FakeTunnelFactory'
]
