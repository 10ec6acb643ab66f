# lease_agent/__init__.py
"""
WireGuard Lease Agent
Provisions one WireGuard device from a remote lease server
"""

from .agent import WgLeaseAgent
from .client import LeaseClient
from .errors import (
    AgentError,
    AgentNotStartedError,
    ConfigurationError,
    KeyRetrievalError,
    KeyGenerationError,
    LeaseProtocolError,
    LeaseRejectedError,
    ParseError,
    LinkStateError,
    DeviceStartError
)
from .schemas import LeaseRequest, LeaseResponse, PeerConfig

__version__ = "1.0.0"

__all__ = [
    'WgLeaseAgent',
    'LeaseClient',
    # Errors
    'AgentError',
    'AgentNotStartedError',
    'ConfigurationError',
    'KeyRetrievalError',
    'KeyGenerationError',
    'LeaseProtocolError',
    'LeaseRejectedError',
    'ParseError',
    'LinkStateError',
    'DeviceStartError',
    # Schemas
    'LeaseRequest',
    'LeaseResponse',
    'PeerConfig'
]
