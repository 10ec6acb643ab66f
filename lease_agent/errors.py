# lease_agent/errors.py
"""
Agent error taxonomy
Every failure carries the device and the operation that was attempted
"""

from typing import Optional


class AgentError(Exception):
    """Base error for all agent operations"""

    def __init__(self, message: str, device: Optional[str] = None, operation: Optional[str] = None):
        self.message = message
        self.device = device
        self.operation = operation
        prefix = ""
        if operation:
            prefix = f"{operation}: "
        if device:
            prefix = f"{prefix}{device}: "
        super().__init__(f"{prefix}{message}")


class ConfigurationError(AgentError):
    """Missing or invalid agent configuration"""


class KeyRetrievalError(AgentError):
    """Reading keys from the device failed"""


class KeyGenerationError(AgentError):
    """Generating or installing a new key pair failed"""


class LeaseProtocolError(AgentError):
    """Transport failure or malformed lease request/response"""


class LeaseRejectedError(AgentError):
    """Lease server answered with a non-200 status"""

    def __init__(self, status_code: int, status_text: str, device: Optional[str] = None):
        self.status_code = status_code
        self.status_text = status_text
        super().__init__(
            f"Response status: {status_code} {status_text}".rstrip(),
            device=device,
            operation="request lease",
        )


class ParseError(AgentError):
    """Malformed address, prefix or endpoint string"""


class LinkStateError(AgentError):
    """Kernel link/address/route configuration failed"""


class DeviceStartError(AgentError):
    """Virtual tunnel device could not be created or started"""


class AgentNotStartedError(AgentError):
    """Lease requested before the device was brought up"""
