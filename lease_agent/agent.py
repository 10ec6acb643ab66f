# lease_agent/agent.py
"""
WireGuard Lease Agent
Owns one tunnel device: its run loop, link state, identity and leases
"""

import logging
import threading
from typing import Callable, List, Optional, Tuple

from .client import LeaseClient
from .errors import AgentNotStartedError
from .network.link import LinkConfigurator, PyRoute2LinkConfigurator
from .schemas import PeerConfig
from .wireguard.device import StopSignal, TunnelDevice, start_tunnel_device
from .wireguard.keys import Identity, KeyStore, WgKeyStore, ensure_keys
from .wireguard.peer import new_peer_config, split_allowed_ips

logger = logging.getLogger('wg-agent')

TunnelFactory = Callable[[str, StopSignal], TunnelDevice]


class WgLeaseAgent:
    """
    Lease agent for a single device

    Lifecycle:
    1. start(): create device -> run loop in background -> link up -> keys
    2. get_new_wg_lease(): repeatable, applies address and routes
    3. stop(): one-shot stop notification to the run loop

    Nothing here is locked. Concurrent get_new_wg_lease() calls must be
    serialized by the caller.
    """

    def __init__(
        self,
        device_name: str,
        key_store: Optional[KeyStore] = None,
        link: Optional[LinkConfigurator] = None,
        tunnel_factory: Optional[TunnelFactory] = None,
        lease_client: Optional[LeaseClient] = None,
        persistent_keepalive: Optional[int] = None
    ):
        self.device = device_name
        self.key_store = key_store or WgKeyStore()
        self.link = link or PyRoute2LinkConfigurator()
        self.tunnel_factory = tunnel_factory or start_tunnel_device
        self.lease_client = lease_client or LeaseClient()
        self.persistent_keepalive = persistent_keepalive

        self.identity: Optional[Identity] = None
        self.stop_signal = StopSignal()
        self.tundev: Optional[TunnelDevice] = None
        self._thread: Optional[threading.Thread] = None

    @classmethod
    def new(cls, device_name: str, **kwargs) -> "WgLeaseAgent":
        """Construct and bring up an agent for device_name"""
        agent = cls(device_name, **kwargs)
        agent.start()
        return agent

    @property
    def public_key(self) -> Optional[str]:
        return self.identity.public_key if self.identity else None

    @property
    def ready(self) -> bool:
        return self.identity is not None

    def start(self) -> None:
        """
        Bring the device up. Any failure aborts; earlier steps are not undone
        and the agent is left unusable.
        """
        logger.info(f"Starting tunnel device {self.device}")
        self.tundev = self.tunnel_factory(self.device, self.stop_signal)

        self._thread = threading.Thread(
            target=self.tundev.run,
            name=f"tundev-{self.device}",
            daemon=True
        )
        self._thread.start()

        self.link.ensure_link_up(self.device)
        self.identity = ensure_keys(self.key_store, self.device)
        logger.info(f"Agent ready on {self.device}")

    def get_new_wg_lease(self, server_url: str, token: str) -> Tuple[PeerConfig, List[str]]:
        """
        Ask the lease server for a lease and apply it to the device.

        Applies the offered address, then a route per allowed ip. Returns the
        remote peer config (for the caller to install) and the allowed ips.
        A failing step leaves whatever was applied before it in place.
        """
        if self.identity is None:
            raise AgentNotStartedError("agent was not started", device=self.device, operation="get lease")

        lease = self.lease_client.request_lease(server_url, token, self.identity.public_key)
        logger.info(f"Lease offered for {self.device}: ip={lease.ip} allowed_ips={lease.allowed_ips}")

        self.link.add_address(self.device, lease.ip)

        allowed_ips = split_allowed_ips(lease.allowed_ips)
        for aip in allowed_ips:
            self.link.add_route(self.device, aip)

        peer = new_peer_config(
            lease.pub_key,
            "",
            lease.endpoint,
            allowed_ips,
            persistent_keepalive=self.persistent_keepalive
        )
        return peer, allowed_ips

    def stop(self) -> bool:
        """Signal the run loop to exit. Only the first call notifies."""
        if self.stop_signal.notify():
            logger.info(f"Stop sent to tunnel device {self.device}")
            return True
        logger.debug(f"Stop already sent to {self.device}")
        return False

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the run loop to exit. True if it has."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()
