# lease_agent/daemon.py
"""
WireGuard Lease Agent Daemon
Keeps the device's lease current and the remote peer installed
"""

import sys
import signal
import logging
import argparse
import threading
from typing import Callable, Optional

from .agent import WgLeaseAgent
from .client import LeaseClient
from .config import AgentSettings, get_settings
from .errors import AgentError, ConfigurationError
from .wireguard.device import start_tunnel_device
from .wireguard.keys import WgKeyStore
from .wireguard.peer import WgPeerInstaller

logger = logging.getLogger('wg-agent')

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers
    )


def build_agent(settings: AgentSettings) -> WgLeaseAgent:
    """Wire concrete collaborators from settings and bring the device up"""
    def tunnel_factory(device, stop):
        return start_tunnel_device(
            device,
            stop,
            backend=settings.TUNNEL_BACKEND,
            wireguard_go_binary=settings.WIREGUARD_GO_BINARY
        )

    agent = WgLeaseAgent(
        settings.DEVICE_NAME,
        key_store=WgKeyStore(wg_binary=settings.WG_BINARY),
        tunnel_factory=tunnel_factory,
        lease_client=LeaseClient(timeout=settings.LEASE_REQUEST_TIMEOUT),
        persistent_keepalive=settings.PERSISTENT_KEEPALIVE
    )
    try:
        agent.start()
    except AgentError:
        # the run loop may already be up; do not leave it behind
        agent.stop()
        agent.join(settings.STOP_JOIN_TIMEOUT)
        raise
    return agent


class LeaseAgentDaemon:
    """
    Lease Agent - Main daemon class

    Responsibilities:
    1. Bring the tunnel device up with a stable identity
    2. Obtain a lease and install the remote peer
    3. Renew the lease periodically
    4. Stop the device on SIGTERM/SIGINT
    """

    def __init__(
        self,
        settings: AgentSettings,
        agent_factory: Callable[[AgentSettings], WgLeaseAgent] = build_agent,
        peer_installer: Optional[WgPeerInstaller] = None
    ):
        if not settings.LEASE_SERVER_URL:
            raise ConfigurationError("LEASE_SERVER_URL is not set")
        if not settings.LEASE_AUTH_TOKEN:
            raise ConfigurationError("LEASE_AUTH_TOKEN is not set")

        self.settings = settings
        self.agent_factory = agent_factory
        self.peer_installer = peer_installer or WgPeerInstaller(wg_binary=settings.WG_BINARY)
        self.agent: Optional[WgLeaseAgent] = None
        self.shutdown = threading.Event()
        self.leases_applied = 0

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals gracefully"""
        logger.info(f"Received signal {signum}, shutting down...")
        self.shutdown.set()

    def renew(self) -> None:
        """Get a lease, apply it and install the peer"""
        peer, allowed_ips = self.agent.get_new_wg_lease(
            self.settings.LEASE_SERVER_URL,
            self.settings.LEASE_AUTH_TOKEN
        )
        self.peer_installer.install(self.agent.device, peer)
        self.leases_applied += 1
        logger.info(f"Lease applied on {self.agent.device}, peer routes: {', '.join(allowed_ips)}")

    def run(self, once: bool = False) -> int:
        """Main daemon loop. Returns the process exit status."""
        logger.info(f"Starting lease agent for {self.settings.DEVICE_NAME}")

        try:
            try:
                self.agent = self.agent_factory(self.settings)
                self.renew()
            except AgentError as e:
                logger.error(f"Initialization failed: {e}")
                return 1

            if once:
                return 0

            if not self.settings.renewal_enabled:
                self.shutdown.wait()
                return 0

            while not self.shutdown.wait(self.settings.LEASE_RENEW_INTERVAL):
                try:
                    self.renew()
                except AgentError as e:
                    logger.error(f"Lease renewal failed: {e}")

            return 0
        finally:
            self.cleanup()

    def cleanup(self) -> None:
        """Stop the tunnel device and wait a bounded time for it"""
        if self.agent is None:
            return
        logger.info("Agent shutting down")
        self.agent.stop()
        if not self.agent.join(self.settings.STOP_JOIN_TIMEOUT):
            logger.warning(f"Tunnel device {self.agent.device} did not stop within "
                           f"{self.settings.STOP_JOIN_TIMEOUT}s")


def settings_from_args(args: argparse.Namespace, base: AgentSettings) -> AgentSettings:
    overrides = {
        "DEVICE_NAME": args.device,
        "LEASE_SERVER_URL": args.server,
        "LEASE_AUTH_TOKEN": args.token,
        "LEASE_RENEW_INTERVAL": args.renew_interval,
        "TUNNEL_BACKEND": args.backend,
        "LOG_LEVEL": args.log_level,
    }
    return base.model_copy(update={k: v for k, v in overrides.items() if v is not None})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="WireGuard Lease Agent")
    parser.add_argument("--device", help="WireGuard device name")
    parser.add_argument("--server", help="Lease server URL")
    parser.add_argument("--token", help="Bearer token for the lease server")
    parser.add_argument("--renew-interval", type=int, help="Lease renewal interval in seconds (0 disables)")
    parser.add_argument("--backend", choices=["kernel", "userspace"], help="Tunnel device backend")
    parser.add_argument("--log-level", help="Logging level")
    parser.add_argument("--once", action="store_true", help="Apply one lease, then stop the device and exit")
    return parser


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)
    settings = settings_from_args(args, get_settings())
    configure_logging(settings.LOG_LEVEL, settings.LOG_FILE)

    try:
        daemon = LeaseAgentDaemon(settings)
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(2)

    daemon.install_signal_handlers()
    sys.exit(daemon.run(once=args.once))


if __name__ == "__main__":
    main()
