# lease_agent/wireguard/peer.py
"""
Peer configuration built from a lease, and its installation with wg(8)
"""

import logging
import subprocess
from typing import List, Optional

from ..errors import LinkStateError, ParseError
from ..schemas import PeerConfig

logger = logging.getLogger('wg-agent.peer')


def split_allowed_ips(allowed_ips: str) -> List[str]:
    """Split on commas as-is: no trimming, empty entries kept"""
    return allowed_ips.split(",")


def parse_endpoint(endpoint: str) -> Optional[str]:
    """
    Validate "host:port" or "[v6]:port". Empty means no endpoint.
    """
    if not endpoint:
        return None

    host, sep, port = endpoint.rpartition(":")
    if not sep or not host:
        raise ParseError(f"Endpoint {endpoint!r} is not host:port", operation="parse endpoint")
    if host.startswith("[") != host.endswith("]"):
        raise ParseError(f"Endpoint {endpoint!r} has unbalanced brackets", operation="parse endpoint")
    if not port.isdigit() or not 0 < int(port) < 65536:
        raise ParseError(f"Endpoint {endpoint!r} has invalid port", operation="parse endpoint")
    return endpoint


def new_peer_config(
    public_key: str,
    preshared_key: str,
    endpoint: str,
    allowed_ips: List[str],
    persistent_keepalive: Optional[int] = None
) -> PeerConfig:
    if not public_key:
        raise ParseError("Peer public key is empty", operation="build peer config")

    return PeerConfig(
        public_key=public_key,
        preshared_key=preshared_key or None,
        endpoint=parse_endpoint(endpoint),
        allowed_ips=list(allowed_ips),
        persistent_keepalive=persistent_keepalive
    )


class WgPeerInstaller:
    """
    Installs a PeerConfig on the device

    The agent hands peers back to its caller; the daemon uses this to
    push them into the kernel device.
    """

    def __init__(self, wg_binary: str = "wg", timeout: int = 10):
        self.wg_binary = wg_binary
        self.timeout = timeout

    def build_command(self, device: str, peer: PeerConfig) -> List[str]:
        cmd = [self.wg_binary, "set", device, "peer", peer.public_key]
        if peer.preshared_key:
            cmd += ["preshared-key", "/dev/stdin"]
        if peer.endpoint:
            cmd += ["endpoint", peer.endpoint]
        if peer.persistent_keepalive is not None:
            cmd += ["persistent-keepalive", str(peer.persistent_keepalive)]
        cmd += ["allowed-ips", ",".join(peer.allowed_ips)]
        return cmd

    def install(self, device: str, peer: PeerConfig) -> None:
        cmd = self.build_command(device, peer)
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            subprocess.run(
                cmd,
                check=True,
                capture_output=True,
                text=True,
                input=(peer.preshared_key + "\n") if peer.preshared_key else None,
                timeout=self.timeout
            )
        except subprocess.CalledProcessError as e:
            raise LinkStateError(
                f"Failed to add peer: {(e.stderr or str(e)).strip()}", device=device, operation="install peer"
            ) from e
        except (OSError, subprocess.TimeoutExpired) as e:
            raise LinkStateError(str(e), device=device, operation="install peer") from e

        logger.info(f"Installed peer: {peer.public_key[:20]}... -> {','.join(peer.allowed_ips)}")
