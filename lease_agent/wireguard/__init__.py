# lease_agent/wireguard/__init__.py
"""
WireGuard device, identity and peer handling
"""

from .keys import EMPTY_KEY, Identity, KeyStore, WgKeyStore, ensure_keys, generate_keypair, derive_public_key
from .device import (
    StopSignal,
    TunnelDevice,
    KernelTunnelDevice,
    UserspaceTunnelDevice,
    start_tunnel_device
)
from .peer import WgPeerInstaller, new_peer_config, parse_endpoint, split_allowed_ips

__all__ = [
    # Identity
    'EMPTY_KEY',
    'Identity',
    'KeyStore',
    'WgKeyStore',
    'ensure_keys',
    'generate_keypair',
    'derive_public_key',
    # Device
    'StopSignal',
    'TunnelDevice',
    'KernelTunnelDevice',
    'UserspaceTunnelDevice',
    'start_tunnel_device',
    # Peer
    'WgPeerInstaller',
    'new_peer_config',
    'parse_endpoint',
    'split_allowed_ips'
]
