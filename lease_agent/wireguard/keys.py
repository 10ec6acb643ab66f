# lease_agent/wireguard/keys.py
"""
WireGuard identity management
Reads, generates and installs the device key pair
"""

import abc
import base64
import binascii
import logging
import subprocess
from dataclasses import dataclass, field
from typing import Tuple

from nacl.exceptions import CryptoError
from nacl.public import PrivateKey

from ..errors import KeyGenerationError, KeyRetrievalError

logger = logging.getLogger('wg-agent.keys')

# Base64 of 32 zero bytes: what a device reports when no key is configured
EMPTY_KEY = "AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA="


@dataclass(frozen=True)
class Identity:
    """Device key pair. Never logged in full."""
    public_key: str
    private_key: str = field(repr=False)


def generate_keypair() -> Tuple[str, str]:
    """
    Generate a new WireGuard keypair using Curve25519.
    Returns (private_key_base64, public_key_base64)
    """
    private_key = PrivateKey.generate()
    private_b64 = base64.b64encode(bytes(private_key)).decode('utf-8')
    public_b64 = base64.b64encode(bytes(private_key.public_key)).decode('utf-8')
    return private_b64, public_b64


def derive_public_key(private_key: str) -> str:
    """Public key for a Base64 private key (same result as `wg pubkey`)"""
    try:
        raw = base64.b64decode(private_key, validate=True)
        public = PrivateKey(raw).public_key
    except (binascii.Error, CryptoError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid WireGuard private key: {e}") from e
    return base64.b64encode(bytes(public)).decode('utf-8')


class KeyStore(abc.ABC):
    """Get/set the key pair of a named device"""

    @abc.abstractmethod
    def get_keys(self, device: str) -> Tuple[str, str]:
        """Return (public_key, private_key); EMPTY_KEY when unset"""

    @abc.abstractmethod
    def set_private_key(self, device: str, private_key: str) -> None:
        """Install a private key on the device"""


class WgKeyStore(KeyStore):
    """Key store backed by the wg(8) tool"""

    def __init__(self, wg_binary: str = "wg", timeout: int = 10):
        self.wg_binary = wg_binary
        self.timeout = timeout

    def _run(self, cmd: list, input: str = None) -> str:
        logger.debug(f"Running: {' '.join(cmd)}")
        result = subprocess.run(
            cmd,
            check=True,
            capture_output=True,
            text=True,
            input=input,
            timeout=self.timeout
        )
        return result.stdout.strip()

    def _show(self, device: str, what: str) -> str:
        value = self._run([self.wg_binary, "show", device, what])
        # wg prints "(none)" for an unset key
        if not value or value == "(none)":
            return EMPTY_KEY
        return value

    def get_keys(self, device: str) -> Tuple[str, str]:
        try:
            private_key = self._show(device, "private-key")
            public_key = self._show(device, "public-key")
        except subprocess.CalledProcessError as e:
            raise KeyRetrievalError(
                (e.stderr or str(e)).strip(), device=device, operation="read keys"
            ) from e
        except (OSError, subprocess.TimeoutExpired) as e:
            raise KeyRetrievalError(str(e), device=device, operation="read keys") from e
        return public_key, private_key

    def set_private_key(self, device: str, private_key: str) -> None:
        try:
            self._run(
                [self.wg_binary, "set", device, "private-key", "/dev/stdin"],
                input=private_key + "\n"
            )
        except subprocess.CalledProcessError as e:
            raise KeyGenerationError(
                (e.stderr or str(e)).strip(), device=device, operation="set private key"
            ) from e
        except (OSError, subprocess.TimeoutExpired) as e:
            raise KeyGenerationError(str(e), device=device, operation="set private key") from e


def ensure_keys(key_store: KeyStore, device: str) -> Identity:
    """
    Make sure the device has a key pair and return it.

    A private key equal to EMPTY_KEY means no identity yet: a fresh pair is
    generated, the private key is installed and the device is read again.
    Calling this on an already keyed device only reads.
    """
    _, private_key = key_store.get_keys(device)

    if private_key == EMPTY_KEY:
        logger.info(f"No private key on {device}, generating a new keypair")
        try:
            private_key, _ = generate_keypair()
        except CryptoError as e:
            raise KeyGenerationError(str(e), device=device, operation="generate keypair") from e
        key_store.set_private_key(device, private_key)

    public_key, private_key = key_store.get_keys(device)
    if private_key == EMPTY_KEY:
        raise KeyGenerationError(
            "device still reports an empty private key", device=device, operation="ensure keys"
        )

    logger.info(f"Public key for {device}: {public_key}")
    return Identity(public_key=public_key, private_key=private_key)
