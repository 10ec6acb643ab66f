# lease_agent/client.py
"""
Lease Server API Client
Negotiates an IP lease and peer configuration for a public key
"""

import json
import http.client
import socket
import logging
from typing import Optional
from urllib.request import Request, urlopen
from urllib.error import HTTPError, URLError

from pydantic import ValidationError

from .errors import LeaseProtocolError, LeaseRejectedError
from .schemas import LeaseRequest, LeaseResponse

logger = logging.getLogger('wg-agent.client')

LEASE_PATH = "/newPeerLease"


class LeaseClient:
    """
    HTTP client for the lease server

    Single synchronous POST per call: no retry, no backoff. The timeout is
    unset unless configured, so a silent server blocks the caller.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def _post(self, url: str, token: str, body: bytes):
        request = Request(
            url=url,
            data=body,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {token}",
                "User-Agent": "WG-Lease-Agent/1.0"
            },
            method="POST"
        )
        if self.timeout is None:
            return urlopen(request)
        return urlopen(request, timeout=self.timeout)

    def request_lease(self, server_url: str, token: str, public_key: str) -> LeaseResponse:
        """
        POST {server_url}/newPeerLease with the device public key

        Raises:
            LeaseRejectedError: non-200 status, body is not interpreted
            LeaseProtocolError: transport failure or unreadable/malformed body
        """
        url = f"{server_url.rstrip('/')}{LEASE_PATH}"
        body = LeaseRequest(pub_key=public_key).model_dump_json(by_alias=True).encode('utf-8')

        logger.debug(f"POST {url}")
        try:
            with self._post(url, token, body) as response:
                if response.status != 200:
                    raise LeaseRejectedError(response.status, response.reason or "")
                response_data = response.read().decode('utf-8')

        except HTTPError as e:
            logger.error(f"Lease rejected: HTTP {e.code} {e.reason}")
            e.close()
            raise LeaseRejectedError(e.code, str(e.reason or "")) from e

        except URLError as e:
            logger.error(f"Connection error: {e.reason}")
            raise LeaseProtocolError(
                f"Cannot reach lease server: {e.reason}", operation="request lease"
            ) from e

        except (socket.timeout, TimeoutError) as e:
            logger.error("Lease request timed out")
            raise LeaseProtocolError("Request to lease server timed out", operation="request lease") from e

        except (OSError, http.client.HTTPException, UnicodeDecodeError) as e:
            raise LeaseProtocolError(f"error reading response body: {e}", operation="request lease") from e

        try:
            return LeaseResponse.model_validate(json.loads(response_data))
        except json.JSONDecodeError as e:
            raise LeaseProtocolError(f"Response is not JSON: {e}", operation="decode lease") from e
        except ValidationError as e:
            raise LeaseProtocolError(f"Malformed lease response: {e}", operation="decode lease") from e
