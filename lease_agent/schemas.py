# lease_agent/schemas.py
"""
Lease protocol and peer schemas
Field aliases follow the lease server's JSON contract
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List


class LeaseRequest(BaseModel):
    """Body of POST {server}/newPeerLease"""
    pub_key: str = Field(..., alias="pubKey", description="Device WireGuard public key (Base64)")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {"pubKey": "aB3dE5fG7hI9jK1lM3nO5pQ7rS9tU1vW3xY5zA7bC9dE="}
        }
    )


class LeaseResponse(BaseModel):
    """
    Lease granted by the server
    Consumed immediately, never persisted
    """
    ip: str = Field(..., alias="IP", description="Address to assign locally", examples=["10.0.0.5/32"])
    allowed_ips: str = Field(
        ...,
        alias="AllowedIPs",
        description="Comma-separated prefixes routed to the peer",
        examples=["10.0.1.0/24,10.0.2.0/24"]
    )
    pub_key: str = Field(..., alias="PubKey", description="Peer public key")
    endpoint: str = Field(default="", alias="Endpoint", description="Peer host:port, may be empty")

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={
            "example": {
                "IP": "10.0.0.5/32",
                "AllowedIPs": "10.0.1.0/24,10.0.2.0/24",
                "PubKey": "xYz123AbC456DeF789GhI012JkL345MnO678PqR901=",
                "Endpoint": "203.0.113.10:51820"
            }
        }
    )


class PeerConfig(BaseModel):
    """WireGuard peer configuration handed back to the caller"""
    public_key: str = Field(..., description="Peer's WireGuard public key")
    preshared_key: Optional[str] = Field(None, description="Always empty in the lease flow")
    endpoint: Optional[str] = Field(None, description="Peer endpoint (host:port)", examples=["203.0.113.10:51820"])
    allowed_ips: List[str] = Field(default_factory=list, description="Prefixes this peer routes for")
    persistent_keepalive: Optional[int] = Field(None, ge=0, le=65535, description="Keepalive interval in seconds")
