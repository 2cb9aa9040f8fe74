from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class PlatformProject(BaseModel):
    id: str
    name: str
    subdomain: Optional[str] = None


class PlatformDeployment(BaseModel):
    id: str
    url: Optional[str] = None
    stage_status: str  # success | failure | canceled | active | idle | ...
    stage_name: Optional[str] = None
    environment: Optional[str] = None
    created_at: Optional[datetime] = None


class PlatformDomain(BaseModel):
    id: Optional[str] = None
    name: str
    status: str  # pending | active | moved | deleting | deleted


class DnsRecord(BaseModel):
    id: Optional[str] = None
    type: str
    name: str
    content: str
    proxied: bool = False
    ttl: int = 1


class RequiredDnsRecord(BaseModel):
    """Record an operator must create by hand when the zone is not managed by this account."""
    type: str = "CNAME"
    name: str
    content: str
    proxied: bool = True
