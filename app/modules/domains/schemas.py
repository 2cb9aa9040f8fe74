from pydantic import BaseModel
from typing import Optional, List
from app.modules.deployments.schemas import DeploymentRecord, DomainStatus
from app.modules.platform.schemas import DnsRecord, PlatformDomain, RequiredDnsRecord


class DomainConfigure(BaseModel):
    custom_domain: str


class DomainConfigureResponse(BaseModel):
    dns_configured: bool
    is_apex: bool
    domain: Optional[PlatformDomain] = None
    dns_record: Optional[DnsRecord] = None
    required_record: Optional[RequiredDnsRecord] = None  # only when DNS must be set up by hand
    deployment: Optional[DeploymentRecord] = None
    message: str


class DomainStatusResponse(BaseModel):
    has_custom_domain: bool
    custom_domain: Optional[str] = None
    domain_status: DomainStatus
    platform_domain: Optional[PlatformDomain] = None
    dns_records: List[DnsRecord] = []
    required_record: Optional[RequiredDnsRecord] = None
