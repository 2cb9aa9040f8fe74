from app.core.exceptions import (
    AlreadyExistsError,
    InputValidationError,
    NotFoundError,
    PlatformError,
    PreconditionFailedError,
)
from app.modules.deployments.schemas import DeploymentRecord, DomainStatus
from app.modules.deployments.store import DeploymentRecordStore
from app.modules.domains.schemas import DomainConfigureResponse, DomainStatusResponse
from app.modules.platform.client import CloudflarePagesClient
from app.modules.platform.schemas import DnsRecord, PlatformDomain, RequiredDnsRecord
from typing import List, Optional
import logging
import re

logger = logging.getLogger(__name__)

DOMAIN_PATTERN = re.compile(r"^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,}$", re.IGNORECASE)

# Platform per-domain status -> local status; other values (moved, deleting, ...) leave it unchanged
DOMAIN_STATUS_MAP = {
    "active": DomainStatus.ACTIVE,
    "pending": DomainStatus.DNS_PENDING,
}


def validate_domain(domain: Optional[str]) -> str:
    if not domain or not isinstance(domain, str):
        raise InputValidationError("Custom domain is required")
    domain = domain.strip().lower()
    if not DOMAIN_PATTERN.match(domain):
        raise InputValidationError("Invalid domain format")
    return domain


def is_apex_domain(domain: str) -> bool:
    """Exactly two labels. Display only; record names always use the full domain."""
    return len(domain.split(".")) == 2


class DomainService:
    """Custom-domain lifecycle: NONE -> DNS_PENDING -> DNS_CONFIGURED | ERROR, and ACTIVE via reconcile()."""

    def __init__(self, store: DeploymentRecordStore, platform: CloudflarePagesClient):
        self.store = store
        self.platform = platform

    def _require_project(self, customer_id: int) -> DeploymentRecord:
        record = self.store.get(customer_id)
        if record is None:
            raise NotFoundError("No deployment configuration found for this customer")
        if not record.platform_project_id or not record.platform_project_name:
            raise PreconditionFailedError("Deployment not initialized. Please initialize deployment first.")
        return record

    def _required_record(self, domain: str, project_name: str) -> RequiredDnsRecord:
        return RequiredDnsRecord(
            type="CNAME",
            name=domain,
            content=self.platform.project_subdomain(project_name),
            proxied=True,
        )

    def _find_platform_domain(self, project_name: str, domain: str) -> Optional[PlatformDomain]:
        try:
            domains = self.platform.list_custom_domains(project_name)
        except PlatformError as e:
            logger.warning(f"Error fetching custom domains for project {project_name}: {e.message}")
            return None
        return next((d for d in domains if d.name == domain), None)

    def configure(self, customer_id: int, domain: str) -> DomainConfigureResponse:
        domain = validate_domain(domain)
        record = self._require_project(customer_id)
        project_name = record.platform_project_name

        # Durable before any remote step so a failed run still shows the domain
        record = self.store.update(customer_id, {
            "custom_domain": domain,
            "domain_status": DomainStatus.DNS_PENDING,
        })

        # Step A: attach the domain to the project
        try:
            platform_domain = self.platform.add_custom_domain(project_name, domain)
        except AlreadyExistsError:
            logger.info(f"Domain {domain} already attached to project {project_name}")
            platform_domain = self._find_platform_domain(project_name, domain)
        except PlatformError as e:
            logger.error(f"Error adding custom domain {domain} to project {project_name}: {e.message}")
            self.store.update(customer_id, {"domain_status": DomainStatus.ERROR})
            raise

        # Step B: point the domain at the project's subdomain
        target = self.platform.project_subdomain(project_name)
        apex = is_apex_domain(domain)
        try:
            existing = self.platform.list_dns_records(domain, domain, "CNAME")
            if existing:
                dns_record = existing[0]
            else:
                dns_record = self.platform.create_dns_record(domain, "CNAME", domain, target, proxied=True, ttl=1)
        except PlatformError as e:
            # Attachment succeeded; DNS is left for the operator. Status stays DNS_PENDING.
            logger.warning(f"Could not create DNS record for {domain}: {e.message}")
            return DomainConfigureResponse(
                dns_configured=False,
                is_apex=apex,
                domain=platform_domain,
                required_record=self._required_record(domain, project_name),
                deployment=record,
                message="Custom domain added to hosting project. Please configure DNS manually.",
            )

        record = self.store.update(customer_id, {"domain_status": DomainStatus.DNS_CONFIGURED})
        logger.info(f"Configured DNS for {domain} -> {target} (customer {customer_id})")
        return DomainConfigureResponse(
            dns_configured=True,
            is_apex=apex,
            domain=platform_domain,
            dns_record=dns_record,
            deployment=record,
            message=f"DNS configured successfully. {domain} now points to {target}",
        )

    def reconcile(self, customer_id: int) -> DomainStatusResponse:
        """Re-read the platform's view of the domain; writes only when the status changes."""
        record = self.store.get(customer_id)
        if record is None:
            raise NotFoundError("No deployment configuration found for this customer")
        if not record.custom_domain:
            return DomainStatusResponse(has_custom_domain=False, domain_status=record.domain_status)

        domain = record.custom_domain
        project_name = record.platform_project_name

        platform_domain = None
        if project_name:
            platform_domain = self._find_platform_domain(project_name, domain)

        new_status = record.domain_status
        if platform_domain is not None:
            new_status = DOMAIN_STATUS_MAP.get(platform_domain.status, record.domain_status)
        if new_status != record.domain_status:
            logger.info(f"Domain {domain} for customer {customer_id}: {record.domain_status.value} -> {new_status.value}")
            record = self.store.update(customer_id, {"domain_status": new_status})

        dns_records: List[DnsRecord] = []
        try:
            dns_records = self.platform.list_dns_records(domain, domain)
        except PlatformError as e:
            logger.warning(f"Error fetching DNS records for {domain}: {e.message}")

        return DomainStatusResponse(
            has_custom_domain=True,
            custom_domain=domain,
            domain_status=record.domain_status,
            platform_domain=platform_domain,
            dns_records=dns_records,
            required_record=self._required_record(domain, project_name) if project_name else None,
        )
