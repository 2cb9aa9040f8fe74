from fastapi import APIRouter, Depends
from app.core.dependencies import get_domain_service
from app.modules.domains.schemas import DomainConfigure, DomainConfigureResponse, DomainStatusResponse
from app.modules.domains.service import DomainService

router = APIRouter(prefix="/customers", tags=["domains"])


@router.post("/{customer_id}/deployment/dns", response_model=DomainConfigureResponse)
def configure_domain(
    customer_id: int,
    data: DomainConfigure,
    service: DomainService = Depends(get_domain_service),
):
    """
    Attach a custom domain to the customer's hosting project and create its CNAME.
    When the DNS zone is not managed by this account the response carries the
    record to create by hand (dns_configured=false).
    """
    return service.configure(customer_id, data.custom_domain)


@router.get("/{customer_id}/deployment/dns", response_model=DomainStatusResponse)
def get_domain_status(
    customer_id: int,
    service: DomainService = Depends(get_domain_service),
):
    """Refresh and return the custom domain status, current DNS records and the required record"""
    return service.reconcile(customer_id)
