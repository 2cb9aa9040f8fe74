"""
Core dependencies wiring the record store, the hosting platform client and the orchestrators
"""

from fastapi import Depends
from app.database.supabase_client import get_supabase
from app.modules.deployments.poller import DeploymentPoller
from app.modules.deployments.service import DeploymentService
from app.modules.deployments.store import DeploymentRecordStore
from app.modules.domains.service import DomainService
from app.modules.platform.client import CloudflarePagesClient
from supabase import Client
from typing import Iterator


def get_record_store(supabase: Client = Depends(get_supabase)) -> DeploymentRecordStore:
    return DeploymentRecordStore(supabase)


def get_platform_client() -> Iterator[CloudflarePagesClient]:
    """One platform client per request; its HTTP connection pool is closed afterwards."""
    client = CloudflarePagesClient()
    try:
        yield client
    finally:
        client.close()


def get_deployment_service(
    store: DeploymentRecordStore = Depends(get_record_store),
    platform: CloudflarePagesClient = Depends(get_platform_client),
) -> DeploymentService:
    return DeploymentService(store, platform)


def get_domain_service(
    store: DeploymentRecordStore = Depends(get_record_store),
    platform: CloudflarePagesClient = Depends(get_platform_client),
) -> DomainService:
    return DomainService(store, platform)


def get_deployment_poller(service: DeploymentService = Depends(get_deployment_service)) -> DeploymentPoller:
    return DeploymentPoller(service)
