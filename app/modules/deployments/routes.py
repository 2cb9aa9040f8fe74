from fastapi import APIRouter, Depends
from app.core.dependencies import get_deployment_poller, get_deployment_service
from app.modules.deployments.poller import DeploymentPoller
from app.modules.deployments.schemas import (
    DeploymentDeleteResponse,
    DeploymentInitialize,
    DeploymentRecord,
    DeploymentStatusResponse,
    ReconcileSweepResponse,
)
from app.modules.deployments.service import DeploymentService
from typing import Optional

router = APIRouter(prefix="/customers", tags=["deployments"])
sweep_router = APIRouter(prefix="/deployments", tags=["deployments"])


@router.get("/{customer_id}/deployment", response_model=Optional[DeploymentRecord])
def get_deployment(
    customer_id: int,
    service: DeploymentService = Depends(get_deployment_service),
):
    """Get the stored deployment configuration (null when the customer has none)"""
    return service.get_record(customer_id)


@router.post("/{customer_id}/deployment", response_model=DeploymentRecord, status_code=201)
def initialize_deployment(
    customer_id: int,
    data: DeploymentInitialize,
    service: DeploymentService = Depends(get_deployment_service),
):
    """Create the hosting project for a customer and store its identifiers"""
    return service.initialize(customer_id, data)


@router.delete("/{customer_id}/deployment", response_model=DeploymentDeleteResponse)
def delete_deployment(
    customer_id: int,
    delete_project: bool = False,
    service: DeploymentService = Depends(get_deployment_service),
):
    """Delete the deployment record, and the hosting project when delete_project=true"""
    return service.delete(customer_id, also_delete_platform_project=delete_project)


@router.post("/{customer_id}/deployment/deploy", response_model=DeploymentRecord)
def trigger_deployment(
    customer_id: int,
    service: DeploymentService = Depends(get_deployment_service),
):
    """Start a new deployment. Rejected with 409 while one is in progress."""
    return service.trigger(customer_id)


@router.get("/{customer_id}/deployment/deploy", response_model=DeploymentStatusResponse)
def get_deployment_status(
    customer_id: int,
    service: DeploymentService = Depends(get_deployment_service),
):
    """
    Poll for deployment status.
    Reconciles with the hosting platform; clients keep polling while is_polling is true.
    """
    return service.get_status(customer_id)


@sweep_router.post("/reconcile", response_model=ReconcileSweepResponse)
def reconcile_in_flight(
    poller: DeploymentPoller = Depends(get_deployment_poller),
):
    """Run one reconcile pass over every deployment still marked DEPLOYING"""
    return poller.reconcile_in_flight()
