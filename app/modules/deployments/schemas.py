from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, Dict
from datetime import datetime


class DeploymentStatus(str, Enum):
    NOT_DEPLOYED = "NOT_DEPLOYED"
    DEPLOYING = "DEPLOYING"
    DEPLOYED = "DEPLOYED"
    FAILED = "FAILED"


class DomainStatus(str, Enum):
    NONE = "NONE"
    DNS_PENDING = "DNS_PENDING"
    DNS_CONFIGURED = "DNS_CONFIGURED"
    ACTIVE = "ACTIVE"
    ERROR = "ERROR"


class DeploymentRecord(BaseModel):
    id: Optional[int] = None
    customer_id: int
    platform_project_id: Optional[str] = None
    platform_project_name: Optional[str] = None
    production_url: Optional[str] = None
    source_repo_url: Optional[str] = None
    source_branch: str = "main"
    custom_domain: Optional[str] = None
    deployment_status: DeploymentStatus = DeploymentStatus.NOT_DEPLOYED
    domain_status: DomainStatus = DomainStatus.NONE
    last_deployment_id: Optional[str] = None
    last_deployment_at: Optional[datetime] = None
    last_deployment_error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DeploymentInitialize(BaseModel):
    project_name: str
    repo_url: Optional[str] = None
    branch: str = "main"


class DeploymentDetails(BaseModel):
    """Platform view of the last deployment, already mapped off the wire format."""
    id: str
    url: Optional[str] = None
    environment: Optional[str] = None
    stage_status: str
    stage_name: Optional[str] = None
    created_at: Optional[datetime] = None


class ReconcileResult(BaseModel):
    record: DeploymentRecord
    deployment: Optional[DeploymentDetails] = None
    changed: bool = False
    error: Optional[str] = None  # set when the platform could not be queried; status is then unknown


class DeploymentStatusResponse(BaseModel):
    has_active_deployment: bool
    deployment: Optional[DeploymentDetails] = None
    local_status: Optional[DeploymentStatus] = None
    is_polling: bool = False
    error: Optional[str] = None


class DeploymentDeleteResponse(BaseModel):
    customer_id: int
    platform_project_deleted: bool
    message: str


class ReconcileSweepResponse(BaseModel):
    checked: int
    changed: int
    statuses: Dict[int, DeploymentStatus] = Field(default_factory=dict)
    errors: Dict[int, str] = Field(default_factory=dict)
