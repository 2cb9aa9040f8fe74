from app.core.exceptions import (
    ConflictError,
    InputValidationError,
    NotFoundError,
    PlatformError,
    PreconditionFailedError,
)
from app.modules.deployments.poller import is_polling
from app.modules.deployments.schemas import (
    DeploymentDeleteResponse,
    DeploymentDetails,
    DeploymentInitialize,
    DeploymentRecord,
    DeploymentStatus,
    DeploymentStatusResponse,
    DomainStatus,
    ReconcileResult,
)
from app.modules.deployments.store import DeploymentRecordStore
from app.modules.platform.client import CloudflarePagesClient
from datetime import datetime, timezone
from typing import Optional
import logging
import re

logger = logging.getLogger(__name__)

PROJECT_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*[a-z0-9]$|^[a-z0-9]$")

# Platform stage status -> local status. Anything missing here leaves the local status alone.
STAGE_STATUS_MAP = {
    "success": DeploymentStatus.DEPLOYED,
    "failure": DeploymentStatus.FAILED,
    "canceled": DeploymentStatus.FAILED,
    "active": DeploymentStatus.DEPLOYING,
}


def map_stage_status(stage_status: str, current: DeploymentStatus) -> DeploymentStatus:
    return STAGE_STATUS_MAP.get(stage_status, current)


def validate_project_name(project_name: str) -> str:
    if not project_name:
        raise InputValidationError("Project name is required")
    if not PROJECT_NAME_PATTERN.match(project_name):
        raise InputValidationError(
            "Project name must be lowercase, start and end with alphanumeric characters, "
            "and contain only letters, numbers, and hyphens"
        )
    return project_name


class DeploymentService:
    """Deployment lifecycle for one customer: NOT_DEPLOYED -> DEPLOYING -> DEPLOYED | FAILED.

    The local record is written around each platform call, never inside a
    transaction with it. If a write fails after the platform accepted the
    request, the PersistenceError is surfaced and the next reconcile() repairs
    the record from the platform's view.
    """

    def __init__(self, store: DeploymentRecordStore, platform: CloudflarePagesClient):
        self.store = store
        self.platform = platform

    def get_record(self, customer_id: int) -> Optional[DeploymentRecord]:
        return self.store.get(customer_id)

    def _require_record(self, customer_id: int) -> DeploymentRecord:
        record = self.store.get(customer_id)
        if record is None:
            raise NotFoundError("No deployment configuration found for this customer")
        return record

    def initialize(self, customer_id: int, data: DeploymentInitialize) -> DeploymentRecord:
        """Create the platform project and record it. Retryable until it succeeds once."""
        existing = self.store.get(customer_id)
        if existing is not None and existing.platform_project_id:
            raise ConflictError("Deployment already initialized for this customer")

        project_name = validate_project_name(data.project_name)
        branch = data.branch or "main"

        # A platform failure propagates before anything is written
        project = self.platform.create_project(project_name, data.repo_url, branch)
        logger.info(f"Created platform project {project.name} ({project.id}) for customer {customer_id}")

        fields = {
            "platform_project_id": project.id,
            "platform_project_name": project.name,
            "production_url": self.platform.production_url(project.name),
            "source_repo_url": data.repo_url or None,
            "source_branch": branch,
            "custom_domain": None,
            "deployment_status": DeploymentStatus.NOT_DEPLOYED,
            "domain_status": DomainStatus.NONE,
            "last_deployment_id": None,
            "last_deployment_at": None,
            "last_deployment_error": None,
        }
        try:
            if existing is None:
                return self.store.create(customer_id, fields)
            return self.store.update(customer_id, fields)
        except Exception:
            logger.error(
                f"Platform project {project.name} exists but the record for customer {customer_id} was not saved"
            )
            raise

    def trigger(self, customer_id: int) -> DeploymentRecord:
        record = self._require_record(customer_id)
        if not record.platform_project_id or not record.platform_project_name:
            raise PreconditionFailedError("Deployment not initialized. Please initialize deployment first.")
        if record.deployment_status == DeploymentStatus.DEPLOYING:
            raise ConflictError("A deployment is already in progress")

        # Set DEPLOYING before the remote call so a crash leaves a visible in-progress state
        if self.store.mark_deploying(customer_id) is None:
            raise ConflictError("A deployment is already in progress")

        try:
            deployment = self.platform.trigger_deploy(record.platform_project_name, record.source_branch or "main")
        except PlatformError as e:
            logger.error(f"Failed to trigger deployment for customer {customer_id}: {e.message}")
            self.store.update(customer_id, {
                "deployment_status": DeploymentStatus.FAILED,
                "last_deployment_error": e.message,
            })
            raise

        logger.info(f"Triggered deployment {deployment.id} for customer {customer_id}")
        return self.store.update(customer_id, {
            "deployment_status": DeploymentStatus.DEPLOYING,
            "last_deployment_id": deployment.id,
            "last_deployment_at": datetime.now(timezone.utc),
            "production_url": deployment.url or record.production_url,
        })

    def reconcile(self, customer_id: int) -> ReconcileResult:
        """Pull the last deployment's stage from the platform and write only on change."""
        record = self._require_record(customer_id)
        if not record.last_deployment_id or not record.platform_project_name:
            return ReconcileResult(record=record)

        try:
            remote = self.platform.get_deploy_status(record.platform_project_name, record.last_deployment_id)
        except PlatformError as e:
            logger.warning(f"Could not fetch deployment status for customer {customer_id}: {e.message}")
            return ReconcileResult(
                record=record,
                error=f"Could not fetch deployment status from the hosting platform: {e.message}",
            )

        details = DeploymentDetails(
            id=remote.id,
            url=remote.url,
            environment=remote.environment,
            stage_status=remote.stage_status,
            stage_name=remote.stage_name,
            created_at=remote.created_at,
        )
        new_status = map_stage_status(remote.stage_status, record.deployment_status)
        if new_status == record.deployment_status:
            return ReconcileResult(record=record, deployment=details)

        error = None
        if new_status == DeploymentStatus.FAILED:
            error = f"{remote.stage_status}: {remote.stage_name or 'unknown'}"
        updated = self.store.update(customer_id, {
            "deployment_status": new_status,
            "production_url": remote.url or record.production_url,
            "last_deployment_error": error,
        })
        logger.info(
            f"Deployment {remote.id} for customer {customer_id}: "
            f"{record.deployment_status.value} -> {new_status.value}"
        )
        return ReconcileResult(record=updated, deployment=details, changed=True)

    def get_status(self, customer_id: int) -> DeploymentStatusResponse:
        result = self.reconcile(customer_id)
        if not result.record.last_deployment_id:
            return DeploymentStatusResponse(has_active_deployment=False)
        status = result.record.deployment_status
        return DeploymentStatusResponse(
            has_active_deployment=True,
            deployment=result.deployment,
            local_status=status,
            is_polling=is_polling(status),
            error=result.error,
        )

    def delete(self, customer_id: int, also_delete_platform_project: bool = False) -> DeploymentDeleteResponse:
        record = self.store.get(customer_id)
        if record is None:
            raise NotFoundError("No deployment found for this customer")

        platform_deleted = False
        if also_delete_platform_project and record.platform_project_name:
            try:
                self.platform.delete_project(record.platform_project_name)
                platform_deleted = True
            except PlatformError as e:
                # The project may already be gone; the local record is removed regardless
                logger.error(f"Error deleting platform project {record.platform_project_name}: {e.message}")

        self.store.delete(customer_id)
        logger.info(f"Deleted deployment record for customer {customer_id}")

        if platform_deleted:
            message = "Deployment and hosting project deleted successfully"
        elif also_delete_platform_project and record.platform_project_name:
            message = "Deployment configuration deleted; hosting project could not be deleted"
        else:
            message = "Deployment configuration deleted (hosting project preserved)"
        return DeploymentDeleteResponse(
            customer_id=customer_id,
            platform_project_deleted=platform_deleted,
            message=message,
        )
