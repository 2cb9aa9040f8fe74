"""
Caller-driven reconciliation of in-flight deployments.

Nothing here runs on its own: a caller (UI refresh, script, operator route)
asks for a poll and the loop ends as soon as the status leaves DEPLOYING.
Custom domains are never polled; their reconcile runs only on demand.
"""

import time
import logging
from typing import Callable, Optional

from app.config import settings
from app.core.exceptions import ServiceError
from app.modules.deployments.schemas import (
    DeploymentStatus,
    ReconcileResult,
    ReconcileSweepResponse,
)

logger = logging.getLogger(__name__)


def is_polling(status: DeploymentStatus) -> bool:
    """Whether a client should keep polling; derived from status, never stored."""
    return status == DeploymentStatus.DEPLOYING


class DeploymentPoller:
    def __init__(
        self,
        service,
        interval_seconds: Optional[float] = None,
        max_attempts: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.service = service
        self.interval_seconds = settings.poll_interval_seconds if interval_seconds is None else interval_seconds
        self.max_attempts = settings.poll_max_attempts if max_attempts is None else max_attempts
        self.sleep = sleep

    def poll(self, customer_id: int) -> ReconcileResult:
        """Reconcile every interval until the deployment settles or attempts run out."""
        attempts = 0
        while True:
            result = self.service.reconcile(customer_id)
            attempts += 1
            status = result.record.deployment_status
            if not is_polling(status):
                logger.info(f"Deployment for customer {customer_id} settled as {status.value} after {attempts} check(s)")
                return result
            if not result.record.last_deployment_id:
                # DEPLOYING without a deployment id: the trigger never reached the platform
                logger.warning(f"Customer {customer_id} is DEPLOYING with no deployment id; nothing to poll")
                return result
            if self.max_attempts and attempts >= self.max_attempts:
                logger.warning(f"Stopped polling customer {customer_id} after {attempts} attempts; still DEPLOYING")
                return result
            if result.error:
                logger.debug(f"Status unknown for customer {customer_id}: {result.error}")
            self.sleep(self.interval_seconds)

    def reconcile_in_flight(self) -> ReconcileSweepResponse:
        """One reconcile pass over every record currently DEPLOYING."""
        records = self.service.store.list_by_deployment_status(DeploymentStatus.DEPLOYING)
        sweep = ReconcileSweepResponse(checked=len(records), changed=0)
        for record in records:
            try:
                result = self.service.reconcile(record.customer_id)
            except ServiceError as e:
                logger.error(f"Error reconciling deployment for customer {record.customer_id}: {e.message}")
                sweep.errors[record.customer_id] = e.message
                continue
            if result.error:
                sweep.errors[record.customer_id] = result.error
            if result.changed:
                sweep.changed += 1
            sweep.statuses[record.customer_id] = result.record.deployment_status
        logger.info(f"Reconciled {sweep.checked} in-flight deployment(s), {sweep.changed} changed")
        return sweep
