from supabase import Client
from app.core.exceptions import PersistenceError
from app.modules.deployments.schemas import DeploymentRecord, DeploymentStatus
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from enum import Enum
import logging

logger = logging.getLogger(__name__)

TABLE = "customer_deployments"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _serialize(fields: Dict[str, Any]) -> Dict[str, Any]:
    data = {}
    for key, value in fields.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, datetime):
            value = value.isoformat()
        data[key] = value
    return data


class DeploymentRecordStore:
    """Supabase-backed store for the one-per-customer deployment record.

    Every Supabase failure is re-raised as PersistenceError; nothing is retried here.
    """

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get(self, customer_id: int) -> Optional[DeploymentRecord]:
        try:
            result = self.supabase.table(TABLE)\
                .select("*")\
                .eq("customer_id", customer_id)\
                .maybe_single()\
                .execute()
        except Exception as e:
            logger.error(f"Error reading deployment record for customer {customer_id}: {str(e)}")
            raise PersistenceError("Failed to read deployment record") from e

        if result is None or not result.data:
            return None
        return DeploymentRecord(**result.data)

    def create(self, customer_id: int, fields: Dict[str, Any]) -> DeploymentRecord:
        """Insert the record with all initial fields in one write."""
        now = _utcnow()
        insert_data = _serialize({**fields, "customer_id": customer_id, "created_at": now, "updated_at": now})
        try:
            result = self.supabase.table(TABLE).insert(insert_data).execute()
        except Exception as e:
            logger.error(f"Error creating deployment record for customer {customer_id}: {str(e)}")
            raise PersistenceError("Failed to create deployment record") from e

        if not result.data:
            raise PersistenceError("Failed to create deployment record")
        return DeploymentRecord(**result.data[0])

    def update(self, customer_id: int, fields: Dict[str, Any]) -> DeploymentRecord:
        update_data = _serialize({**fields, "updated_at": _utcnow()})
        try:
            result = self.supabase.table(TABLE)\
                .update(update_data)\
                .eq("customer_id", customer_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error updating deployment record for customer {customer_id}: {str(e)}")
            raise PersistenceError("Failed to update deployment record") from e

        if result.data:
            return DeploymentRecord(**result.data[0])
        # Empty response can happen (e.g. PostgREST return=minimal); re-read to confirm
        record = self.get(customer_id)
        if record is None:
            raise PersistenceError("Failed to update deployment record")
        return record

    def mark_deploying(self, customer_id: int) -> Optional[DeploymentRecord]:
        """Conditionally move the record to DEPLOYING and clear the last error.

        Returns None when no row matched, i.e. a deploy is already in flight
        (or the record vanished). This is the only guard against duplicate
        remote deploys, so the condition lives in the UPDATE itself.
        """
        update_data = _serialize({
            "deployment_status": DeploymentStatus.DEPLOYING,
            "last_deployment_error": None,
            "updated_at": _utcnow(),
        })
        try:
            result = self.supabase.table(TABLE)\
                .update(update_data)\
                .eq("customer_id", customer_id)\
                .neq("deployment_status", DeploymentStatus.DEPLOYING.value)\
                .execute()
        except Exception as e:
            logger.error(f"Error marking deployment in progress for customer {customer_id}: {str(e)}")
            raise PersistenceError("Failed to update deployment record") from e

        if not result.data:
            return None
        return DeploymentRecord(**result.data[0])

    def list_by_deployment_status(self, status: DeploymentStatus) -> List[DeploymentRecord]:
        try:
            result = self.supabase.table(TABLE)\
                .select("*")\
                .eq("deployment_status", status.value)\
                .order("updated_at", desc=True)\
                .execute()
        except Exception as e:
            logger.error(f"Error listing deployment records with status {status.value}: {str(e)}")
            raise PersistenceError("Failed to list deployment records") from e

        return [DeploymentRecord(**row) for row in (result.data or [])]

    def delete(self, customer_id: int) -> None:
        try:
            self.supabase.table(TABLE)\
                .delete()\
                .eq("customer_id", customer_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error deleting deployment record for customer {customer_id}: {str(e)}")
            raise PersistenceError("Failed to delete deployment record") from e
