"""
Watch Deployment Script
Polls one customer's deployment until it leaves DEPLOYING, or with --all runs a
single reconcile pass over every in-flight deployment (e.g. after an outage).

Usage:
    python app/scripts/watch_deployment.py 42
    python app/scripts/watch_deployment.py --all
"""

import sys
import argparse
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from app.core.exceptions import ServiceError
from app.database.supabase_client import SupabaseClient
from app.modules.deployments.poller import DeploymentPoller
from app.modules.deployments.service import DeploymentService
from app.modules.deployments.store import DeploymentRecordStore
from app.modules.platform.client import CloudflarePagesClient
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Reconcile customer deployments with the hosting platform")
    parser.add_argument("customer_id", nargs="?", type=int, help="Customer to poll until the deployment settles")
    parser.add_argument("--all", action="store_true", help="Reconcile every deployment currently DEPLOYING once")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between checks")
    args = parser.parse_args(argv)

    if args.customer_id is None and not args.all:
        parser.error("customer_id or --all is required")

    platform = CloudflarePagesClient()
    service = DeploymentService(DeploymentRecordStore(SupabaseClient.get_service_client()), platform)
    poller = DeploymentPoller(service, interval_seconds=args.interval)
    try:
        if args.all:
            sweep = poller.reconcile_in_flight()
            for customer_id, error in sweep.errors.items():
                logger.warning(f"Customer {customer_id}: {error}")
            return 1 if sweep.errors else 0

        result = poller.poll(args.customer_id)
        logger.info(f"Customer {args.customer_id}: {result.record.deployment_status.value}")
        if result.record.last_deployment_error:
            logger.info(f"Last error: {result.record.last_deployment_error}")
        return 0
    except ServiceError as e:
        logger.error(f"Error: {e.message}")
        return 1
    finally:
        platform.close()


if __name__ == "__main__":
    sys.exit(main())
