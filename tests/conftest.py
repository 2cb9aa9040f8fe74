"""
Pytest fixtures: an in-memory stand-in for the Supabase query builder and a
scripted hosting platform.
"""

import itertools
from typing import Any, Dict, List, Optional

import pytest

from app.modules.deployments.schemas import DeploymentInitialize, DeploymentRecord, DeploymentStatus, DomainStatus
from app.modules.deployments.service import DeploymentService
from app.modules.deployments.store import DeploymentRecordStore
from app.modules.domains.service import DomainService
from app.modules.platform.schemas import DnsRecord, PlatformDeployment, PlatformDomain, PlatformProject


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Subset of the postgrest builder used by DeploymentRecordStore."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.payload: Optional[Dict[str, Any]] = None
        self.filters = []
        self.single = False
        self.order_by = None

    def select(self, *columns):
        self.op = "select"
        return self

    def insert(self, data):
        self.op = "insert"
        self.payload = data
        return self

    def update(self, data):
        self.op = "update"
        self.payload = data
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def maybe_single(self):
        self.single = True
        return self

    def execute(self):
        self.db.executed.append((self.table_name, self.op))
        if self.op in self.db.fail_ops:
            raise RuntimeError("connection to database lost")
        rows = self.db.tables.setdefault(self.table_name, [])
        matched = [row for row in rows if all(f(row) for f in self.filters)]

        if self.op == "insert":
            if any(row.get("customer_id") == self.payload.get("customer_id") for row in rows):
                raise RuntimeError("duplicate key value violates unique constraint")
            row = {"id": next(self.db.ids), **self.payload}
            rows.append(row)
            return FakeResponse([dict(row)])
        if self.op == "update":
            for row in matched:
                row.update(self.payload)
            return FakeResponse([dict(row) for row in matched])
        if self.op == "delete":
            self.db.tables[self.table_name] = [row for row in rows if row not in matched]
            return FakeResponse([dict(row) for row in matched])

        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda row: str(row.get(column) or ""), reverse=desc)
        if self.single:
            return FakeResponse(dict(matched[0]) if matched else None)
        return FakeResponse([dict(row) for row in matched])


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.fail_ops = set()
        self.executed = []
        self.ids = itertools.count(1)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, name: str = "customer_deployments") -> List[Dict[str, Any]]:
        return self.tables.get(name, [])


class FakePlatform:
    """Scripted hosting platform. Set `errors[method]` to make a call raise."""

    pages_suffix = "pages.dev"

    def __init__(self):
        self.calls = []
        self.errors: Dict[str, Exception] = {}
        self.project_id = "proj_123"
        self.deploy_id = "dep_456"
        self.deploy_url: Optional[str] = "https://dep456.acme-site.pages.dev"
        self.stage_status = "active"
        self.stage_name = "build"
        self.domains: List[PlatformDomain] = []
        self.dns_records: List[DnsRecord] = []

    def _call(self, method: str, *args):
        self.calls.append((method, args))
        if method in self.errors:
            raise self.errors[method]

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def args(self, method: str) -> List[tuple]:
        return [args for name, args in self.calls if name == method]

    def project_subdomain(self, project_name: str) -> str:
        return f"{project_name}.{self.pages_suffix}"

    def production_url(self, project_name: str) -> str:
        return f"https://{self.project_subdomain(project_name)}"

    def create_project(self, name, repo_url=None, branch="main"):
        self._call("create_project", name, repo_url, branch)
        return PlatformProject(id=self.project_id, name=name, subdomain=self.project_subdomain(name))

    def delete_project(self, name):
        self._call("delete_project", name)

    def trigger_deploy(self, name, branch=None):
        self._call("trigger_deploy", name, branch)
        return PlatformDeployment(
            id=self.deploy_id,
            url=self.deploy_url,
            stage_status="idle",
            stage_name="queued",
            environment="production",
        )

    def get_deploy_status(self, name, deploy_id):
        self._call("get_deploy_status", name, deploy_id)
        return PlatformDeployment(
            id=deploy_id,
            url=self.deploy_url,
            stage_status=self.stage_status,
            stage_name=self.stage_name,
            environment="production",
        )

    def add_custom_domain(self, project_name, domain):
        self._call("add_custom_domain", project_name, domain)
        platform_domain = PlatformDomain(id=f"dom_{len(self.domains) + 1}", name=domain, status="pending")
        self.domains.append(platform_domain)
        return platform_domain

    def list_custom_domains(self, project_name):
        self._call("list_custom_domains", project_name)
        return list(self.domains)

    def list_dns_records(self, zone_domain, record_name, record_type=None):
        self._call("list_dns_records", zone_domain, record_name, record_type)
        return [
            r for r in self.dns_records
            if r.name == record_name and (record_type is None or r.type == record_type)
        ]

    def create_dns_record(self, zone_domain, record_type, name, content, proxied=True, ttl=1):
        self._call("create_dns_record", zone_domain, record_type, name, content, proxied, ttl)
        record = DnsRecord(id=f"rec_{len(self.dns_records) + 1}", type=record_type, name=name,
                           content=content, proxied=proxied, ttl=ttl)
        self.dns_records.append(record)
        return record


def assert_record_invariants(record: Optional[DeploymentRecord]) -> None:
    if record is None:
        return
    if record.deployment_status != DeploymentStatus.NOT_DEPLOYED:
        assert record.platform_project_id
    if record.domain_status != DomainStatus.NONE:
        assert record.custom_domain
    if record.last_deployment_error is not None:
        assert record.deployment_status == DeploymentStatus.FAILED


@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def store(fake_db):
    return DeploymentRecordStore(fake_db)


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def deployment_service(store, platform):
    return DeploymentService(store, platform)


@pytest.fixture
def domain_service(store, platform):
    return DomainService(store, platform)


@pytest.fixture
def customer_id():
    return 42


@pytest.fixture
def initialized(deployment_service, customer_id):
    """Customer with a created platform project named acme-site."""
    return deployment_service.initialize(customer_id, DeploymentInitialize(project_name="acme-site"))


@pytest.fixture
def deploying(deployment_service, initialized, customer_id):
    return deployment_service.trigger(customer_id)
