"""
Cloudflare Pages and DNS binding of the hosting platform client.

Raw Cloudflare payloads stop here: every public method returns one of the
models in app.modules.platform.schemas or raises PlatformError /
AlreadyExistsError with a message that can be shown to an operator.
"""

import re
import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

import httpx
from pydantic import ValidationError as PayloadValidationError

from app.config import settings
from app.core.exceptions import AlreadyExistsError, PlatformError
from app.modules.platform.schemas import (
    DnsRecord,
    PlatformDeployment,
    PlatformDomain,
    PlatformProject,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

GITHUB_REPO_PATTERN = re.compile(r"github\.com[/:]([^/]+)/([^/.]+)(?:\.git)?$")
ALREADY_EXISTS_MARKERS = ("already exists", "already added")
# Raised while mapping a success payload that lacks the fields we read
MALFORMED_PAYLOAD_ERRORS = (KeyError, IndexError, TypeError, AttributeError, PayloadValidationError)


def zone_root(domain: str) -> str:
    """Registrable root used for zone lookup: 'www.example.com' -> 'example.com'."""
    parts = domain.split(".")
    return ".".join(parts[-2:]) if len(parts) > 2 else domain


class CloudflarePagesClient:
    def __init__(
        self,
        api_token: Optional[str] = None,
        account_id: Optional[str] = None,
        api_base: Optional[str] = None,
        pages_suffix: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_token = api_token if api_token is not None else settings.cloudflare_api_token
        self.account_id = account_id if account_id is not None else settings.cloudflare_account_id
        self.api_base = (api_base or settings.cloudflare_api_base).rstrip("/")
        self.pages_suffix = pages_suffix or settings.pages_domain_suffix
        self.timeout = timeout or settings.platform_timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def project_subdomain(self, project_name: str) -> str:
        return f"{project_name}.{self.pages_suffix}"

    def production_url(self, project_name: str) -> str:
        return f"https://{self.project_subdomain(project_name)}"

    def _get_client(self) -> httpx.Client:
        if not self.api_token:
            raise PlatformError(
                "CLOUDFLARE_API_TOKEN is not set. Please add it to your environment variables."
            )
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                base_url=self.api_base,
                headers={
                    "Authorization": f"Bearer {self.api_token}",
                    "Content-Type": "application/json",
                },
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    def _account_path(self, suffix: str) -> str:
        if not self.account_id:
            raise PlatformError(
                "CLOUDFLARE_ACCOUNT_ID is not set. Please add it to your environment variables."
            )
        return f"/accounts/{self.account_id}{suffix}"

    def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            self._client.close()
        self._client = None

    def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send one request and return the envelope's `result`. Never retried."""
        client = self._get_client()
        try:
            response = client.request(method, path, json=json, params=params)
        except httpx.TimeoutException as e:
            logger.error(f"Cloudflare request timed out: {method} {path}: {e}")
            raise PlatformError("Hosting platform did not respond in time") from e
        except httpx.RequestError as e:
            logger.error(f"Cloudflare request failed: {method} {path}: {e}")
            raise PlatformError("Could not reach the hosting platform") from e

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"Cloudflare returned non-JSON response ({response.status_code}) for {method} {path}")
            raise PlatformError(
                f"Hosting platform returned an unexpected response (HTTP {response.status_code})"
            ) from e
        if not isinstance(payload, dict):
            raise PlatformError(
                f"Hosting platform returned an unexpected response (HTTP {response.status_code})"
            )

        if not payload.get("success", False):
            errors = payload.get("errors")
            if not isinstance(errors, list):
                errors = []
            messages = ", ".join(str(e["message"]) for e in errors if isinstance(e, dict) and e.get("message"))
            message = f"Cloudflare API Error: {messages or f'HTTP {response.status_code}'}"
            if any(marker in messages.lower() for marker in ALREADY_EXISTS_MARKERS):
                raise AlreadyExistsError(message)
            raise PlatformError(message)
        return payload.get("result")

    def _parse(self, what: str, mapper: Callable[[Any], T], result: Any) -> T:
        """Map a success `result` to a boundary model; a malformed one is a PlatformError."""
        try:
            return mapper(result)
        except MALFORMED_PAYLOAD_ERRORS as e:
            logger.error(f"Cloudflare returned a malformed {what} payload: {e!r}")
            raise PlatformError("Hosting platform returned an unexpected response") from e

    # Pages projects

    def create_project(self, name: str, repo_url: Optional[str] = None, branch: str = "main") -> PlatformProject:
        project_config: Dict[str, Any] = {"name": name, "production_branch": branch or "main"}
        if repo_url:
            match = GITHUB_REPO_PATTERN.search(repo_url)
            if match:
                owner, repo_name = match.groups()
                project_config["source"] = {
                    "type": "github",
                    "config": {
                        "owner": owner,
                        "repo_name": repo_name,
                        "production_branch": branch or "main",
                        "deployments_enabled": True,
                        "preview_deployment_setting": "all",
                    },
                }
            else:
                logger.warning(f"Repository URL {repo_url} is not a GitHub URL; creating direct upload project")
        result = self._request("POST", self._account_path("/pages/projects"), json=project_config)
        return self._parse("project", self._to_project, result)

    @staticmethod
    def _to_project(result: Dict[str, Any]) -> PlatformProject:
        return PlatformProject(id=result["id"], name=result["name"], subdomain=result.get("subdomain"))

    def delete_project(self, name: str) -> None:
        self._request("DELETE", self._account_path(f"/pages/projects/{name}"))

    # Deployments

    def trigger_deploy(self, name: str, branch: Optional[str] = None) -> PlatformDeployment:
        body = {"branch": branch} if branch else {}
        result = self._request("POST", self._account_path(f"/pages/projects/{name}/deployments"), json=body)
        return self._parse("deployment", self._to_deployment, result)

    def get_deploy_status(self, name: str, deploy_id: str) -> PlatformDeployment:
        result = self._request("GET", self._account_path(f"/pages/projects/{name}/deployments/{deploy_id}"))
        return self._parse("deployment", self._to_deployment, result)

    @staticmethod
    def _to_deployment(result: Dict[str, Any]) -> PlatformDeployment:
        latest_stage = result.get("latest_stage") or {}
        return PlatformDeployment(
            id=result["id"],
            url=result.get("url") or None,
            stage_status=latest_stage.get("status") or "unknown",
            stage_name=latest_stage.get("name"),
            environment=result.get("environment"),
            created_at=result.get("created_on"),
        )

    # Custom domains

    def add_custom_domain(self, project_name: str, domain: str) -> PlatformDomain:
        result = self._request(
            "POST",
            self._account_path(f"/pages/projects/{project_name}/domains"),
            json={"name": domain},
        )
        return self._parse("custom domain", self._to_domain, result)

    def list_custom_domains(self, project_name: str) -> List[PlatformDomain]:
        result = self._request("GET", self._account_path(f"/pages/projects/{project_name}/domains")) or []
        return self._parse("custom domain list", lambda items: [self._to_domain(d) for d in items], result)

    @staticmethod
    def _to_domain(result: Dict[str, Any]) -> PlatformDomain:
        return PlatformDomain(id=result.get("id"), name=result["name"], status=result.get("status") or "pending")

    # DNS

    def _zone_id(self, domain: str) -> str:
        root = zone_root(domain)
        zones = self._request("GET", "/zones", params={"name": root}) or []
        if not zones:
            raise PlatformError(
                f'Domain "{root}" not found in your Cloudflare account. Please add the domain to Cloudflare first.'
            )
        return self._parse("zone", self._to_zone_id, zones)

    @staticmethod
    def _to_zone_id(zones: List[Dict[str, Any]]) -> str:
        zone_id = zones[0]["id"]
        if not isinstance(zone_id, str) or not zone_id:
            raise TypeError(f"zone id {zone_id!r} is not a string")
        return zone_id

    def list_dns_records(self, zone_domain: str, record_name: str, record_type: Optional[str] = None) -> List[DnsRecord]:
        zone_id = self._zone_id(zone_domain)
        params = {"name": record_name}
        if record_type:
            params["type"] = record_type
        result = self._request("GET", f"/zones/{zone_id}/dns_records", params=params) or []
        return self._parse("DNS record list", lambda items: [self._to_dns_record(r) for r in items], result)

    def create_dns_record(
        self,
        zone_domain: str,
        record_type: str,
        name: str,
        content: str,
        proxied: bool = True,
        ttl: int = 1,
    ) -> DnsRecord:
        zone_id = self._zone_id(zone_domain)
        result = self._request(
            "POST",
            f"/zones/{zone_id}/dns_records",
            json={"type": record_type, "name": name, "content": content, "proxied": proxied, "ttl": ttl},
        )
        return self._parse("DNS record", self._to_dns_record, result)

    @staticmethod
    def _to_dns_record(result: Dict[str, Any]) -> DnsRecord:
        return DnsRecord(
            id=result.get("id"),
            type=result["type"],
            name=result["name"],
            content=result["content"],
            proxied=bool(result.get("proxied", False)),
            ttl=result.get("ttl", 1),
        )

    # Token

    def verify_token(self) -> bool:
        try:
            result = self._request("GET", "/user/tokens/verify")
        except PlatformError as e:
            logger.warning(f"Cloudflare token verification failed: {e}")
            return False
        return isinstance(result, dict) and result.get("status") == "active"
