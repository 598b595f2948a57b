"""
Client for the attendance API's worker and branch read endpoints.

These calls are the fetch functions handed to ``SWRResource``.
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING
import httpx

from shared.logging import get_logger
from shared.errors import ConfigurationError, ExternalServiceError, ValidationError
from shared.retry import retry_on_exception, RetryConfig
from ..domain.models import Branch, Worker, WorkerPage, WorkersDelta

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.config import WorkerCacheConfig


SERVICE_NAME = "attendance_api"

API_RETRY = RetryConfig(max_attempts=3, base_delay=0.5, max_delay=5.0)


class AttendanceApiClient:
    """Reads branches and workers from the companion API."""

    def __init__(self, base_url: str, timeout: float = 10.0):
        if not base_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                "base_url must be an http(s) URL",
                details={"base_url": base_url}
            )
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.logger = get_logger("worker_cache.attendance_client")

    @classmethod
    def from_config(cls, config: "WorkerCacheConfig") -> "AttendanceApiClient":
        return cls(config.api_base_url, timeout=config.request_timeout)

    @retry_on_exception((httpx.TransportError,), config=API_RETRY)
    async def list_branches(self) -> List[Branch]:
        """All branches (id and name)."""
        payload = await self._get("/api/data/branches")
        return [Branch.model_validate(item) for item in payload.get("branches") or []]

    @retry_on_exception((httpx.TransportError,), config=API_RETRY)
    async def list_workers(self) -> List[Worker]:
        """Every worker, ordered by name, without documents."""
        payload = await self._get("/api/data/workers")
        return [Worker.model_validate(item) for item in payload.get("workers") or []]

    @retry_on_exception((httpx.TransportError,), config=API_RETRY)
    async def list_workers_delta(self, since: Optional[str] = None) -> WorkersDelta:
        """Workers created or updated at or after ``since`` (ISO 8601); all when None."""
        params = {"sinceTimestamp": since} if since else None
        payload = await self._get("/api/data/workers/delta", params)
        return WorkersDelta.model_validate(payload)

    @retry_on_exception((httpx.TransportError,), config=API_RETRY)
    async def get_branch_workers(self, branch_id: str, page: int = 1, page_size: int = 50) -> WorkerPage:
        """One page of a branch's workers."""
        if not branch_id:
            raise ValidationError("branch_id is required")
        if page < 1 or page_size < 1:
            raise ValidationError(
                "page and page_size must be positive",
                details={"page": page, "page_size": page_size}
            )

        params = {"page": str(page), "pageSize": str(page_size)}
        payload = await self._get(f"/api/workers/branch/{branch_id}", params)
        return WorkerPage.model_validate(payload)

    @retry_on_exception((httpx.TransportError,), config=API_RETRY)
    async def get_worker(self, worker_id: str) -> Optional[Worker]:
        """A single worker, or None when the API reports it missing."""
        if not worker_id:
            raise ValidationError("worker_id is required")

        payload = await self._get(f"/api/data/workers/{worker_id}", allow_not_found=True)
        if payload is None:
            return None
        return Worker.model_validate(payload["worker"])

    async def _get(
        self,
        path: str,
        params: Optional[Dict[str, str]] = None,
        *,
        allow_not_found: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """GET ``path`` and unwrap the ``{"ok": ..., "message": ...}`` envelope."""
        url = f"{self.base_url}{path}"
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(url, params=params)

        if response.status_code == 404 and allow_not_found:
            self.logger.info("Resource not found", url=url)
            return None

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not isinstance(payload, dict):
            self.logger.error("Unexpected response body", url=url, status_code=response.status_code)
            raise ExternalServiceError(
                service=SERVICE_NAME,
                message=f"Unexpected response body (status {response.status_code})",
                details={"status_code": response.status_code, "body": response.text[:500]}
            )

        if response.status_code >= 400 or not payload.get("ok"):
            message = payload.get("message") or f"Unexpected status {response.status_code}"
            self.logger.error(
                "Attendance API request failed",
                url=url,
                params=params,
                status_code=response.status_code,
                message=message
            )
            raise ExternalServiceError(
                service=SERVICE_NAME,
                message=message,
                details={"status_code": response.status_code, "path": path}
            )

        self.logger.debug("Attendance API response", url=url, status_code=response.status_code)
        return payload
