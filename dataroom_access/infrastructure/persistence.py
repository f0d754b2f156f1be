"""Persistence gateways for group permission batches"""

from threading import Lock
from typing import Any, Dict, List, Optional

import httpx

from dataroom_access.core.config import Settings, get_settings
from dataroom_access.core.exceptions import ConfigurationError, PersistenceFailedError
from dataroom_access.core.permissions.batcher import ChangeBatch
from dataroom_access.infrastructure.logging import get_logger

logger = get_logger(__name__)


class PersistenceGateway:
    """Abstract base for permission batch storage"""

    def save(self, dataroom_id: str, group_id: str, batch: ChangeBatch) -> None:
        """Durably store ``batch``.

        Raises:
            PersistenceFailedError: if the batch was not stored.
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release any underlying resources"""
        pass


class InMemoryPersistenceGateway(PersistenceGateway):
    """Gateway that records every request body it receives"""

    def __init__(self):
        self.requests: List[Dict[str, Any]] = []
        self.permissions: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.fail_next: Optional[str] = None
        self._lock = Lock()

    def save(self, dataroom_id: str, group_id: str, batch: ChangeBatch) -> None:
        payload = batch.to_payload(dataroom_id, group_id)
        with self._lock:
            if self.fail_next is not None:
                reason, self.fail_next = self.fail_next, None
                raise PersistenceFailedError(reason, item_count=len(batch))
            self.requests.append(payload)
            stored = self.permissions.setdefault(f"{dataroom_id}/{group_id}", {})
            stored.update(payload["permissions"])


class HttpPersistenceGateway(PersistenceGateway):
    """Posts batches to the team dataroom group permissions endpoint"""

    def __init__(
        self,
        team_id: str,
        base_url: Optional[str] = None,
        auth_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not team_id:
            raise ConfigurationError("A team id is required to persist permissions")
        settings = get_settings()
        self.team_id = team_id
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        if timeout is None:
            timeout = settings.request_timeout_seconds

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"

        self.client = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "HttpPersistenceGateway":
        settings = settings or get_settings()
        return cls(
            team_id=settings.team_id,
            base_url=settings.api_base_url,
            auth_token=settings.api_token,
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        self.client.close()

    def endpoint(self, dataroom_id: str, group_id: str) -> str:
        return (
            f"/api/teams/{self.team_id}/datarooms/{dataroom_id}"
            f"/groups/{group_id}/permissions"
        )

    def save(self, dataroom_id: str, group_id: str, batch: ChangeBatch) -> None:
        path = self.endpoint(dataroom_id, group_id)
        try:
            response = self.client.post(
                path, json=batch.to_payload(dataroom_id, group_id)
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("permissions_request_failed", path=path, error=str(e))
            raise PersistenceFailedError(str(e), item_count=len(batch)) from e

        if not response.is_success:
            logger.error(
                "permissions_request_rejected",
                path=path,
                status_code=response.status_code,
            )
            raise PersistenceFailedError(
                "Failed to save permissions",
                status_code=response.status_code,
                item_count=len(batch),
            )

        logger.debug("permissions_request_completed", path=path, items=len(batch))
