# backend/eduportal/services/remote_store.py
"""
Client for a school's hosted remote store (Postgres over REST, object
storage and auth health), one instance per school and key.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Union

import httpx

from eduportal.core.logging import logger


class RemoteStoreError(Exception):
    """Raised when the remote store rejects a request or cannot be reached"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class RemoteConfig:
    url: str
    anon_key: str
    service_key: str
    database_url: Optional[str] = None
    project_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class RemoteStoreClient:
    """Thin async wrapper over the remote store's REST surface"""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.warning(f"Remote store request failed: {method} {path}: {e}")
            raise RemoteStoreError(f"Remote store unreachable: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
                message = body.get("message") or body.get("error") or body.get("msg") or response.text
            except ValueError:
                message = response.text
            raise RemoteStoreError(str(message), status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def exec_sql(self, sql: str) -> Any:
        """Run a SQL statement through the exec_sql RPC"""
        return await self._request("POST", "/rest/v1/rpc/exec_sql", json={"sql": sql})

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"select": columns}
        for key, value in (filters or {}).items():
            params[key] = f"eq.{value}"
        if limit is not None:
            params["limit"] = limit
        return await self._request("GET", f"/rest/v1/{table}", params=params) or []

    async def insert(
        self,
        table: str,
        rows: Union[Dict[str, Any], List[Dict[str, Any]]],
        upsert: bool = False,
        on_conflict: Optional[str] = None,
        ignore_duplicates: bool = False,
    ) -> List[Dict[str, Any]]:
        prefer = ["return=representation"]
        if upsert:
            prefer.append("resolution=ignore-duplicates" if ignore_duplicates else "resolution=merge-duplicates")
        params = {"on_conflict": on_conflict} if on_conflict else None
        return await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=rows,
            params=params,
            headers={"Prefer": ",".join(prefer)},
        ) or []

    async def create_bucket(
        self,
        name: str,
        public: bool = False,
        file_size_limit: Optional[int] = None,
        allowed_mime_types: Optional[List[str]] = None,
    ) -> Any:
        payload: Dict[str, Any] = {"id": name, "name": name, "public": public}
        if file_size_limit is not None:
            payload["file_size_limit"] = file_size_limit
        if allowed_mime_types:
            payload["allowed_mime_types"] = allowed_mime_types
        return await self._request("POST", "/storage/v1/bucket", json=payload)

    async def list_buckets(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/storage/v1/bucket") or []

    async def auth_health(self) -> Any:
        return await self._request("GET", "/auth/v1/health")

    async def aclose(self) -> None:
        await self._client.aclose()
