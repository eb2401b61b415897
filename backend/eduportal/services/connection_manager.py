# backend/eduportal/services/connection_manager.py
"""
Per-school remote store handles.

One TenantConnectionManager is owned by the application (``app.state``) and
handed to routes and services through a dependency; nothing here is a module
global, so tests can build their own with a fake client factory.
"""
import asyncio
import logging
from typing import Callable, Dict, List, Optional

from eduportal.core.config import settings
from eduportal.core.identifiers import generate_remote_key
from eduportal.db.models.school import SchoolInstance
from eduportal.services.remote_store import RemoteConfig, RemoteStoreClient, RemoteStoreError

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, str], RemoteStoreClient]


def default_client_factory(url: str, api_key: str) -> RemoteStoreClient:
    return RemoteStoreClient(url, api_key, timeout=settings.REMOTE_STORE_TIMEOUT_SECONDS)


class TenantConnectionManager:
    """Caches one anon and one service-key client per school"""

    def __init__(self, client_factory: Optional[ClientFactory] = None):
        self._client_factory = client_factory or default_client_factory
        self._clients: Dict[str, RemoteStoreClient] = {}
        self._admin_clients: Dict[str, RemoteStoreClient] = {}
        self._configs: Dict[str, RemoteConfig] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        return self._locks.setdefault(key, asyncio.Lock())

    def get_config(self, school_id: str) -> Optional[RemoteConfig]:
        return self._configs.get(school_id)

    async def _get_or_build(
        self,
        cache: Dict[str, RemoteStoreClient],
        lock_key: str,
        school_id: str,
        config: Optional[RemoteConfig],
        admin: bool,
    ) -> Optional[RemoteStoreClient]:
        client = cache.get(school_id)
        if client is not None and not client.is_closed:
            return client
        if config is None and school_id not in self._configs:
            return None

        async with self._lock_for(lock_key):
            # Another task may have built it while we waited
            client = cache.get(school_id)
            if client is not None and not client.is_closed:
                return client

            if config is not None:
                self._configs[school_id] = config
            config = self._configs.get(school_id)
            if config is None:
                return None

            key = config.service_key if admin else config.anon_key
            try:
                client = self._client_factory(config.url, key)
            except Exception as e:
                logger.error(
                    f"Failed to create remote client for {school_id}: {e}",
                    extra={"school_id": school_id},
                )
                return None

            cache[school_id] = client
            return client

    async def get_client(self, school_id: str, config: Optional[RemoteConfig] = None) -> Optional[RemoteStoreClient]:
        """Cached anon-key client, built from `config` or the cached config"""
        return await self._get_or_build(self._clients, school_id, school_id, config, admin=False)

    async def get_admin_client(
        self, school_id: str, config: Optional[RemoteConfig] = None
    ) -> Optional[RemoteStoreClient]:
        """Cached service-key client, used for provisioning"""
        return await self._get_or_build(
            self._admin_clients, f"{school_id}:admin", school_id, config, admin=True
        )

    def build_config(self, school: SchoolInstance) -> Optional[RemoteConfig]:
        """Derive connection settings from a school record; None if it has no remote project"""
        if not school.remote_url and not school.remote_project_id:
            return None

        project_id = school.remote_project_id
        url = school.remote_url or f"https://{project_id}.{settings.REMOTE_STORE_DOMAIN}"
        database_url = school.database_url
        if not database_url and project_id:
            database_url = f"postgresql://postgres@db.{project_id}.{settings.REMOTE_STORE_DOMAIN}:5432/postgres"

        return RemoteConfig(
            url=url,
            anon_key=school.remote_anon_key or generate_remote_key("anon"),
            service_key=school.remote_service_key or generate_remote_key("service"),
            database_url=database_url,
            project_id=project_id,
        )

    async def register_tenant(self, school: SchoolInstance) -> Optional[RemoteConfig]:
        """Cache a school's remote config and eagerly open its client"""
        config = self.build_config(school)
        if config is None:
            logger.info(
                "School has no remote project configured",
                extra={"school_id": school.school_id},
            )
            return None

        # Re-registration replaces any handle built from stale settings
        await self.remove_client(school.school_id)

        client = await self.get_client(school.school_id, config)
        if client is None:
            self._configs.pop(school.school_id, None)
            return None

        logger.info("Registered remote store", extra={"school_id": school.school_id})
        return config

    async def check_connection(self, school_id: str) -> bool:
        client = await self.get_client(school_id)
        if client is None:
            return False
        try:
            await client.auth_health()
        except RemoteStoreError as e:
            logger.warning(f"Remote store health check failed: {e.message}", extra={"school_id": school_id})
            return False
        return True

    async def remove_client(self, school_id: str) -> None:
        """Evict and close every cached handle for a school"""
        self._configs.pop(school_id, None)
        self._locks.pop(school_id, None)
        self._locks.pop(f"{school_id}:admin", None)
        for cache in (self._clients, self._admin_clients):
            client = cache.pop(school_id, None)
            if client is not None and not client.is_closed:
                await client.aclose()

    def registered_tenants(self) -> List[str]:
        return sorted(self._clients)

    async def close_all(self) -> None:
        for school_id in list(set(self._clients) | set(self._admin_clients) | set(self._configs)):
            await self.remove_client(school_id)
