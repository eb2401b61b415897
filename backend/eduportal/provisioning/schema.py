# backend/eduportal/provisioning/schema.py
"""
Creates a school's remote tables, storage buckets, row-level-security
policies and seed rows.

Each artifact is attempted on its own; a failure is recorded and the run
continues. Re-running against a store that is already set up succeeds with
no errors because "already exists" and "duplicate" answers count as success.
"""
import logging
from dataclasses import dataclass, field
from typing import List

from eduportal.core.exceptions import SchemaSetupError
from eduportal.core.identifiers import generate_temporary_password
from eduportal.core.security import get_password_hash
from eduportal.provisioning.catalogue import (
    TABLES,
    REQUIRED_TABLES,
    BUCKETS,
    POLICIES,
    DEFAULT_CLASSES,
    DEFAULT_ADMIN_USERNAME,
)
from eduportal.services.remote_store import RemoteStoreClient, RemoteStoreError

logger = logging.getLogger(__name__)

_IDEMPOTENT_MARKERS = ("already exists", "duplicate")


def _already_done(error: RemoteStoreError) -> bool:
    message = (error.message or "").lower()
    return any(marker in message for marker in _IDEMPOTENT_MARKERS)


@dataclass
class SchemaSetupResult:
    success: bool = False
    tables_created: List[str] = field(default_factory=list)
    buckets_created: List[str] = field(default_factory=list)
    policies_created: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def record_error(self, error: SchemaSetupError) -> None:
        self.errors.append(error.message)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "tables_created": self.tables_created,
            "buckets_created": self.buckets_created,
            "policies_created": self.policies_created,
            "errors": self.errors,
        }


@dataclass
class SchemaVerification:
    is_complete: bool
    missing_tables: List[str]


class SchemaProvisioner:
    """Sets up and verifies the standard school schema on a remote store"""

    async def setup_complete_schema(self, client: RemoteStoreClient) -> SchemaSetupResult:
        result = SchemaSetupResult()

        await self._create_tables(client, result)
        await self._create_buckets(client, result)
        await self._create_policies(client, result)
        await self._seed_defaults(client, result)

        result.success = not result.errors
        logger.info(
            "Remote schema setup finished",
            extra={
                "tables": len(result.tables_created),
                "buckets": len(result.buckets_created),
                "policies": len(result.policies_created),
                "errors": len(result.errors),
            },
        )
        return result

    async def _create_tables(self, client: RemoteStoreClient, result: SchemaSetupResult) -> None:
        for name, sql in TABLES:
            try:
                await client.exec_sql(sql)
            except RemoteStoreError as e:
                if not _already_done(e):
                    result.record_error(SchemaSetupError(f"table {name}", e.message))
                    continue
            result.tables_created.append(name)

    async def _create_buckets(self, client: RemoteStoreClient, result: SchemaSetupResult) -> None:
        for bucket in BUCKETS:
            try:
                await client.create_bucket(
                    bucket["name"],
                    public=bucket["public"],
                    file_size_limit=bucket["file_size_limit"],
                    allowed_mime_types=bucket["allowed_mime_types"],
                )
            except RemoteStoreError as e:
                if not _already_done(e):
                    result.record_error(SchemaSetupError(f"bucket {bucket['name']}", e.message))
                    continue
            result.buckets_created.append(bucket["name"])

    async def _create_policies(self, client: RemoteStoreClient, result: SchemaSetupResult) -> None:
        for name, sql in POLICIES:
            try:
                await client.exec_sql(sql)
            except RemoteStoreError as e:
                if not _already_done(e):
                    result.record_error(SchemaSetupError(f"policy {name}", e.message))
                    continue
            result.policies_created.append(name)

    async def _seed_defaults(self, client: RemoteStoreClient, result: SchemaSetupResult) -> None:
        admin_row = {
            "username": DEFAULT_ADMIN_USERNAME,
            "name": "School Administrator",
            "password": get_password_hash(generate_temporary_password()),
            "role": "admin",
            "is_active": True,
        }
        seeds = [
            ("users", [admin_row], "username"),
            ("classes", DEFAULT_CLASSES, "name"),
        ]
        for table, rows, conflict_key in seeds:
            try:
                await client.insert(table, rows, upsert=True, on_conflict=conflict_key, ignore_duplicates=True)
            except RemoteStoreError as e:
                if not _already_done(e):
                    result.record_error(SchemaSetupError(f"seed {table}", e.message))

    async def verify_schema(self, client: RemoteStoreClient) -> SchemaVerification:
        missing = []
        for table in REQUIRED_TABLES:
            try:
                await client.select(table, columns="id", limit=1)
            except RemoteStoreError:
                missing.append(table)
        return SchemaVerification(is_complete=not missing, missing_tables=missing)
