# backend/eduportal/core/tenant.py
"""Resolve the school an inbound request belongs to."""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from eduportal.core.config import settings
from eduportal.db.models.school import SchoolInstance
from eduportal.db.repositories.school_repository import SchoolInstanceRepository


def extract_subdomain(host: Optional[str], base_domain: Optional[str] = None) -> Optional[str]:
    """
    Return the school subdomain of a Host header, or None.

    Examples:
        "greenvalley-ab12cd.eduportal.local" -> "greenvalley-ab12cd"
        "eduportal.local"                    -> None
        "www.eduportal.local"                -> None (reserved)
    """
    if not host:
        return None
    base_domain = (base_domain or settings.BASE_DOMAIN).lower()
    hostname = host.split(":", 1)[0].lower().rstrip(".")

    suffix = f".{base_domain}"
    if not hostname.endswith(suffix):
        return None
    label = hostname[: -len(suffix)]
    # Only a single label directly under the base domain names a school
    if not label or "." in label:
        return None
    if label in settings.RESERVED_SUBDOMAINS:
        return None
    return label


class TenantResolver:
    """
    Maps a request to a school by, in order: API key, Host subdomain,
    explicit school id. Returns None when nothing matches.
    """

    def __init__(self, session: AsyncSession):
        self.schools = SchoolInstanceRepository(session)

    async def resolve(
        self,
        api_key: Optional[str] = None,
        host: Optional[str] = None,
        school_id: Optional[str] = None,
    ) -> Optional[SchoolInstance]:
        if api_key:
            return await self.schools.get_by_api_key(api_key)

        subdomain = extract_subdomain(host)
        if subdomain:
            school = await self.schools.get_by_subdomain(subdomain)
            if school is not None:
                return school

        if school_id:
            return await self.schools.get_by_school_id(school_id)

        return None
