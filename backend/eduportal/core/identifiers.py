"""
Identifier and credential generation for schools.

Deterministic helpers (slugify, masking) live beside the random ones so the
registry and the provisioning flow share a single source of identifiers.
"""
import re
import secrets
import string
import time
from dataclasses import dataclass

_ALPHABET = string.ascii_letters + string.digits
_LOWER_ALPHABET = string.ascii_lowercase + string.digits

SUBDOMAIN_SLUG_LENGTH = 20
SUBDOMAIN_SUFFIX_LENGTH = 6


def random_token(length: int, alphabet: str = _ALPHABET) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def slugify(name: str) -> str:
    """
    Lowercase a school name and collapse every run of non-alphanumerics
    into a single hyphen.

    Examples:
        "Greenfield High School" -> "greenfield-high-school"
        "  St. Mary's  "         -> "st-mary-s"
    """
    slug = re.sub(r"[^a-z0-9]+", "-", (name or "").lower())
    return slug.strip("-")


def generate_school_id() -> str:
    return f"school_{random_token(21)}"


def generate_subdomain(name: str) -> str:
    slug = slugify(name)[:SUBDOMAIN_SLUG_LENGTH].strip("-") or "school"
    return f"{slug}-{random_token(SUBDOMAIN_SUFFIX_LENGTH, _LOWER_ALPHABET)}"


def generate_api_key() -> str:
    return f"pk_{random_token(32)}"


def generate_secret_key() -> str:
    return f"sk_{random_token(32)}"


def generate_remote_key(kind: str) -> str:
    # Placeholder keys for a remote project whose real keys were not supplied
    return f"{kind}_{random_token(48)}"


def generate_temporary_password() -> str:
    return random_token(12)


def generate_invoice_number() -> str:
    return f"INV-{int(time.time() * 1000)}-{random_token(6, string.ascii_uppercase + string.digits)}"


def mask_secret(value: str, visible: int = 8) -> str:
    """Show the first `visible` characters of a credential, never the rest."""
    if not value:
        return ""
    return f"{value[:visible]}..."


@dataclass
class SchoolIdentifiers:
    school_id: str
    subdomain: str
    api_key: str
    secret_key: str


def generate_school_identifiers(name: str) -> SchoolIdentifiers:
    return SchoolIdentifiers(
        school_id=generate_school_id(),
        subdomain=generate_subdomain(name),
        api_key=generate_api_key(),
        secret_key=generate_secret_key(),
    )
