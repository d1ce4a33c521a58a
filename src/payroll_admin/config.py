"""Environment-driven configuration."""

import os
from dataclasses import dataclass
from functools import lru_cache


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the admin toolkit.

    Attributes:
        backend: Which adapters to build, "firebase" or "memory".
        firebase_credentials: Path to a service-account JSON file. Application
            default credentials are used when unset.
        firebase_project_id: Optional explicit project id.
        organizations_collection: Collection holding organization documents.
        users_collection: Collection holding profile documents.
        platform_org_id: Reserved key of the platform-level tenant.
        platform_org_name: Display name of the platform-level tenant.
        platform_domain: Primary domain of the platform-level tenant.
        min_password_length: Shortest password the provider accepts.
        default_currency: Currency for organizations created without one.
        default_timezone: Timezone for organizations created without one.
    """

    backend: str = "firebase"
    firebase_credentials: str | None = None
    firebase_project_id: str | None = None
    organizations_collection: str = "organizations"
    users_collection: str = "users"
    platform_org_id: str = "ofdlabs"
    platform_org_name: str = "OFD Labs"
    platform_domain: str = "ofdlabs.store"
    min_password_length: int = 6
    default_currency: str = "USD"
    default_timezone: str = "America/New_York"


def _env(name: str, default: str) -> str:
    value = os.environ.get(name, "").strip()
    return value or default


@lru_cache
def get_settings() -> Settings:
    """Load settings from the environment once per process.

    Returns:
        Settings populated from environment variables, with defaults for
        anything unset.
    """
    credentials = os.environ.get("FIREBASE_CREDENTIALS", "").strip() or os.environ.get(
        "GOOGLE_APPLICATION_CREDENTIALS", ""
    ).strip()
    project_id = os.environ.get("FIREBASE_PROJECT_ID", "").strip()

    return Settings(
        backend=_env("PAYROLL_ADMIN_BACKEND", "firebase").lower(),
        firebase_credentials=credentials or None,
        firebase_project_id=project_id or None,
        organizations_collection=_env("ORGANIZATIONS_COLLECTION", "organizations"),
        users_collection=_env("USERS_COLLECTION", "users"),
        platform_org_id=_env("PLATFORM_ORG_ID", "ofdlabs"),
        platform_org_name=_env("PLATFORM_ORG_NAME", "OFD Labs"),
        platform_domain=_env("PLATFORM_DOMAIN", "ofdlabs.store"),
        min_password_length=int(_env("MIN_PASSWORD_LENGTH", "6")),
        default_currency=_env("DEFAULT_CURRENCY", "USD"),
        default_timezone=_env("DEFAULT_TIMEZONE", "America/New_York"),
    )
