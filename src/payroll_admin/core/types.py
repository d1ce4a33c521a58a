"""Tenant and identity domain types.

Documents are persisted with camelCase field names; the models expose
snake_case attributes and dump back with ``by_alias=True``.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, EmailStr, Field

logger = structlog.get_logger()


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class OrgType(str, Enum):
    """Organization types, gating optional feature visibility."""

    EDUCATION = "education"
    CORPORATE = "corporate"
    FULL = "full"


class Role(str, Enum):
    """Roles carried in an identity's claims."""

    ADMIN = "admin"
    EMPLOYEE = "employee"
    SUPERADMIN = "superadmin"


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, validate_default=True)

    def to_document(self) -> dict[str, Any]:
        """Dump to the stored (camelCase) representation, without the key."""
        return self.model_dump(by_alias=True, exclude={"id"}, mode="python")


class Subscription(_Document):
    """Organization subscription state."""

    plan: str = "enterprise"
    status: str = "active"
    start_date: datetime | None = Field(default=None, alias="startDate")
    end_date: datetime | None = Field(default=None, alias="endDate")


class OrgSettings(_Document):
    """Organization locale settings."""

    currency: str = "USD"
    timezone: str = "America/New_York"


class Organization(_Document):
    """Organization (tenant) document."""

    id: str
    org_name: str = Field(default="", alias="orgName")
    domain: str = ""
    domains: list[str] = Field(default_factory=list)
    type: OrgType = OrgType.FULL
    subscription: Subscription = Field(default_factory=Subscription)
    settings: OrgSettings = Field(default_factory=OrgSettings)
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    def all_domains(self) -> list[str]:
        """Primary domain followed by aliases, without duplicates."""
        ordered: list[str] = []
        for value in [self.domain, *self.domains]:
            if value and value not in ordered:
                ordered.append(value)
        return ordered


class Claims(BaseModel):
    """Authorization payload embedded in an identity's tokens."""

    model_config = ConfigDict(frozen=True)

    org_id: str
    role: Role

    def to_custom_claims(self) -> dict[str, str]:
        """Claim set in the provider's wire shape."""
        return {"orgId": self.org_id, "role": self.role.value}

    @classmethod
    def from_custom_claims(cls, raw: Mapping[str, Any] | None) -> "Claims | None":
        """Parse a provider claim set.

        A claim set missing ``orgId`` or ``role``, or naming an unknown role,
        is treated as absent.
        """
        if not raw:
            return None
        org_id = raw.get("orgId")
        role = raw.get("role")
        if not org_id or not role:
            return None
        try:
            return cls(org_id=org_id, role=Role(role))
        except ValueError:
            logger.warning("claims_unknown_role", org_id=org_id, role=role)
            return None


class Identity(BaseModel):
    """A principal managed by the identity provider."""

    uid: str
    email: str
    display_name: str | None = None
    claims: Claims | None = None
    email_verified: bool = False
    disabled: bool = False


class ProfileDetails(_Document):
    """Descriptive block nested in a profile document."""

    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    employee_id: str | None = Field(default=None, alias="employeeId")
    department: str | None = None
    designation: str | None = None
    joining_date: datetime | None = Field(default=None, alias="joiningDate")


class Profile(_Document):
    """Persisted mirror of an identity's tenant and role.

    ``org_id`` and ``role`` are kept as loose strings so legacy documents
    still load; claims are validated, the mirror is not.
    """

    uid: str = Field(alias="userId")
    email: str | None = None
    org_id: str | None = Field(default=None, alias="orgId")
    role: str | None = None
    profile: ProfileDetails = Field(default_factory=ProfileDetails)
    is_active: bool = Field(default=True, alias="isActive")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    def mirrors(self, claims: Claims) -> bool:
        """True when the profile's tenant and role match the claims."""
        return self.org_id == claims.org_id and self.role == claims.role.value


@dataclass(frozen=True)
class RoleDefaults:
    """Profile fields used when none were supplied for a role."""

    employee_id: str
    department: str
    designation: str


ROLE_DEFAULTS: dict[Role, RoleDefaults] = {
    Role.ADMIN: RoleDefaults("ADMIN001", "Administration", "Administrator"),
    Role.EMPLOYEE: RoleDefaults("EMP001", "Administration", "Employee"),
    Role.SUPERADMIN: RoleDefaults("SUPERADMIN001", "Management", "Super Administrator"),
}


class OrgSpec(BaseModel):
    """Fully specified request for a new organization."""

    org_name: str = Field(min_length=1)
    domain: str
    domains: list[str] = Field(default_factory=list)
    type: OrgType = OrgType.FULL
    plan: str = "enterprise"
    currency: str | None = None
    timezone: str | None = None


class AccountSpec(BaseModel):
    """Fully specified request for a new identity and its profile."""

    email: EmailStr
    password: str
    first_name: str = Field(min_length=1)
    last_name: str = ""
    employee_id: str | None = None
    department: str | None = None
    designation: str | None = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def profile_details(self, role: Role, joined_at: datetime) -> ProfileDetails:
        """Profile block for this account, filling gaps from role defaults."""
        defaults = ROLE_DEFAULTS[role]
        return ProfileDetails(
            first_name=self.first_name,
            last_name=self.last_name,
            employee_id=self.employee_id or defaults.employee_id,
            department=self.department or defaults.department,
            designation=self.designation or defaults.designation,
            joining_date=joined_at,
        )


AdminSpec = AccountSpec
MemberSpec = AccountSpec
