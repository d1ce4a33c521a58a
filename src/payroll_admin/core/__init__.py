"""Tenant resolution, provisioning and claims reconciliation."""

from payroll_admin.core.credentials import CredentialService
from payroll_admin.core.domains import is_normalized, normalize_domain
from payroll_admin.core.errors import (
    ConflictError,
    ConflictKind,
    ErrorCode,
    IdentityNotFoundError,
    InvalidRequestError,
    IrreconcilableIdentityError,
    NotFoundError,
    OrganizationNotFoundError,
    TenancyError,
    UpstreamError,
    UpstreamUnavailableError,
)
from payroll_admin.core.interfaces import DocumentStore, IdentityProvider
from payroll_admin.core.provisioning import IdentityProvisioner, ProvisionResult, ProvisionStep
from payroll_admin.core.reconciliation import (
    ClaimsReconciler,
    ReconcileAction,
    ReconciliationPlan,
    ReconciliationResult,
)
from payroll_admin.core.tenancy import DomainAudit, TenantResolver
from payroll_admin.core.types import (
    AccountSpec,
    AdminSpec,
    Claims,
    Identity,
    MemberSpec,
    Organization,
    OrgSpec,
    OrgType,
    Profile,
    Role,
)

__all__ = [
    "normalize_domain",
    "is_normalized",
    "TenantResolver",
    "DomainAudit",
    "IdentityProvisioner",
    "ProvisionResult",
    "ProvisionStep",
    "ClaimsReconciler",
    "ReconcileAction",
    "ReconciliationPlan",
    "ReconciliationResult",
    "CredentialService",
    "IdentityProvider",
    "DocumentStore",
    "Organization",
    "Identity",
    "Claims",
    "Profile",
    "Role",
    "OrgType",
    "OrgSpec",
    "AccountSpec",
    "AdminSpec",
    "MemberSpec",
    "ErrorCode",
    "TenancyError",
    "NotFoundError",
    "IdentityNotFoundError",
    "ConflictError",
    "ConflictKind",
    "OrganizationNotFoundError",
    "IrreconcilableIdentityError",
    "InvalidRequestError",
    "UpstreamUnavailableError",
    "UpstreamError",
]
