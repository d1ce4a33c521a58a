"""Claims and profile reconciliation.

An identity's authorization lives in two independently writable places: the
claim set the identity provider embeds in tokens, and the profile document.
Claims are authoritative; the profile is a denormalized mirror. ``decide``
is the whole state machine:

    claims   profile          action
    absent   absent           irreconcilable, operator must supply claims
    absent   present          derive claims from the profile
    present  absent           synthesize the profile from the claims
    present  equal            no-op
    present  differing        overwrite the profile's orgId/role
"""

from dataclasses import dataclass, field
from enum import Enum

import structlog

from payroll_admin.config import Settings, get_settings
from payroll_admin.core.errors import (
    IdentityNotFoundError,
    InvalidRequestError,
    IrreconcilableIdentityError,
    OrganizationNotFoundError,
)
from payroll_admin.core.interfaces import DocumentStore, IdentityProvider
from payroll_admin.core.tenancy import TenantResolver
from payroll_admin.core.types import (
    ROLE_DEFAULTS,
    Claims,
    Identity,
    Profile,
    ProfileDetails,
    Role,
    utc_now,
)

logger = structlog.get_logger()


class ReconcileAction(str, Enum):
    """Transition taken (or planned) for an identity."""

    NOOP = "noop"
    CLAIMS_FROM_PROFILE = "claims_from_profile"
    PROFILE_CREATED = "profile_created"
    PROFILE_UPDATED = "profile_updated"
    IRRECONCILABLE = "irreconcilable"


@dataclass
class ReconciliationResult:
    """Outcome of reconciling one identity.

    ``requires_reauthentication`` is set whenever the provider-side claims
    were written: tokens issued earlier still carry the old claims.
    """

    uid: str
    action: ReconcileAction
    claims: Claims
    profile: Profile
    changed_fields: list[str] = field(default_factory=list)
    requires_reauthentication: bool = False


@dataclass
class ReconciliationPlan:
    """Read-only view of an identity's state and the transition it needs."""

    uid: str
    email: str
    action: ReconcileAction
    claims: Claims | None
    profile: Profile | None
    org_id: str | None
    organization_exists: bool
    reason: str | None = None


def claims_from_profile(profile: Profile) -> Claims | None:
    """Claims implied by a profile, or None if it lacks a usable tenant/role."""
    if not profile.org_id or not profile.role:
        return None
    try:
        return Claims(org_id=profile.org_id, role=Role(profile.role))
    except ValueError:
        return None


def decide(
    claims: Claims | None,
    profile: Profile | None,
) -> tuple[ReconcileAction, str | None]:
    """Pick the reconciliation transition for a claims/profile pair.

    Returns:
        The action and, for IRRECONCILABLE, the reason.
    """
    if claims is None:
        if profile is None:
            return ReconcileAction.IRRECONCILABLE, "no claims and no profile"
        if claims_from_profile(profile) is None:
            return ReconcileAction.IRRECONCILABLE, "no claims and profile has no usable orgId/role"
        return ReconcileAction.CLAIMS_FROM_PROFILE, None

    if profile is None:
        return ReconcileAction.PROFILE_CREATED, None
    if profile.mirrors(claims):
        return ReconcileAction.NOOP, None
    return ReconcileAction.PROFILE_UPDATED, None


def split_display_name(identity: Identity) -> tuple[str, str]:
    """Best-effort first/last name from a display name, falling back to the email."""
    parts = (identity.display_name or "").split()
    if not parts:
        return identity.email.split("@")[0] or "User", ""
    return parts[0], " ".join(parts[1:])


class ClaimsReconciler:
    """Converges an identity's claims and its profile document."""

    def __init__(
        self,
        provider: IdentityProvider,
        store: DocumentStore,
        settings: Settings | None = None,
    ) -> None:
        """Initialize with the two stores.

        Args:
            provider: Identity provider holding the claims.
            store: Document store holding profiles and organizations.
            settings: Settings; loaded from the environment when omitted.
        """
        self._provider = provider
        self._store = store
        self._settings = settings or get_settings()
        self._tenants = TenantResolver(store, self._settings)

    async def load_profile(self, uid: str) -> Profile | None:
        """Get the profile document for an identity."""
        doc = await self._store.get(self._settings.users_collection, uid)
        if not doc:
            return None
        return Profile.model_validate({"userId": uid, **doc})

    async def _require_identity(self, uid: str) -> Identity:
        identity = await self._provider.get_identity(uid)
        if identity is None:
            raise IdentityNotFoundError(uid=uid)
        return identity

    async def plan(self, uid: str) -> ReconciliationPlan:
        """Describe what ``reconcile`` would do, without writing anything.

        Raises:
            IdentityNotFoundError: If the identity does not exist.
        """
        identity = await self._require_identity(uid)
        profile = await self.load_profile(uid)
        action, reason = decide(identity.claims, profile)

        org_id = None
        if identity.claims is not None:
            org_id = identity.claims.org_id
        elif profile is not None:
            org_id = profile.org_id

        organization_exists = False
        if org_id:
            organization_exists = await self._tenants.get_organization(org_id) is not None

        return ReconciliationPlan(
            uid=uid,
            email=identity.email,
            action=action,
            claims=identity.claims,
            profile=profile,
            org_id=org_id,
            organization_exists=organization_exists,
            reason=reason,
        )

    async def reconcile(self, uid: str) -> ReconciliationResult:
        """Converge claims and profile for one identity.

        Running it twice in a row is safe; the second run writes nothing.

        Args:
            uid: Identity to reconcile.

        Returns:
            The action taken and the resulting claims and profile.

        Raises:
            IdentityNotFoundError: If the identity does not exist.
            IrreconcilableIdentityError: If neither claims nor profile name a
                usable organization and role.
        """
        identity = await self._require_identity(uid)
        profile = await self.load_profile(uid)
        action, reason = decide(identity.claims, profile)

        if action is ReconcileAction.IRRECONCILABLE:
            logger.warning("identity_irreconcilable", uid=uid, reason=reason)
            raise IrreconcilableIdentityError(uid, reason or "unknown")

        if action is ReconcileAction.CLAIMS_FROM_PROFILE:
            assert profile is not None
            claims = claims_from_profile(profile)
            assert claims is not None
            await self._provider.set_claims(uid, claims)
            logger.info(
                "claims_derived_from_profile",
                uid=uid,
                org_id=claims.org_id,
                role=claims.role.value,
            )
            return ReconciliationResult(
                uid=uid,
                action=action,
                claims=claims,
                profile=profile,
                changed_fields=["claims.orgId", "claims.role"],
                requires_reauthentication=True,
            )

        claims = identity.claims
        assert claims is not None

        if action is ReconcileAction.PROFILE_CREATED:
            profile = self._synthesize_profile(identity, claims)
            await self._store.set(self._settings.users_collection, uid, profile.to_document())
            logger.info(
                "profile_created_from_claims",
                uid=uid,
                org_id=claims.org_id,
                role=claims.role.value,
            )
            return ReconciliationResult(
                uid=uid,
                action=action,
                claims=claims,
                profile=profile,
                changed_fields=["profile"],
            )

        assert profile is not None

        if action is ReconcileAction.NOOP:
            logger.debug("identity_already_reconciled", uid=uid)
            return ReconciliationResult(uid=uid, action=action, claims=claims, profile=profile)

        changed = []
        if profile.org_id != claims.org_id:
            changed.append("orgId")
        if profile.role != claims.role.value:
            changed.append("role")

        now = utc_now()
        await self._store.set(
            self._settings.users_collection,
            uid,
            {"orgId": claims.org_id, "role": claims.role.value, "updatedAt": now},
            merge=True,
        )
        logger.info(
            "profile_overwritten_from_claims",
            uid=uid,
            changed=changed,
            previous_org_id=profile.org_id,
            previous_role=profile.role,
        )
        profile = profile.model_copy(
            update={"org_id": claims.org_id, "role": claims.role.value, "updated_at": now}
        )
        return ReconciliationResult(
            uid=uid,
            action=action,
            claims=claims,
            profile=profile,
            changed_fields=changed,
        )

    async def set_claims(
        self,
        uid: str,
        org_id: str,
        role: Role | str,
    ) -> ReconciliationResult:
        """Assign an identity to an organization and role, then reconcile.

        The claim pair is written with a single provider call and only when it
        differs from the current claims, so repeating the call is safe. A
        ``superadmin`` assigned to the reserved platform tenant skips the
        organization check.

        Raises:
            InvalidRequestError: If the role or org id is invalid.
            IdentityNotFoundError: If the identity does not exist.
            OrganizationNotFoundError: If the organization does not exist.
        """
        try:
            role = Role(role)
        except ValueError:
            raise InvalidRequestError(f"Unknown role: {role}", field="role") from None
        if not org_id:
            raise InvalidRequestError("Organization ID is required", field="org_id")

        identity = await self._require_identity(uid)

        platform_scoped = role is Role.SUPERADMIN and org_id == self._settings.platform_org_id
        if not platform_scoped and await self._tenants.get_organization(org_id) is None:
            logger.warning("set_claims_unknown_organization", uid=uid, org_id=org_id)
            raise OrganizationNotFoundError(org_id)

        claims = Claims(org_id=org_id, role=role)
        claims_changed = identity.claims != claims
        if claims_changed:
            await self._provider.set_claims(uid, claims)
            logger.info(
                "claims_set",
                uid=uid,
                org_id=org_id,
                role=role.value,
                previous=identity.claims.to_custom_claims() if identity.claims else None,
            )

        result = await self.reconcile(uid)
        result.requires_reauthentication = result.requires_reauthentication or claims_changed
        return result

    def _synthesize_profile(self, identity: Identity, claims: Claims) -> Profile:
        first_name, last_name = split_display_name(identity)
        defaults = ROLE_DEFAULTS[claims.role]
        now = utc_now()
        return Profile(
            uid=identity.uid,
            email=identity.email,
            org_id=claims.org_id,
            role=claims.role.value,
            profile=ProfileDetails(
                first_name=first_name,
                last_name=last_name,
                employee_id=defaults.employee_id,
                department=defaults.department,
                designation=defaults.designation,
                joining_date=now,
            ),
            is_active=not identity.disabled,
            created_at=now,
            updated_at=now,
        )
