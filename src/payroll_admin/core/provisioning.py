"""Organization and identity provisioning.

Provisioning runs four steps in a fixed order: organization document,
identity, claims, profile document. Every step is create-if-absent or
set-if-different, so a run that died half way can be finished with
``resume`` without duplicating anything that already exists.
"""

from dataclasses import dataclass, field
from enum import Enum

import structlog

from payroll_admin.config import Settings, get_settings
from payroll_admin.core.domains import normalize_domain
from payroll_admin.core.errors import (
    ConflictError,
    ConflictKind,
    InvalidRequestError,
    OrganizationNotFoundError,
)
from payroll_admin.core.interfaces import DocumentStore, IdentityProvider
from payroll_admin.core.reconciliation import ClaimsReconciler, claims_from_profile
from payroll_admin.core.tenancy import TenantResolver, ordered_unique
from payroll_admin.core.types import (
    AccountSpec,
    AdminSpec,
    Claims,
    Identity,
    MemberSpec,
    Organization,
    OrgSettings,
    OrgSpec,
    OrgType,
    Profile,
    Role,
    Subscription,
    utc_now,
)

logger = structlog.get_logger()


class ProvisionStep(str, Enum):
    """Provisioning steps, in execution order."""

    ORGANIZATION = "organization"
    IDENTITY = "identity"
    CLAIMS = "claims"
    PROFILE = "profile"


@dataclass
class ProvisionResult:
    """Result of a provisioning run.

    ``applied_steps`` lists only the steps that wrote something; an empty
    list means everything already existed.
    """

    org_id: str
    uid: str
    role: Role
    applied_steps: list[ProvisionStep] = field(default_factory=list)
    requires_reauthentication: bool = False


class IdentityProvisioner:
    """Creates organizations and the identities that belong to them."""

    def __init__(
        self,
        provider: IdentityProvider,
        store: DocumentStore,
        settings: Settings | None = None,
    ) -> None:
        """Initialize with the two stores.

        Args:
            provider: Identity provider that issues uids and holds claims.
            store: Document store holding organizations and profiles.
            settings: Settings; loaded from the environment when omitted.
        """
        self._provider = provider
        self._store = store
        self._settings = settings or get_settings()
        self._tenants = TenantResolver(store, self._settings)
        self._reconciler = ClaimsReconciler(provider, store, self._settings)

    async def provision(self, org: OrgSpec, admin: AdminSpec) -> ProvisionResult:
        """Provision a new organization with its first administrator.

        Args:
            org: Organization to create.
            admin: Administrator account to create.

        Returns:
            Organization id, administrator uid and the steps applied.

        Raises:
            InvalidRequestError: If the request is malformed.
            ConflictError: If the domain or the email is already taken.
        """
        self._validate_account(admin)
        domain, aliases = self._org_domains(org)

        owners = await self._tenants.find_domain_owners(domain)
        if owners:
            raise ConflictError(
                ConflictKind.ORG_EXISTS,
                f"Organization with domain {domain} already exists",
                details={"domain": domain, "org_id": owners[0].id},
            )
        for alias in aliases:
            await self._tenants.ensure_domain_available(alias)

        if await self._provider.get_identity_by_email(admin.email) is not None:
            raise ConflictError(
                ConflictKind.IDENTITY_EXISTS,
                f"User with email {admin.email} already exists",
                details={"email": admin.email},
            )

        logger.info("provisioning_started", domain=domain, email=admin.email)
        return await self._run(org, domain, aliases, admin)

    async def resume(self, org: OrgSpec, admin: AdminSpec) -> ProvisionResult:
        """Finish a provisioning run that stopped part way.

        Reuses the organization owning the domain and the identity owning the
        email, and only performs the steps still missing. Running it on a
        fully provisioned tenant applies nothing.

        Raises:
            InvalidRequestError: If the request is malformed.
            ConflictError: If an alias belongs to another organization, or the
                email belongs to an identity of another organization.
        """
        self._validate_account(admin)
        domain, aliases = self._org_domains(org)
        logger.info("provisioning_resumed", domain=domain, email=admin.email)
        return await self._run(org, domain, aliases, admin)

    async def provision_user(
        self,
        org_id: str,
        member: MemberSpec,
        role: Role | str = Role.EMPLOYEE,
    ) -> ProvisionResult:
        """Add a new identity to an existing organization.

        Raises:
            InvalidRequestError: If the request is malformed or asks for superadmin.
            OrganizationNotFoundError: If the organization does not exist.
            ConflictError: If the email is already registered.
        """
        try:
            role = Role(role)
        except ValueError:
            raise InvalidRequestError(f"Unknown role: {role}", field="role") from None
        if role is Role.SUPERADMIN:
            raise InvalidRequestError(
                "Superadmin accounts are provisioned with provision_superadmin",
                field="role",
            )
        self._validate_account(member)

        org = await self._tenants.get_organization(org_id)
        if org is None:
            raise OrganizationNotFoundError(org_id)

        result = ProvisionResult(org_id=org.id, uid="", role=role)
        await self._account_steps(result, member, Claims(org_id=org.id, role=role))
        logger.info("user_provisioned", org_id=org.id, uid=result.uid, role=role.value)
        return result

    async def provision_superadmin(self, admin: AdminSpec) -> ProvisionResult:
        """Ensure the platform tenant and a superadmin identity exist.

        The platform organization is stored under its reserved key. An
        existing identity with the email is promoted rather than duplicated.

        Raises:
            InvalidRequestError: If the request is malformed.
            ConflictError: If the platform domain is owned by another organization.
        """
        self._validate_account(admin)
        platform_id = self._settings.platform_org_id
        result = ProvisionResult(org_id=platform_id, uid="", role=Role.SUPERADMIN)

        if await self._tenants.get_organization(platform_id) is None:
            domain = await self._tenants.ensure_domain_available(
                self._settings.platform_domain,
                exclude_org_id=platform_id,
            )
            organization = self._new_organization(
                OrgSpec(
                    org_name=self._settings.platform_org_name,
                    domain=domain,
                    type=OrgType.FULL,
                ),
                domain,
                [],
            )
            await self._store.set(
                self._settings.organizations_collection,
                platform_id,
                organization.to_document(),
            )
            result.applied_steps.append(ProvisionStep.ORGANIZATION)
            logger.info("platform_organization_created", org_id=platform_id, domain=domain)

        await self._account_steps(
            result,
            admin,
            Claims(org_id=platform_id, role=Role.SUPERADMIN),
            allow_existing=True,
        )
        logger.info(
            "superadmin_provisioned",
            uid=result.uid,
            applied_steps=[step.value for step in result.applied_steps],
        )
        return result

    async def _run(
        self,
        org: OrgSpec,
        domain: str,
        aliases: list[str],
        admin: AdminSpec,
    ) -> ProvisionResult:
        organization, created = await self._ensure_organization(org, domain, aliases)
        result = ProvisionResult(org_id=organization.id, uid="", role=Role.ADMIN)
        if created:
            result.applied_steps.append(ProvisionStep.ORGANIZATION)

        await self._account_steps(
            result,
            admin,
            Claims(org_id=organization.id, role=Role.ADMIN),
            allow_existing=True,
        )
        logger.info(
            "provisioning_completed",
            org_id=result.org_id,
            uid=result.uid,
            applied_steps=[step.value for step in result.applied_steps],
        )
        return result

    async def _ensure_organization(
        self,
        org: OrgSpec,
        domain: str,
        aliases: list[str],
    ) -> tuple[Organization, bool]:
        owners = await self._tenants.find_domain_owners(domain)
        if owners:
            existing = owners[0]
            for alias in aliases:
                await self._tenants.ensure_domain_available(alias, exclude_org_id=existing.id)
            logger.info("organization_reused", org_id=existing.id, domain=domain)
            return existing, False

        for alias in aliases:
            await self._tenants.ensure_domain_available(alias)

        organization = self._new_organization(org, domain, aliases)
        org_id = await self._store.create(
            self._settings.organizations_collection,
            organization.to_document(),
        )
        logger.info("organization_created", org_id=org_id, domain=domain, type=org.type.value)
        return organization.model_copy(update={"id": org_id}), True

    async def _account_steps(
        self,
        result: ProvisionResult,
        account: AccountSpec,
        claims: Claims,
        allow_existing: bool = False,
    ) -> None:
        """Run the identity, claims and profile steps, recording what they applied."""
        identity = await self._provider.get_identity_by_email(account.email)
        if identity is not None and not allow_existing:
            raise ConflictError(
                ConflictKind.IDENTITY_EXISTS,
                f"User with email {account.email} already exists",
                details={"email": account.email},
            )

        if identity is None:
            uid = await self._provider.create_identity(
                email=account.email,
                password=account.password,
                display_name=account.display_name,
            )
            identity = Identity(uid=uid, email=account.email, display_name=account.display_name)
            result.applied_steps.append(ProvisionStep.IDENTITY)
            logger.info("identity_created", uid=uid, email=account.email)
        else:
            owner = await self._tenant_of(identity)
            if owner is not None and owner != claims.org_id and claims.role is not Role.SUPERADMIN:
                raise ConflictError(
                    ConflictKind.IDENTITY_EXISTS,
                    f"User with email {account.email} belongs to another organization",
                    details={"email": account.email, "org_id": owner},
                )
            logger.info("identity_reused", uid=identity.uid, email=account.email)

        result.uid = identity.uid

        if identity.claims != claims:
            await self._provider.set_claims(identity.uid, claims)
            result.applied_steps.append(ProvisionStep.CLAIMS)
            result.requires_reauthentication = True
            logger.info(
                "claims_set",
                uid=identity.uid,
                org_id=claims.org_id,
                role=claims.role.value,
            )

        profile = await self._reconciler.load_profile(identity.uid)
        if profile is None:
            now = utc_now()
            profile = Profile(
                uid=identity.uid,
                email=account.email,
                org_id=claims.org_id,
                role=claims.role.value,
                profile=account.profile_details(claims.role, now),
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            await self._store.set(
                self._settings.users_collection,
                identity.uid,
                profile.to_document(),
            )
            result.applied_steps.append(ProvisionStep.PROFILE)
            logger.info("profile_created", uid=identity.uid, org_id=claims.org_id)
        elif not profile.mirrors(claims):
            await self._reconciler.reconcile(identity.uid)
            result.applied_steps.append(ProvisionStep.PROFILE)

    async def _tenant_of(self, identity: Identity) -> str | None:
        """Organization an existing identity belongs to, from its claims or else its profile."""
        if identity.claims is not None:
            return identity.claims.org_id
        profile = await self._reconciler.load_profile(identity.uid)
        hinted = claims_from_profile(profile) if profile else None
        return hinted.org_id if hinted else None

    def _new_organization(
        self,
        org: OrgSpec,
        domain: str,
        aliases: list[str],
    ) -> Organization:
        now = utc_now()
        return Organization(
            id="",
            org_name=org.org_name,
            domain=domain,
            domains=[domain, *aliases],
            type=org.type,
            subscription=Subscription(plan=org.plan, status="active", start_date=now),
            settings=OrgSettings(
                currency=org.currency or self._settings.default_currency,
                timezone=org.timezone or self._settings.default_timezone,
            ),
            created_at=now,
            updated_at=now,
        )

    def _org_domains(self, org: OrgSpec) -> tuple[str, list[str]]:
        domain = normalize_domain(org.domain)
        if not domain:
            raise InvalidRequestError("Domain is required", field="domain")
        aliases = [
            alias
            for alias in ordered_unique([normalize_domain(value) for value in org.domains])
            if alias != domain
        ]
        return domain, aliases

    def _validate_account(self, account: AccountSpec) -> None:
        minimum = self._settings.min_password_length
        if len(account.password) < minimum:
            raise InvalidRequestError(
                f"Password must be at least {minimum} characters",
                field="password",
            )
