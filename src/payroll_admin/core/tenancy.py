"""Tenant resolution and domain ownership."""

from dataclasses import dataclass, field

import structlog

from payroll_admin.config import Settings, get_settings
from payroll_admin.core.domains import is_normalized, normalize_domain
from payroll_admin.core.errors import (
    ConflictError,
    ConflictKind,
    InvalidRequestError,
    OrganizationNotFoundError,
)
from payroll_admin.core.interfaces import DocumentStore
from payroll_admin.core.types import Organization, utc_now

logger = structlog.get_logger()


@dataclass
class DomainAudit:
    """Snapshot of every organization's stored domains.

    Attributes:
        organizations: Stored domain values per organization id, primary first.
        unnormalized: Stored values that are not in canonical form, per org id.
        duplicates: Canonical domains owned by more than one organization.
    """

    organizations: dict[str, list[str]] = field(default_factory=dict)
    unnormalized: dict[str, list[str]] = field(default_factory=dict)
    duplicates: dict[str, list[str]] = field(default_factory=dict)

    @property
    def is_clean(self) -> bool:
        return not self.unnormalized and not self.duplicates


def ordered_unique(values: list[str]) -> list[str]:
    result: list[str] = []
    for value in values:
        if value and value not in result:
            result.append(value)
    return result


class TenantResolver:
    """Resolves organizations from domains and guards domain ownership.

    Domains are globally unique across organizations. Uniqueness is enforced
    when a domain is written; a duplicate found while reading is a data
    integrity fault and gets logged, then the first match wins.
    """

    def __init__(self, store: DocumentStore, settings: Settings | None = None) -> None:
        """Initialize with a document store.

        Args:
            store: Document store holding organization documents.
            settings: Settings; loaded from the environment when omitted.
        """
        self._store = store
        self._settings = settings or get_settings()

    @property
    def _collection(self) -> str:
        return self._settings.organizations_collection

    async def get_organization(self, org_id: str) -> Organization | None:
        """Get organization by ID."""
        doc = await self._store.get(self._collection, org_id)
        if not doc:
            return None
        return Organization.model_validate(doc)

    async def resolve_organization(self, raw_domain: str) -> Organization | None:
        """Find the organization that owns a domain.

        A match on the primary ``domain`` field wins over a match in the
        ``domains`` alias list. Any second owner is logged as a duplicate.

        Args:
            raw_domain: Domain as received, in any form.

        Returns:
            The owning organization, or None if no organization owns it.
        """
        domain = normalize_domain(raw_domain)
        if not domain:
            return None

        primary = await self._store.query_equals(self._collection, "domain", domain)
        aliased = await self._store.query_contains(self._collection, "domains", domain)
        matches = primary or aliased
        matched_on = "domain" if primary else "domains"

        if not matches:
            logger.info("organization_not_found", domain=domain)
            return None

        # Owners across both fields; an org listing its own primary counts once.
        org_ids = ordered_unique([m["id"] for m in [*primary, *aliased]])
        if len(org_ids) > 1:
            logger.warning("duplicate_domain_owner", domain=domain, org_ids=org_ids)

        org = Organization.model_validate(matches[0])
        logger.info(
            "organization_resolved",
            domain=domain,
            org_id=org.id,
            matched_on=matched_on,
        )
        return org

    async def find_domain_owners(self, raw_domain: str) -> list[Organization]:
        """Get every organization owning a domain as primary or alias.

        Primary owners come first; each organization appears once.
        """
        domain = normalize_domain(raw_domain)
        if not domain:
            return []

        primary = await self._store.query_equals(self._collection, "domain", domain)
        aliased = await self._store.query_contains(self._collection, "domains", domain)

        owners: list[Organization] = []
        seen: set[str] = set()
        for doc in [*primary, *aliased]:
            if doc["id"] in seen:
                continue
            seen.add(doc["id"])
            owners.append(Organization.model_validate(doc))
        return owners

    async def ensure_domain_available(
        self,
        raw_domain: str,
        exclude_org_id: str | None = None,
    ) -> str:
        """Check that no other organization owns a domain.

        Args:
            raw_domain: Domain to check.
            exclude_org_id: Organization allowed to own it already.

        Returns:
            The normalized domain.

        Raises:
            InvalidRequestError: If the domain normalizes to nothing.
            ConflictError: If another organization owns the domain.
        """
        domain = normalize_domain(raw_domain)
        if not domain:
            raise InvalidRequestError("Domain is required", field="domain")

        owners = [o for o in await self.find_domain_owners(domain) if o.id != exclude_org_id]
        if owners:
            raise ConflictError(
                ConflictKind.DOMAIN_TAKEN,
                f"Domain {domain} is already owned by another organization",
                details={"domain": domain, "org_ids": [o.id for o in owners]},
            )
        return domain

    async def add_domain(
        self,
        org_id: str,
        raw_domain: str,
        primary: bool = False,
    ) -> Organization:
        """Attach a domain to an organization.

        The domain is appended to the alias list; with ``primary`` it also
        becomes the primary domain and the previous primary stays an alias.
        Calling again with the same arguments writes nothing. Stored values
        that are not normalized are repaired first.

        Raises:
            OrganizationNotFoundError: If the organization does not exist.
            ConflictError: If another organization owns the domain.
        """
        org = await self.get_organization(org_id)
        if not org:
            raise OrganizationNotFoundError(org_id)

        domain = await self.ensure_domain_available(raw_domain, exclude_org_id=org_id)
        if not all(is_normalized(value) for value in org.all_domains()):
            org = await self.repair_domains(org_id)

        new_primary = domain if primary or not org.domain else org.domain
        domains = ordered_unique([*org.domains, org.domain, domain])

        if new_primary == org.domain and domains == org.domains:
            logger.info("domain_already_attached", org_id=org_id, domain=domain)
            return org

        await self._store.set(
            self._collection,
            org_id,
            {"domain": new_primary, "domains": domains, "updatedAt": utc_now()},
            merge=True,
        )
        logger.info(
            "domain_attached",
            org_id=org_id,
            domain=domain,
            primary=new_primary == domain,
        )
        return org.model_copy(update={"domain": new_primary, "domains": domains})

    async def audit_domains(self) -> DomainAudit:
        """Report unnormalized and duplicated domains across organizations."""
        audit = DomainAudit()
        owners: dict[str, list[str]] = {}

        for doc in await self._store.list_documents(self._collection):
            org = Organization.model_validate(doc)
            stored = org.all_domains()
            audit.organizations[org.id] = stored

            bad = [value for value in stored if not is_normalized(value)]
            if bad:
                audit.unnormalized[org.id] = bad

            for value in stored:
                domain = normalize_domain(value)
                if not domain:
                    continue
                ids = owners.setdefault(domain, [])
                if org.id not in ids:
                    ids.append(org.id)

        audit.duplicates = {domain: ids for domain, ids in owners.items() if len(ids) > 1}
        for domain, ids in audit.duplicates.items():
            logger.warning("duplicate_domain_owner", domain=domain, org_ids=ids)

        logger.info(
            "domain_audit_completed",
            organizations=len(audit.organizations),
            unnormalized=len(audit.unnormalized),
            duplicates=len(audit.duplicates),
        )
        return audit

    async def repair_domains(self, org_id: str) -> Organization:
        """Rewrite an organization's stored domains in normalized form.

        Raises:
            OrganizationNotFoundError: If the organization does not exist.
            ConflictError: If a normalized value is owned by another organization.
        """
        org = await self.get_organization(org_id)
        if not org:
            raise OrganizationNotFoundError(org_id)

        primary = normalize_domain(org.domain)
        domains = ordered_unique([normalize_domain(value) for value in org.domains])

        if primary == org.domain and domains == org.domains:
            logger.info("domains_already_normalized", org_id=org_id)
            return org

        for domain in ordered_unique([primary, *domains]):
            await self.ensure_domain_available(domain, exclude_org_id=org_id)

        await self._store.set(
            self._collection,
            org_id,
            {"domain": primary, "domains": domains, "updatedAt": utc_now()},
            merge=True,
        )
        logger.info(
            "domains_repaired",
            org_id=org_id,
            previous=org.all_domains(),
            domain=primary,
            domains=domains,
        )
        return org.model_copy(update={"domain": primary, "domains": domains})
