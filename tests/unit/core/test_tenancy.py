"""Unit tests for TenantResolver."""

from __future__ import annotations

from typing import Any

import pytest
import structlog

from payroll_admin.adapters.memory import InMemoryDocumentStore
from payroll_admin.config import Settings
from payroll_admin.core.errors import (
    ConflictError,
    ConflictKind,
    InvalidRequestError,
    OrganizationNotFoundError,
)
from payroll_admin.core.tenancy import TenantResolver, ordered_unique


class TestResolveOrganization:
    """Tests for resolving a domain to its organization."""

    async def test_resolves_primary_domain(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
    ) -> None:
        """Should find the organization by its primary domain."""
        org = await resolver.resolve_organization("acme.com")

        assert org is not None
        assert org.id == "org_acme"
        assert org.org_name == "Acme Corp"

    async def test_resolves_alias(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
    ) -> None:
        """Should fall back to the alias list."""
        org = await resolver.resolve_organization("acme.vercel.app")

        assert org is not None
        assert org.id == "org_acme"

    async def test_normalizes_input(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
    ) -> None:
        """Should resolve any spelling of the domain."""
        org = await resolver.resolve_organization("HTTPS://WWW.Acme.COM/")

        assert org is not None
        assert org.id == "org_acme"

    async def test_unknown_domain(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
    ) -> None:
        """Should return None when nothing owns the domain."""
        assert await resolver.resolve_organization("globex.com") is None

    async def test_empty_domain(self, resolver: TenantResolver) -> None:
        """Should return None without querying for an empty domain."""
        assert await resolver.resolve_organization("  ") is None

    async def test_primary_wins_over_alias(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
        acme_org_doc: dict[str, Any],
    ) -> None:
        """An organization using the domain as primary outranks one aliasing it."""
        seeded_store.collections["organizations"]["org_squatter"] = {
            **acme_org_doc,
            "orgName": "Squatter",
            "domain": "squatter.com",
            "domains": ["squatter.com", "initech.com"],
        }
        seeded_store.collections["organizations"]["org_initech"] = {
            **acme_org_doc,
            "orgName": "Initech",
            "domain": "initech.com",
            "domains": ["initech.com"],
        }

        org = await resolver.resolve_organization("initech.com")

        assert org is not None
        assert org.id == "org_initech"

    async def test_primary_owner_aliased_elsewhere_is_logged(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
        acme_org_doc: dict[str, Any],
    ) -> None:
        """A domain one org uses as primary and another as alias is a duplicate."""
        seeded_store.collections["organizations"]["org_globex"] = {
            **acme_org_doc,
            "orgName": "Globex",
            "domain": "globex.com",
            "domains": ["globex.com", "acme.com"],
        }

        with structlog.testing.capture_logs() as entries:
            org = await resolver.resolve_organization("acme.com")

        assert org is not None
        assert org.id == "org_acme"
        warning = next(e for e in entries if e["event"] == "duplicate_domain_owner")
        assert warning["org_ids"] == ["org_acme", "org_globex"]

    async def test_own_alias_is_not_a_duplicate(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
    ) -> None:
        """An organization listing its primary among its aliases is one owner."""
        with structlog.testing.capture_logs() as entries:
            await resolver.resolve_organization("acme.com")

        assert [e["event"] for e in entries] == ["organization_resolved"]

    async def test_duplicate_owner_first_match_wins(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
        acme_org_doc: dict[str, Any],
    ) -> None:
        """A duplicated primary domain resolves to the first match and is logged."""
        seeded_store.collections["organizations"]["org_copy"] = {
            **acme_org_doc,
            "orgName": "Acme Copy",
        }

        with structlog.testing.capture_logs() as entries:
            org = await resolver.resolve_organization("acme.com")

        assert org is not None
        assert org.id == "org_acme"
        warning = next(e for e in entries if e["event"] == "duplicate_domain_owner")
        assert warning["log_level"] == "warning"
        assert warning["org_ids"] == ["org_acme", "org_copy"]

    async def test_uses_configured_collection(
        self,
        document_store: InMemoryDocumentStore,
        acme_org_doc: dict[str, Any],
    ) -> None:
        """Should read the collection named in settings."""
        document_store.collections["tenants"] = {"org_acme": acme_org_doc}
        resolver = TenantResolver(document_store, Settings(organizations_collection="tenants"))

        org = await resolver.resolve_organization("acme.com")

        assert org is not None
        assert org.id == "org_acme"


class TestGetOrganization:
    """Tests for get_organization."""

    async def test_existing(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
    ) -> None:
        """Should load the document under its key."""
        org = await resolver.get_organization("org_acme")

        assert org is not None
        assert org.domain == "acme.com"
        assert org.all_domains() == ["acme.com", "acme.vercel.app"]

    async def test_missing(self, resolver: TenantResolver) -> None:
        """Should return None for an unknown key."""
        assert await resolver.get_organization("nope") is None


class TestEnsureDomainAvailable:
    """Tests for ensure_domain_available."""

    async def test_available(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
    ) -> None:
        """Should return the normalized domain when nobody owns it."""
        assert await resolver.ensure_domain_available("https://Globex.com/") == "globex.com"

    async def test_taken(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
    ) -> None:
        """Should raise a domain conflict naming the owner."""
        with pytest.raises(ConflictError) as exc_info:
            await resolver.ensure_domain_available("acme.vercel.app")

        assert exc_info.value.kind is ConflictKind.DOMAIN_TAKEN
        assert exc_info.value.details["org_ids"] == ["org_acme"]

    async def test_owned_by_excluded_org(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
    ) -> None:
        """The excluded organization may already own the domain."""
        domain = await resolver.ensure_domain_available("acme.com", exclude_org_id="org_acme")

        assert domain == "acme.com"

    async def test_empty(self, resolver: TenantResolver) -> None:
        """Should reject an empty domain."""
        with pytest.raises(InvalidRequestError):
            await resolver.ensure_domain_available("https://")


class TestAddDomain:
    """Tests for add_domain."""

    async def test_adds_alias(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
    ) -> None:
        """Should append the normalized domain to the alias list."""
        org = await resolver.add_domain("org_acme", "https://acme-payroll.vercel.app/")

        stored = seeded_store.collections["organizations"]["org_acme"]
        assert stored["domain"] == "acme.com"
        assert stored["domains"] == ["acme.com", "acme.vercel.app", "acme-payroll.vercel.app"]
        assert org.domains == stored["domains"]
        assert await resolver.resolve_organization("acme-payroll.vercel.app") is not None

    async def test_idempotent(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
    ) -> None:
        """Adding the same domain twice should write once."""
        await resolver.add_domain("org_acme", "acme-payroll.vercel.app")
        writes = len(seeded_store.writes)

        await resolver.add_domain("org_acme", "acme-payroll.vercel.app")

        assert len(seeded_store.writes) == writes
        stored = seeded_store.collections["organizations"]["org_acme"]
        assert stored["domains"].count("acme-payroll.vercel.app") == 1

    async def test_existing_alias_is_noop(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
    ) -> None:
        """A domain the organization already owns needs no write."""
        await resolver.add_domain("org_acme", "www.acme.vercel.app")

        assert seeded_store.writes == []

    async def test_make_primary(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
    ) -> None:
        """The previous primary should stay reachable as an alias."""
        org = await resolver.add_domain("org_acme", "acme.io", primary=True)

        assert org.domain == "acme.io"
        assert "acme.com" in org.domains
        assert "acme.io" in org.domains
        resolved = await resolver.resolve_organization("acme.com")
        assert resolved is not None
        assert resolved.id == "org_acme"

    async def test_normalizes_legacy_values(
        self,
        resolver: TenantResolver,
        document_store: InMemoryDocumentStore,
        acme_org_doc: dict[str, Any],
    ) -> None:
        """Unnormalized stored domains should not be copied into the alias list."""
        document_store.collections["organizations"] = {
            "org_legacy": {
                **acme_org_doc,
                "domain": "Example.COM",
                "domains": ["Example.COM", "WWW.example.org"],
            }
        }

        org = await resolver.add_domain("org_legacy", "example.net")

        stored = document_store.collections["organizations"]["org_legacy"]
        assert stored["domain"] == "example.com"
        assert stored["domains"] == ["example.com", "example.org", "example.net"]
        assert org.domains == stored["domains"]
        assert (await resolver.audit_domains()).is_clean

    async def test_taken_by_other_org(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
        acme_org_doc: dict[str, Any],
    ) -> None:
        """Should refuse a domain owned by another organization and write nothing."""
        seeded_store.collections["organizations"]["org_globex"] = {
            **acme_org_doc,
            "domain": "globex.com",
            "domains": ["globex.com"],
        }

        with pytest.raises(ConflictError) as exc_info:
            await resolver.add_domain("org_globex", "acme.vercel.app")

        assert exc_info.value.kind is ConflictKind.DOMAIN_TAKEN
        assert seeded_store.writes == []

    async def test_unknown_org(self, resolver: TenantResolver) -> None:
        """Should raise for an unknown organization."""
        with pytest.raises(OrganizationNotFoundError):
            await resolver.add_domain("nope", "acme.io")


class TestAuditAndRepair:
    """Tests for audit_domains and repair_domains."""

    async def test_clean_audit(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
    ) -> None:
        """Normalized, unique domains audit clean."""
        audit = await resolver.audit_domains()

        assert audit.is_clean
        assert audit.organizations == {"org_acme": ["acme.com", "acme.vercel.app"]}

    async def test_reports_unnormalized_and_duplicates(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
        acme_org_doc: dict[str, Any],
    ) -> None:
        """Should list both kinds of fault."""
        seeded_store.collections["organizations"]["org_legacy"] = {
            **acme_org_doc,
            "domain": "https://www.Acme.com/",
            "domains": ["https://www.Acme.com/"],
        }

        audit = await resolver.audit_domains()

        assert not audit.is_clean
        assert audit.unnormalized == {"org_legacy": ["https://www.Acme.com/"]}
        assert audit.duplicates == {"acme.com": ["org_acme", "org_legacy"]}

    async def test_repair_rewrites_stored_values(
        self,
        resolver: TenantResolver,
        document_store: InMemoryDocumentStore,
        acme_org_doc: dict[str, Any],
    ) -> None:
        """Should normalize the primary and the aliases in place."""
        document_store.collections["organizations"] = {
            "org_legacy": {
                **acme_org_doc,
                "domain": "https://www.Acme.com/",
                "domains": ["https://www.Acme.com/", "ACME.vercel.app", "acme.vercel.app"],
            }
        }

        org = await resolver.repair_domains("org_legacy")

        assert org.domain == "acme.com"
        assert org.domains == ["acme.com", "acme.vercel.app"]
        stored = document_store.collections["organizations"]["org_legacy"]
        assert stored["domain"] == "acme.com"
        assert stored["orgName"] == "Acme Corp"
        assert (await resolver.audit_domains()).is_clean

    async def test_repair_clean_org_writes_nothing(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
    ) -> None:
        """An already normalized organization is left alone."""
        await resolver.repair_domains("org_acme")

        assert seeded_store.writes == []

    async def test_repair_conflict(
        self,
        resolver: TenantResolver,
        seeded_store: InMemoryDocumentStore,
        acme_org_doc: dict[str, Any],
    ) -> None:
        """Should refuse to normalize into a domain another organization owns."""
        seeded_store.collections["organizations"]["org_legacy"] = {
            **acme_org_doc,
            "domain": "https://acme.com",
            "domains": [],
        }

        with pytest.raises(ConflictError):
            await resolver.repair_domains("org_legacy")

        stored = seeded_store.collections["organizations"]["org_legacy"]
        assert stored["domain"] == "https://acme.com"


def test_ordered_unique() -> None:
    """Should drop empties and repeats, keeping first occurrences."""
    assert ordered_unique(["b", "", "a", "b", "c", "a"]) == ["b", "a", "c"]
