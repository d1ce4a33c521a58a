"""Tests for tenant and identity domain types."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest
from pydantic import ValidationError

from payroll_admin.core.types import AccountSpec, Claims, Organization, OrgSpec, Profile, Role


class TestClaims:
    """Tests for Claims parsing."""

    def test_round_trip(self) -> None:
        claims = Claims(org_id="org_acme", role=Role.ADMIN)

        assert claims.to_custom_claims() == {"orgId": "org_acme", "role": "admin"}
        assert Claims.from_custom_claims(claims.to_custom_claims()) == claims

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            {},
            {"orgId": "org_acme"},
            {"role": "admin"},
            {"orgId": "", "role": "admin"},
            {"orgId": "org_acme", "role": "owner"},
        ],
    )
    def test_incomplete_claims_are_absent(self, raw: dict[str, Any] | None) -> None:
        """Partial or unknown claim sets are treated as no claims."""
        assert Claims.from_custom_claims(raw) is None

    def test_extra_keys_ignored(self) -> None:
        claims = Claims.from_custom_claims({"orgId": "o", "role": "employee", "beta": True})

        assert claims == Claims(org_id="o", role=Role.EMPLOYEE)


class TestOrganization:
    """Tests for the organization document model."""

    def test_loads_stored_document(self, acme_org_doc: dict[str, Any]) -> None:
        org = Organization.model_validate({**acme_org_doc, "id": "org_acme"})

        assert org.org_name == "Acme Corp"
        assert org.type == "corporate"
        assert org.subscription.start_date == datetime(2024, 1, 15, tzinfo=UTC)

    def test_to_document_uses_stored_names(self, acme_org_doc: dict[str, Any]) -> None:
        org = Organization.model_validate({**acme_org_doc, "id": "org_acme"})

        doc = org.to_document()

        assert "id" not in doc
        assert doc["orgName"] == "Acme Corp"
        assert doc["subscription"]["startDate"] == datetime(2024, 1, 15, tzinfo=UTC)

    def test_all_domains(self) -> None:
        org = Organization(id="o", domain="a.com", domains=["b.com", "a.com", ""])

        assert org.all_domains() == ["a.com", "b.com"]

    def test_legacy_document_without_domains(self) -> None:
        org = Organization.model_validate({"id": "o", "orgName": "Old", "domain": "old.com"})

        assert org.domains == []
        assert org.all_domains() == ["old.com"]


class TestProfile:
    """Tests for the profile document model."""

    def test_mirrors(self) -> None:
        profile = Profile.model_validate({"userId": "u1", "orgId": "A", "role": "admin"})

        assert profile.mirrors(Claims(org_id="A", role=Role.ADMIN))
        assert not profile.mirrors(Claims(org_id="A", role=Role.EMPLOYEE))
        assert not profile.mirrors(Claims(org_id="B", role=Role.ADMIN))


class TestSpecs:
    """Tests for request models."""

    def test_org_spec_requires_name(self) -> None:
        with pytest.raises(ValidationError):
            OrgSpec(org_name="", domain="acme.com")

    def test_account_spec_rejects_bad_email(self) -> None:
        with pytest.raises(ValidationError):
            AccountSpec(email="not-an-email", password="secret1", first_name="A")

    def test_profile_details_defaults(self) -> None:
        account = AccountSpec(
            email="a@acme.com",
            password="secret1",  # pragma: allowlist secret
            first_name="Ann",
            designation="CFO",
        )
        joined = datetime(2024, 1, 15, tzinfo=UTC)

        details = account.profile_details(Role.ADMIN, joined)

        assert details.designation == "CFO"
        assert details.employee_id == "ADMIN001"
        assert details.department == "Administration"
        assert details.joining_date == joined
        assert account.display_name == "Ann"
