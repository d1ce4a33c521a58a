"""Administrative command line.

Run via: payroll-admin <command> [options]
     or: python -m payroll_admin.entrypoints.cli <command> [options]

Commands:
    create-org          Provision an organization and its first administrator
    create-superadmin   Ensure the platform tenant and a superadmin account
    add-user            Add an account to an existing organization
    set-claims          Assign an identity to an organization and role
    reconcile           Converge an identity's claims and profile
    inspect             Show what reconcile would do, without writing
    reset-password      Set a new password for an account
    resolve-domain      Show which organization a domain resolves to
    add-domain          Attach a domain to an organization
    audit-domains       List unnormalized and duplicated domains
    repair-domains      Normalize an organization's stored domains

Results are printed as JSON on stdout, errors as JSON on stderr. Exit codes:
0 on success, 1 on a terminal error, 3 when the upstream failure is
transient and the same command can be run again.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import ValidationError

from payroll_admin import __version__
from payroll_admin.adapters import get_document_store, get_identity_provider
from payroll_admin.config import Settings, get_settings
from payroll_admin.core.credentials import CredentialService
from payroll_admin.core.errors import IdentityNotFoundError, InvalidRequestError, TenancyError
from payroll_admin.core.interfaces import DocumentStore, IdentityProvider
from payroll_admin.core.provisioning import IdentityProvisioner, ProvisionResult
from payroll_admin.core.reconciliation import (
    ClaimsReconciler,
    ReconciliationPlan,
    ReconciliationResult,
)
from payroll_admin.core.tenancy import DomainAudit, TenantResolver
from payroll_admin.core.types import AccountSpec, Organization, OrgSpec, OrgType, Role

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_RETRYABLE = 3

PASSWORD_ENV = "PAYROLL_ADMIN_PASSWORD"


@dataclass
class Services:
    """Core services wired to one identity provider and document store."""

    provider: IdentityProvider
    store: DocumentStore
    settings: Settings

    def __post_init__(self) -> None:
        self.tenants = TenantResolver(self.store, self.settings)
        self.provisioner = IdentityProvisioner(self.provider, self.store, self.settings)
        self.reconciler = ClaimsReconciler(self.provider, self.store, self.settings)
        self.credentials = CredentialService(self.provider, self.settings)


def build_services() -> Services:
    """Wire services to the adapters selected by configuration."""
    return Services(
        provider=get_identity_provider(),
        store=get_document_store(),
        settings=get_settings(),
    )


# Output rendering


def _organization(org: Organization) -> dict[str, Any]:
    return {"id": org.id, **org.model_dump(mode="json", by_alias=True, exclude={"id"})}


def _provision(result: ProvisionResult) -> dict[str, Any]:
    return {
        "orgId": result.org_id,
        "uid": result.uid,
        "role": result.role.value,
        "appliedSteps": [step.value for step in result.applied_steps],
        "requiresReauthentication": result.requires_reauthentication,
    }


def _reconciliation(result: ReconciliationResult) -> dict[str, Any]:
    return {
        "uid": result.uid,
        "action": result.action.value,
        "claims": result.claims.to_custom_claims(),
        "profile": result.profile.model_dump(mode="json", by_alias=True),
        "changedFields": result.changed_fields,
        "requiresReauthentication": result.requires_reauthentication,
    }


def _plan(plan: ReconciliationPlan) -> dict[str, Any]:
    return {
        "uid": plan.uid,
        "email": plan.email,
        "action": plan.action.value,
        "reason": plan.reason,
        "claims": plan.claims.to_custom_claims() if plan.claims else None,
        "profile": plan.profile.model_dump(mode="json", by_alias=True) if plan.profile else None,
        "orgId": plan.org_id,
        "organizationExists": plan.organization_exists,
    }


def _audit(audit: DomainAudit) -> dict[str, Any]:
    return {
        "clean": audit.is_clean,
        "organizations": audit.organizations,
        "unnormalized": audit.unnormalized,
        "duplicates": audit.duplicates,
    }


# Command handlers


def _password(args: argparse.Namespace) -> str:
    password = args.password or os.environ.get(PASSWORD_ENV, "")
    if not password:
        raise InvalidRequestError(f"--password or {PASSWORD_ENV} is required", field="password")
    return password


def _account(args: argparse.Namespace) -> AccountSpec:
    return AccountSpec(
        email=args.email,
        password=_password(args),
        first_name=args.first_name,
        last_name=args.last_name,
        employee_id=args.employee_id,
        department=args.department,
        designation=args.designation,
    )


async def _uid(args: argparse.Namespace, services: Services) -> str:
    if args.uid:
        return str(args.uid)
    identity = await services.provider.get_identity_by_email(args.email)
    if identity is None:
        raise IdentityNotFoundError(email=args.email)
    return identity.uid


async def cmd_create_org(args: argparse.Namespace, services: Services) -> dict[str, Any]:
    """Provision (or with --resume, finish provisioning) an organization."""
    org = OrgSpec(
        org_name=args.name,
        domain=args.domain,
        domains=args.alias or [],
        type=OrgType(args.type),
        plan=args.plan,
        currency=args.currency,
        timezone=args.timezone,
    )
    admin = _account(args)
    if args.resume:
        result = await services.provisioner.resume(org, admin)
    else:
        result = await services.provisioner.provision(org, admin)
    return _provision(result)


async def cmd_create_superadmin(args: argparse.Namespace, services: Services) -> dict[str, Any]:
    """Ensure the platform tenant and a superadmin account."""
    result = await services.provisioner.provision_superadmin(_account(args))
    return _provision(result)


async def cmd_add_user(args: argparse.Namespace, services: Services) -> dict[str, Any]:
    """Add an account to an existing organization."""
    result = await services.provisioner.provision_user(args.org_id, _account(args), args.role)
    return _provision(result)


async def cmd_set_claims(args: argparse.Namespace, services: Services) -> dict[str, Any]:
    """Assign an identity to an organization and role."""
    uid = await _uid(args, services)
    result = await services.reconciler.set_claims(uid, args.org_id, args.role)
    return _reconciliation(result)


async def cmd_reconcile(args: argparse.Namespace, services: Services) -> dict[str, Any]:
    """Converge an identity's claims and profile."""
    uid = await _uid(args, services)
    return _reconciliation(await services.reconciler.reconcile(uid))


async def cmd_inspect(args: argparse.Namespace, services: Services) -> dict[str, Any]:
    """Show an identity's state and the reconcile action it needs."""
    uid = await _uid(args, services)
    return _plan(await services.reconciler.plan(uid))


async def cmd_reset_password(args: argparse.Namespace, services: Services) -> dict[str, Any]:
    """Set a new password for an account."""
    identity = await services.credentials.reset_password(args.email, _password(args))
    return {"uid": identity.uid, "email": identity.email, "passwordReset": True}


async def cmd_resolve_domain(args: argparse.Namespace, services: Services) -> dict[str, Any]:
    """Show which organization a domain resolves to."""
    org = await services.tenants.resolve_organization(args.domain)
    if org is None:
        return {"domain": args.domain, "organization": None}
    return {"domain": args.domain, "organization": _organization(org)}


async def cmd_add_domain(args: argparse.Namespace, services: Services) -> dict[str, Any]:
    """Attach a domain to an organization."""
    org = await services.tenants.add_domain(args.org_id, args.domain, primary=args.primary)
    return _organization(org)


async def cmd_audit_domains(args: argparse.Namespace, services: Services) -> dict[str, Any]:
    """List unnormalized and duplicated domains."""
    return _audit(await services.tenants.audit_domains())


async def cmd_repair_domains(args: argparse.Namespace, services: Services) -> dict[str, Any]:
    """Normalize an organization's stored domains."""
    return _organization(await services.tenants.repair_domains(args.org_id))


# Parser


Handler = Callable[[argparse.Namespace, Services], Awaitable[dict[str, Any]]]


def _add_account_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", help=f"defaults to ${PASSWORD_ENV}")
    parser.add_argument("--first-name", required=True)
    parser.add_argument("--last-name", default="")
    parser.add_argument("--employee-id")
    parser.add_argument("--department")
    parser.add_argument("--designation")


def _add_identity_args(parser: argparse.ArgumentParser) -> None:
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--uid")
    target.add_argument("--email")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(
        prog="payroll-admin",
        description="Tenant and identity administration for the payroll app",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug events")
    commands = parser.add_subparsers(dest="command", required=True)

    def command(name: str, handler: Handler, help_text: str) -> argparse.ArgumentParser:
        sub = commands.add_parser(name, help=help_text)
        sub.set_defaults(handler=handler)
        return sub

    create_org = command("create-org", cmd_create_org, "Provision an organization and its admin")
    create_org.add_argument("--name", required=True, help="organization display name")
    create_org.add_argument("--domain", required=True)
    create_org.add_argument("--alias", action="append", help="additional domain, repeatable")
    create_org.add_argument("--type", choices=[t.value for t in OrgType], default=OrgType.FULL.value)
    create_org.add_argument("--plan", default="enterprise")
    create_org.add_argument("--currency")
    create_org.add_argument("--timezone")
    create_org.add_argument(
        "--resume",
        action="store_true",
        help="finish an earlier run, reusing whatever already exists",
    )
    _add_account_args(create_org)

    superadmin = command("create-superadmin", cmd_create_superadmin, "Ensure a superadmin")
    _add_account_args(superadmin)

    add_user = command("add-user", cmd_add_user, "Add an account to an organization")
    add_user.add_argument("--org-id", required=True)
    add_user.add_argument(
        "--role",
        choices=[Role.ADMIN.value, Role.EMPLOYEE.value],
        default=Role.EMPLOYEE.value,
    )
    _add_account_args(add_user)

    set_claims = command("set-claims", cmd_set_claims, "Assign organization and role")
    _add_identity_args(set_claims)
    set_claims.add_argument("--org-id", required=True)
    set_claims.add_argument("--role", choices=[r.value for r in Role], default=Role.ADMIN.value)

    reconcile = command("reconcile", cmd_reconcile, "Converge claims and profile")
    _add_identity_args(reconcile)

    inspect = command("inspect", cmd_inspect, "Show what reconcile would do")
    _add_identity_args(inspect)

    reset = command("reset-password", cmd_reset_password, "Set a new password")
    reset.add_argument("--email", required=True)
    reset.add_argument("--password", help=f"defaults to ${PASSWORD_ENV}")

    resolve = command("resolve-domain", cmd_resolve_domain, "Resolve a domain to its organization")
    resolve.add_argument("domain")

    add_domain = command("add-domain", cmd_add_domain, "Attach a domain to an organization")
    add_domain.add_argument("--org-id", required=True)
    add_domain.add_argument("--domain", required=True)
    add_domain.add_argument("--primary", action="store_true", help="make it the primary domain")

    command("audit-domains", cmd_audit_domains, "List unnormalized and duplicated domains")

    repair = command("repair-domains", cmd_repair_domains, "Normalize stored domains")
    repair.add_argument("--org-id", required=True)

    return parser


async def run(args: argparse.Namespace, services: Services | None = None) -> int:
    """Run a parsed command and print its result.

    Args:
        args: Parsed arguments carrying the command handler.
        services: Services to use; built from configuration when omitted.

    Returns:
        Process exit code.
    """
    try:
        services = services or build_services()
        payload = await args.handler(args, services)
    except ValidationError as e:
        error = InvalidRequestError(f"Invalid request: {e.error_count()} validation error(s)")
        error.details = {"errors": json.loads(e.json(include_url=False, include_input=False))}
        print(json.dumps(error.to_dict(), indent=2), file=sys.stderr)
        return EXIT_FAILED
    except TenancyError as e:
        logger.error("command_failed", command=args.command, code=e.code.value)
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return EXIT_RETRYABLE if e.retryable else EXIT_FAILED

    print(json.dumps(payload, indent=2, default=str))
    if payload.get("requiresReauthentication"):
        print(
            "Claims changed: the user must sign out and sign back in for them to take effect.",
            file=sys.stderr,
        )
    return EXIT_OK


def configure_logging(verbose: bool = False) -> None:
    """Send log events to stderr, keeping stdout for command output."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.INFO
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def main(argv: list[str] | None = None) -> int:
    """Console entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
