"""Protocols for the identity provider and document store.

Both stores are external collaborators. Implementations translate their
SDK failures into ``payroll_admin.core.errors`` (transient failures as
``UpstreamUnavailableError``) and never retry on their own.
"""

from typing import Any, Protocol, runtime_checkable

from payroll_admin.core.types import Claims, Identity


@runtime_checkable
class IdentityProvider(Protocol):
    """Protocol for identity provider operations.

    Implementations provide actual provider access (Firebase Auth, in-memory).
    """

    async def create_identity(
        self,
        email: str,
        password: str,
        display_name: str | None = None,
    ) -> str:
        """Create an identity and return its uid.

        Raises ConflictError if the email is already registered.
        """
        ...

    async def get_identity_by_email(self, email: str) -> Identity | None:
        """Get identity by email address."""
        ...

    async def get_identity(self, uid: str) -> Identity | None:
        """Get identity by uid."""
        ...

    async def set_claims(self, uid: str, claims: Claims | None) -> None:
        """Replace the identity's whole claim set.

        Tokens issued before this call keep the old claims until the
        identity re-authenticates.
        """
        ...

    async def update_password(self, uid: str, password: str) -> None:
        """Set a new password for the identity."""
        ...


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for document store operations.

    Documents are plain dicts; the document key is returned under ``"id"``.
    """

    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        """Get a document by key."""
        ...

    async def set(
        self,
        collection: str,
        key: str,
        fields: dict[str, Any],
        merge: bool = False,
    ) -> None:
        """Write a document, replacing it unless ``merge`` is set."""
        ...

    async def create(self, collection: str, fields: dict[str, Any]) -> str:
        """Create a document under a generated key and return the key."""
        ...

    async def query_equals(
        self,
        collection: str,
        field: str,
        value: Any,
    ) -> list[dict[str, Any]]:
        """Get documents whose ``field`` equals ``value``."""
        ...

    async def query_contains(
        self,
        collection: str,
        field: str,
        value: Any,
    ) -> list[dict[str, Any]]:
        """Get documents whose array ``field`` contains ``value``."""
        ...

    async def list_documents(self, collection: str) -> list[dict[str, Any]]:
        """Get every document in a collection."""
        ...
