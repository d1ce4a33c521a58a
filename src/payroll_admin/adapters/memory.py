"""In-memory identity provider and document store.

These adapters are useful for:
- Unit testing without Firebase credentials
- Dry runs of the CLI (PAYROLL_ADMIN_BACKEND=memory)
"""

from __future__ import annotations

import copy
import uuid
from typing import Any

from payroll_admin.core.errors import ConflictError, ConflictKind, IdentityNotFoundError
from payroll_admin.core.interfaces import DocumentStore, IdentityProvider
from payroll_admin.core.types import Claims, Identity


def _merge(target: dict[str, Any], fields: dict[str, Any]) -> dict[str, Any]:
    """Merge nested maps the way the document store does on a merge write."""
    for key, value in fields.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)
    return target


class InMemoryIdentityProvider:
    """Identity provider backed by a dict.

    Attributes:
        identities: Identities keyed by uid.
        passwords: Current password per uid.
        claim_writes: Log of (uid, claims) for every set_claims call.
    """

    def __init__(self) -> None:
        self.identities: dict[str, Identity] = {}
        self.passwords: dict[str, str] = {}
        self.claim_writes: list[tuple[str, Claims | None]] = []

    def add(self, identity: Identity, password: str = "") -> Identity:
        """Seed an identity directly, bypassing create_identity."""
        self.identities[identity.uid] = identity
        self.passwords[identity.uid] = password
        return identity

    async def create_identity(
        self,
        email: str,
        password: str,
        display_name: str | None = None,
    ) -> str:
        """Create an identity with a generated uid."""
        if await self.get_identity_by_email(email) is not None:
            raise ConflictError(
                ConflictKind.IDENTITY_EXISTS,
                f"User with email {email} already exists",
                details={"email": email},
            )
        uid = uuid.uuid4().hex[:28]
        self.add(Identity(uid=uid, email=email, display_name=display_name), password)
        return uid

    async def get_identity_by_email(self, email: str) -> Identity | None:
        """Get identity by email (case-insensitive, as the provider compares)."""
        wanted = email.lower()
        for identity in self.identities.values():
            if identity.email.lower() == wanted:
                return identity
        return None

    async def get_identity(self, uid: str) -> Identity | None:
        """Get identity by uid."""
        return self.identities.get(uid)

    async def set_claims(self, uid: str, claims: Claims | None) -> None:
        """Replace the identity's claim set."""
        identity = self.identities.get(uid)
        if identity is None:
            raise IdentityNotFoundError(uid=uid)
        self.identities[uid] = identity.model_copy(update={"claims": claims})
        self.claim_writes.append((uid, claims))

    async def update_password(self, uid: str, password: str) -> None:
        """Set a new password."""
        if uid not in self.identities:
            raise IdentityNotFoundError(uid=uid)
        self.passwords[uid] = password


class InMemoryDocumentStore:
    """Document store backed by nested dicts.

    Attributes:
        collections: Documents keyed by collection, then by document key.
        writes: Log of (collection, key) for every write.
    """

    def __init__(self, collections: dict[str, dict[str, dict[str, Any]]] | None = None) -> None:
        self.collections: dict[str, dict[str, dict[str, Any]]] = copy.deepcopy(collections or {})
        self.writes: list[tuple[str, str]] = []

    def _docs(self, collection: str) -> dict[str, dict[str, Any]]:
        return self.collections.setdefault(collection, {})

    @staticmethod
    def _with_key(key: str, data: dict[str, Any]) -> dict[str, Any]:
        return {**copy.deepcopy(data), "id": key}

    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        """Get a document by key."""
        data = self._docs(collection).get(key)
        return self._with_key(key, data) if data is not None else None

    async def set(
        self,
        collection: str,
        key: str,
        fields: dict[str, Any],
        merge: bool = False,
    ) -> None:
        """Write a document."""
        docs = self._docs(collection)
        if merge and key in docs:
            _merge(docs[key], fields)
        else:
            docs[key] = copy.deepcopy(fields)
        self.writes.append((collection, key))

    async def create(self, collection: str, fields: dict[str, Any]) -> str:
        """Create a document under a generated key."""
        key = uuid.uuid4().hex[:20]
        await self.set(collection, key, fields)
        return key

    async def query_equals(
        self,
        collection: str,
        field: str,
        value: Any,
    ) -> list[dict[str, Any]]:
        """Get documents whose field equals value."""
        return [
            self._with_key(key, data)
            for key, data in self._docs(collection).items()
            if data.get(field) == value
        ]

    async def query_contains(
        self,
        collection: str,
        field: str,
        value: Any,
    ) -> list[dict[str, Any]]:
        """Get documents whose array field contains value."""
        return [
            self._with_key(key, data)
            for key, data in self._docs(collection).items()
            if isinstance(data.get(field), list) and value in data[field]
        ]

    async def list_documents(self, collection: str) -> list[dict[str, Any]]:
        """Get every document in a collection."""
        return [self._with_key(key, data) for key, data in self._docs(collection).items()]


# Verify we implement the protocols
_provider: IdentityProvider = InMemoryIdentityProvider()
_store: DocumentStore = InMemoryDocumentStore()
