"""Identity provider and document store adapters."""

from payroll_admin.adapters.factory import get_document_store, get_identity_provider
from payroll_admin.adapters.memory import InMemoryDocumentStore, InMemoryIdentityProvider

__all__ = [
    "get_identity_provider",
    "get_document_store",
    "InMemoryIdentityProvider",
    "InMemoryDocumentStore",
]
