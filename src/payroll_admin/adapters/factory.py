"""Adapter factory configuration."""

from functools import lru_cache

from payroll_admin.adapters.memory import InMemoryDocumentStore, InMemoryIdentityProvider
from payroll_admin.config import get_settings
from payroll_admin.core.interfaces import DocumentStore, IdentityProvider


@lru_cache
def get_identity_provider() -> IdentityProvider:
    """Get the configured identity provider.

    Selection:
    1. PAYROLL_ADMIN_BACKEND=memory -> InMemoryIdentityProvider (dry runs)
    2. Otherwise -> FirebaseIdentityProvider

    Returns:
        Configured identity provider instance
    """
    settings = get_settings()
    if settings.backend == "memory":
        return InMemoryIdentityProvider()

    from payroll_admin.adapters.firebase import FirebaseIdentityProvider, get_firebase_app

    return FirebaseIdentityProvider(get_firebase_app(settings))


@lru_cache
def get_document_store() -> DocumentStore:
    """Get the configured document store.

    Returns:
        InMemoryDocumentStore for the memory backend, FirestoreDocumentStore otherwise
    """
    settings = get_settings()
    if settings.backend == "memory":
        return InMemoryDocumentStore()

    from payroll_admin.adapters.firebase import FirestoreDocumentStore, get_firebase_app

    return FirestoreDocumentStore.from_app(get_firebase_app(settings))
