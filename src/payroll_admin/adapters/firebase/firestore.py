"""Cloud Firestore implementation of DocumentStore."""

from typing import Any

import firebase_admin
from firebase_admin import firestore_async
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from payroll_admin.adapters.firebase.errors import translate_google_error


class FirestoreDocumentStore:
    """Firestore implementation of the document store, on the async client."""

    def __init__(self, client: Any) -> None:
        """Initialize with a Firestore async client.

        Args:
            client: ``google.cloud.firestore.AsyncClient`` instance.
        """
        self._client = client

    @classmethod
    def from_app(cls, app: firebase_admin.App | None = None) -> "FirestoreDocumentStore":
        """Build a store on the Firestore database of a Firebase app."""
        return cls(firestore_async.client(app))

    @staticmethod
    def _snapshot_to_dict(snapshot: Any) -> dict[str, Any]:
        """Convert a document snapshot to a dict carrying its key."""
        return {**(snapshot.to_dict() or {}), "id": snapshot.id}

    async def _stream(self, query: Any, operation: str) -> list[dict[str, Any]]:
        try:
            return [self._snapshot_to_dict(snapshot) async for snapshot in query.stream()]
        except google_exceptions.GoogleAPIError as e:
            raise translate_google_error(e, operation) from e

    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        """Get a document by key."""
        try:
            snapshot = await self._client.collection(collection).document(key).get()
        except google_exceptions.GoogleAPIError as e:
            raise translate_google_error(e, "get") from e
        if not snapshot.exists:
            return None
        return self._snapshot_to_dict(snapshot)

    async def set(
        self,
        collection: str,
        key: str,
        fields: dict[str, Any],
        merge: bool = False,
    ) -> None:
        """Write a document."""
        try:
            await self._client.collection(collection).document(key).set(fields, merge=merge)
        except google_exceptions.GoogleAPIError as e:
            raise translate_google_error(e, "set") from e

    async def create(self, collection: str, fields: dict[str, Any]) -> str:
        """Create a document under a Firestore-generated key."""
        ref = self._client.collection(collection).document()
        try:
            await ref.set(fields)
        except google_exceptions.GoogleAPIError as e:
            raise translate_google_error(e, "create") from e
        return ref.id

    async def query_equals(
        self,
        collection: str,
        field: str,
        value: Any,
    ) -> list[dict[str, Any]]:
        """Get documents whose field equals value."""
        query = self._client.collection(collection).where(filter=FieldFilter(field, "==", value))
        return await self._stream(query, "query_equals")

    async def query_contains(
        self,
        collection: str,
        field: str,
        value: Any,
    ) -> list[dict[str, Any]]:
        """Get documents whose array field contains value."""
        query = self._client.collection(collection).where(
            filter=FieldFilter(field, "array_contains", value)
        )
        return await self._stream(query, "query_contains")

    async def list_documents(self, collection: str) -> list[dict[str, Any]]:
        """Get every document in a collection."""
        return await self._stream(self._client.collection(collection), "list_documents")
