"""Firebase adapters (Firebase Auth and Cloud Firestore)."""

from payroll_admin.adapters.firebase.app import get_firebase_app
from payroll_admin.adapters.firebase.firestore import FirestoreDocumentStore
from payroll_admin.adapters.firebase.identity import FirebaseIdentityProvider

__all__ = ["get_firebase_app", "FirebaseIdentityProvider", "FirestoreDocumentStore"]
