"""Firebase Auth implementation of IdentityProvider."""

import asyncio

import firebase_admin
from firebase_admin import auth
from firebase_admin import exceptions as firebase_exceptions

from payroll_admin.adapters.firebase.errors import translate_firebase_error
from payroll_admin.core.errors import (
    ConflictError,
    ConflictKind,
    IdentityNotFoundError,
    InvalidRequestError,
)
from payroll_admin.core.types import Claims, Identity


class FirebaseIdentityProvider:
    """Firebase Auth implementation of the identity provider.

    The Admin SDK's auth calls are blocking, so each one runs in a worker
    thread.
    """

    def __init__(self, app: firebase_admin.App | None = None) -> None:
        """Initialize with a Firebase app.

        Args:
            app: Initialized Firebase app; the default app when omitted.
        """
        self._app = app

    @staticmethod
    def _record_to_identity(record: auth.UserRecord) -> Identity:
        """Convert an SDK user record to an Identity."""
        return Identity(
            uid=record.uid,
            email=record.email or "",
            display_name=record.display_name,
            claims=Claims.from_custom_claims(record.custom_claims),
            email_verified=record.email_verified,
            disabled=record.disabled,
        )

    async def create_identity(
        self,
        email: str,
        password: str,
        display_name: str | None = None,
    ) -> str:
        """Create a user and return its uid."""
        try:
            record = await asyncio.to_thread(
                auth.create_user,
                email=email,
                password=password,
                display_name=display_name or None,
                email_verified=False,
                app=self._app,
            )
        except auth.EmailAlreadyExistsError:
            raise ConflictError(
                ConflictKind.IDENTITY_EXISTS,
                f"User with email {email} already exists",
                details={"email": email},
            ) from None
        except firebase_exceptions.InvalidArgumentError as e:
            raise InvalidRequestError(f"Identity provider rejected the account: {e}") from e
        except firebase_exceptions.FirebaseError as e:
            raise translate_firebase_error(e, "create_identity") from e
        return record.uid

    async def get_identity_by_email(self, email: str) -> Identity | None:
        """Get user by email address."""
        try:
            record = await asyncio.to_thread(auth.get_user_by_email, email, app=self._app)
        except auth.UserNotFoundError:
            return None
        except firebase_exceptions.FirebaseError as e:
            raise translate_firebase_error(e, "get_identity_by_email") from e
        return self._record_to_identity(record)

    async def get_identity(self, uid: str) -> Identity | None:
        """Get user by uid."""
        try:
            record = await asyncio.to_thread(auth.get_user, uid, app=self._app)
        except auth.UserNotFoundError:
            return None
        except firebase_exceptions.FirebaseError as e:
            raise translate_firebase_error(e, "get_identity") from e
        return self._record_to_identity(record)

    async def set_claims(self, uid: str, claims: Claims | None) -> None:
        """Replace the user's custom claims."""
        payload = claims.to_custom_claims() if claims is not None else None
        try:
            await asyncio.to_thread(auth.set_custom_user_claims, uid, payload, app=self._app)
        except auth.UserNotFoundError:
            raise IdentityNotFoundError(uid=uid) from None
        except firebase_exceptions.FirebaseError as e:
            raise translate_firebase_error(e, "set_claims") from e

    async def update_password(self, uid: str, password: str) -> None:
        """Set a new password for the user."""
        try:
            await asyncio.to_thread(auth.update_user, uid, password=password, app=self._app)
        except auth.UserNotFoundError:
            raise IdentityNotFoundError(uid=uid) from None
        except firebase_exceptions.InvalidArgumentError as e:
            raise InvalidRequestError(f"Identity provider rejected the password: {e}") from e
        except firebase_exceptions.FirebaseError as e:
            raise translate_firebase_error(e, "update_password") from e
