"""Operator password management."""

import structlog

from payroll_admin.config import Settings, get_settings
from payroll_admin.core.errors import IdentityNotFoundError, InvalidRequestError
from payroll_admin.core.interfaces import IdentityProvider
from payroll_admin.core.types import Identity

logger = structlog.get_logger()


class CredentialService:
    """Service for operator-driven credential changes."""

    def __init__(self, provider: IdentityProvider, settings: Settings | None = None) -> None:
        self._provider = provider
        self._settings = settings or get_settings()

    async def reset_password(self, email: str, new_password: str) -> Identity:
        """Set a new password for the identity registered under ``email``.

        Sessions already open keep working until their tokens expire.

        Args:
            email: Email address of the identity.
            new_password: Plain text password; never logged.

        Returns:
            The identity whose password was changed.

        Raises:
            InvalidRequestError: If the password is shorter than the minimum.
            IdentityNotFoundError: If no identity has this email.
        """
        minimum = self._settings.min_password_length
        if len(new_password) < minimum:
            raise InvalidRequestError(
                f"Password must be at least {minimum} characters",
                field="password",
            )

        identity = await self._provider.get_identity_by_email(email)
        if identity is None:
            logger.warning("password_reset_unknown_email", email=email)
            raise IdentityNotFoundError(email=email)

        await self._provider.update_password(identity.uid, new_password)
        logger.info("password_reset_successful", uid=identity.uid)
        return identity
