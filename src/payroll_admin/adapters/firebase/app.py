"""Firebase app initialization."""

import firebase_admin
import structlog
from firebase_admin import credentials

from payroll_admin.config import Settings

logger = structlog.get_logger()

APP_NAME = "payroll-admin"


def get_firebase_app(settings: Settings) -> firebase_admin.App:
    """Get the toolkit's Firebase app, initializing it on first use.

    Uses the service-account file from settings when given, otherwise
    application default credentials.
    """
    try:
        return firebase_admin.get_app(APP_NAME)
    except ValueError:
        pass

    if settings.firebase_credentials:
        credential = credentials.Certificate(settings.firebase_credentials)
    else:
        credential = credentials.ApplicationDefault()

    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
    app = firebase_admin.initialize_app(credential, options, name=APP_NAME)
    logger.info(
        "firebase_initialized",
        project_id=settings.firebase_project_id,
        service_account=bool(settings.firebase_credentials),
    )
    return app
