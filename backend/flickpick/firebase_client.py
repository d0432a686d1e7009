from __future__ import annotations

import logging
import os
from typing import Any, Mapping

import firebase_admin
from firebase_admin import credentials, firestore
from flask import Flask, current_app

logger = logging.getLogger(__name__)

_FIREBASE_APP_KEY = "firebase_app"
_FIREBASE_APP_NAME = "flickpick"

REQUIRED_SETTINGS = ("FIREBASE_PROJECT_ID", "FIREBASE_CLIENT_EMAIL", "FIREBASE_PRIVATE_KEY")


def missing_firebase_settings(config: Mapping[str, Any]) -> list[str]:
    """Config keys still needed when no service account file is available."""
    if _keyfile_path():
        return []
    return [key for key in REQUIRED_SETTINGS if not config.get(key)]


def init_firebase_app(app: Flask) -> Any | None:
    """
    Initialize the Firebase Admin app backing the Firestore session store.

    Credentials come from the service account JSON named by
    GOOGLE_APPLICATION_CREDENTIALS, else from the FIREBASE_* settings.
    Returns None (and logs which settings are missing) when neither is usable.
    """
    missing = missing_firebase_settings(app.config)
    if missing:
        app.logger.warning("Firebase not configured, missing: %s", ", ".join(missing))
        return None

    try:
        firebase_app = firebase_admin.get_app(_FIREBASE_APP_NAME)
    except ValueError:
        options: dict[str, Any] = {}
        if project_id := app.config.get("FIREBASE_PROJECT_ID"):
            options["projectId"] = project_id
        if db_url := app.config.get("FIREBASE_DATABASE_URL"):
            options["databaseURL"] = db_url

        firebase_app = firebase_admin.initialize_app(
            _certificate(app.config), options, name=_FIREBASE_APP_NAME
        )

    app.extensions[_FIREBASE_APP_KEY] = firebase_app
    app.logger.info("Firebase app ready for project %s", firebase_app.project_id)
    return firebase_app


def get_firestore_client(app: Flask | None = None):
    app = app or current_app
    firebase_app = app.extensions.get(_FIREBASE_APP_KEY)
    if firebase_app is None:
        raise RuntimeError("Firebase app is not configured. Did you call init_firebase_app()?")
    return firestore.client(firebase_app)


def _keyfile_path() -> str | None:
    path = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    if path and os.path.exists(path):
        return path
    return None


def _certificate(config: Mapping[str, Any]) -> credentials.Certificate:
    keyfile = _keyfile_path()
    if keyfile:
        return credentials.Certificate(keyfile)

    # .env files usually carry the PEM with escaped newlines
    private_key = (config.get("FIREBASE_PRIVATE_KEY") or "").replace("\\n", "\n")
    return credentials.Certificate(
        {
            "type": "service_account",
            "project_id": config.get("FIREBASE_PROJECT_ID"),
            "private_key": private_key,
            "client_email": config.get("FIREBASE_CLIENT_EMAIL"),
            "token_uri": "https://oauth2.googleapis.com/token",
        }
    )
