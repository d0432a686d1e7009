from __future__ import annotations

import atexit

from flask import Flask, current_app

from flickpick.firebase_client import get_firestore_client, init_firebase_app
from flickpick.store.base import DataStore
from flickpick.store.memory_store import MemoryStore

_STORE_KEY = "flickpick_store"

__all__ = ["DataStore", "MemoryStore", "get_store", "init_store"]


def init_store(app: Flask) -> DataStore:
    """Attach the configured DataStore to the app (STORE_BACKEND=memory|firestore)."""
    backend = (app.config.get("STORE_BACKEND") or "memory").lower()

    if backend == "firestore":
        if init_firebase_app(app) is None:
            raise RuntimeError("STORE_BACKEND=firestore but Firebase is not configured")
        from flickpick.store.firestore_store import FirestoreStore

        store: DataStore = FirestoreStore(get_firestore_client(app))
        # stops the listener monitor thread and detaches snapshot watches
        atexit.register(store.close)
    elif backend == "memory":
        store = MemoryStore()
    else:
        raise RuntimeError(f"Unknown STORE_BACKEND: {backend}")

    app.extensions[_STORE_KEY] = store
    app.logger.info("Session store ready: %s", type(store).__name__)
    return store


def get_store(app: Flask | None = None) -> DataStore:
    """
    Return the store attached to the app.

    Usage in services (with app context active):

        from flickpick.store import get_store

        store = get_store()
        rows = store.query("participants", {"session_id": session_id})
    """
    app = app or current_app
    store = app.extensions.get(_STORE_KEY)
    if store is None:
        raise RuntimeError("Session store is not configured. Did you call init_store() in create_app()?")
    return store
