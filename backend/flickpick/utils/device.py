from __future__ import annotations

import logging
import threading
import uuid
from pathlib import Path

from flickpick.config import config_value

logger = logging.getLogger(__name__)

DEFAULT_DEVICE_ID_PATH = "~/.flickpick/device_id"

_cache: dict[str, str] = {}
_lock = threading.Lock()


def get_device_id(path: str | Path) -> str:
    """
    Stable per-installation id, created on first use and kept in `path`.

    Only scopes "my sessions" listings; never used for auth.
    """
    key = str(Path(path).expanduser())
    with _lock:
        cached = _cache.get(key)
        if cached:
            return cached

        file = Path(key)
        device_id = ""
        if file.exists():
            device_id = file.read_text(encoding="utf-8").strip()

        if not device_id:
            device_id = str(uuid.uuid4())
            file.parent.mkdir(parents=True, exist_ok=True)
            file.write_text(device_id + "\n", encoding="utf-8")
            logger.info("Generated new device id at %s", file)

        _cache[key] = device_id
        return device_id


def clear_device_cache() -> None:
    with _lock:
        _cache.clear()


def device_id_or_local(value: str | None) -> str:
    """
    The caller's device id, or this installation's own when none is sent.

    Lets a client running on the same machine as the server (run.py) skip
    managing an id of its own.
    """
    device_id = (value or "").strip()
    if device_id:
        return device_id
    return get_device_id(config_value("DEVICE_ID_PATH", DEFAULT_DEVICE_ID_PATH))
