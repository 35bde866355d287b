# src/taskboard/connectors/matrix_client.py

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from nio import AsyncClient, AsyncClientConfig, LoginResponse

logger = logging.getLogger(__name__)

SESSION_FILE = "session.json"


def _read_session(path: Path) -> dict[str, str] | None:
    try:
        data: Any = json.loads(path.read_text("utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Cannot read Matrix session %s: %r", path, e)
        return None

    if not isinstance(data, dict):
        return None
    fields = ("access_token", "user_id", "device_id")
    if not all(data.get(k) for k in fields):
        logger.warning("Matrix session %s is missing required fields", path)
        return None
    return {k: str(data[k]) for k in fields}


def _write_session(path: Path, resp: LoginResponse) -> None:
    tmp = path.with_suffix(".tmp")
    tmp.write_text(
        json.dumps(
            {"access_token": resp.access_token, "user_id": resp.user_id, "device_id": resp.device_id}
        ),
        "utf-8",
    )
    os.replace(tmp, path)
    try:
        os.chmod(path, 0o600)
    except OSError:
        # Not critical on Windows or restricted FS.
        pass


async def create_matrix_client(settings) -> AsyncClient | None:
    """
    Create a logged-in Matrix AsyncClient.

    The access token is kept in <matrix_store_path>/session.json so restarts
    reuse the same device; the password is only needed for the first login.
    Task rooms are expected to be unencrypted.
    """
    homeserver = (getattr(settings, "matrix_homeserver", "") or "").strip()
    user_id = (getattr(settings, "matrix_user_id", "") or "").strip()
    password = (getattr(settings, "matrix_password", "") or "").strip()
    store_dir = Path(getattr(settings, "matrix_store_path", Path(".local/taskboard/matrix_store")))

    if not homeserver or not user_id:
        logger.error("Matrix is not configured: set TASKBOARD_MATRIX_HOMESERVER and TASKBOARD_MATRIX_USER_ID")
        return None

    store_dir.mkdir(parents=True, exist_ok=True)
    session_path = store_dir / SESSION_FILE

    client = AsyncClient(
        homeserver,
        user_id,
        config=AsyncClientConfig(encryption_enabled=False, store_sync_tokens=False),
    )

    if session_path.exists():
        session = _read_session(session_path)
        if session is not None:
            client.access_token = session["access_token"]
            client.user_id = session["user_id"]
            client.device_id = session["device_id"]
            logger.info("Matrix session restored for %s", client.user_id)
            return client
        logger.warning("Falling back to password login.")

    if not password:
        logger.error(
            "Matrix session.json not found and password is not set. "
            "Set TASKBOARD_MATRIX_PASSWORD once to bootstrap a session."
        )
        await client.close()
        return None

    device_name = f"{getattr(settings, 'app_name', 'taskboard')} (Python)"
    logger.info("Logging in to Matrix (device_name=%r)...", device_name)
    resp = await client.login(password=password, device_name=device_name)

    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        await client.close()
        return None

    try:
        _write_session(session_path, resp)
        logger.info("Matrix session saved to %s (user=%s)", session_path, resp.user_id)
    except OSError:
        logger.exception("Failed to write Matrix session %s; continuing without it", session_path)

    return client
