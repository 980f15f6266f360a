from __future__ import annotations

from fastapi import Header, HTTPException, status

from shiftdesk.services.exports import ExportRenderer, HttpExportRenderer
from shiftdesk.services.notify import BotServiceNotifier, Notifier


def get_actor_id(x_actor_id: int | None = Header(default=None, alias="X-Actor-Id")) -> int:
    """Acting user id, set by the authenticating gateway in front of this API."""
    if x_actor_id is None or x_actor_id <= 0:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-Actor-Id")
    return x_actor_id


def get_notifier() -> Notifier:
    return BotServiceNotifier()


def get_export_renderer() -> ExportRenderer:
    return HttpExportRenderer()
