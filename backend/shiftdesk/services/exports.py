from __future__ import annotations

import json
import logging
import urllib.request
from dataclasses import dataclass
from typing import Protocol

from shiftdesk.core.config import Settings, settings as default_settings
from shiftdesk.core.errors import ExternalServiceError
from shiftdesk.models.schedule_week import ScheduleWeek

log = logging.getLogger("shiftdesk.exports")


@dataclass(frozen=True)
class ExportFile:
    file_id: str
    url: str


class ExportRenderer(Protocol):
    def render(self, week: ScheduleWeek) -> list[ExportFile]:
        """Render and upload the week's schedule; raise ExternalServiceError on failure."""
        ...


class HttpExportRenderer:
    """Asks the export service to render (PDF + PNG) and upload a week.

    Request:  POST {EXPORT_SERVICE_URL}/render {"schedule_week_id", "year", "iso_week", "label"}
    Response: {"files": [{"id": "...", "url": "..."}, ...]}
    """

    def __init__(self, cfg: Settings | None = None) -> None:
        self.cfg = cfg or default_settings

    def render(self, week: ScheduleWeek) -> list[ExportFile]:
        if not self.cfg.EXPORT_SERVICE_URL:
            raise ExternalServiceError("Export service is not configured")

        body = json.dumps(
            {
                "schedule_week_id": week.id,
                "year": week.year,
                "iso_week": week.iso_week,
                "label": week.label,
                "folder": f"Schedules/{week.year}/Week-{week.iso_week:02d}",
            }
        ).encode("utf-8")
        secret = self.cfg.EXPORT_SERVICE_SECRET
        req = urllib.request.Request(
            self.cfg.EXPORT_SERVICE_URL.rstrip("/") + "/render",
            data=body,
            method="POST",
            headers={
                "Content-Type": "application/json",
                **({"X-Export-Secret": secret} if secret else {}),
            },
        )
        try:
            with urllib.request.urlopen(req, timeout=self.cfg.EXPORT_TIMEOUT_SECONDS) as resp:
                raw = resp.read().decode("utf-8", errors="ignore")
                if not 200 <= resp.status < 300:
                    raise ExternalServiceError(f"Export service responded with status {resp.status}")
                files = json.loads(raw).get("files") or []
                result = [ExportFile(file_id=str(f["id"]), url=str(f["url"])) for f in files]
        except ExternalServiceError:
            raise
        except Exception as e:
            log.exception("export render failed week=%s", week.label)
            raise ExternalServiceError(f"Export rendering failed: {e}") from e

        if not result:
            raise ExternalServiceError("Export service returned no files")
        return result
