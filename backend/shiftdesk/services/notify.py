from __future__ import annotations

import json
import logging
import urllib.parse
import urllib.request
from typing import Any, Callable, Protocol

from shiftdesk.core.config import Settings, settings as default_settings
from shiftdesk.models.user import User

log = logging.getLogger("shiftdesk.notify")


def _assignment_lines(payload: dict[str, Any]) -> str:
    rows = payload.get("assignments") or []
    lines = []
    for a in rows:
        lines.append(
            f"• {a.get('day')}: {a.get('shift_type') or 'Shift'} ({a.get('time_start') or 'TBD'}) as {a.get('role_in_shift') or 'Staff'}"
        )
    return "\n".join(lines)


# template_key -> payload -> text
TEMPLATES: dict[str, Callable[[dict[str, Any]], str]] = {
    "availability_reminder_first": lambda p: (
        f"Hi {p.get('first_name') or ''}, please submit your availability for week {p['week_label']} "
        f"before {p['deadline']}."
    ),
    "availability_reminder_final": lambda p: (
        f"Final reminder: availability for week {p['week_label']} closes at {p['deadline']}."
    ),
    "submissions_locked": lambda p: (
        f"Availability is locked for week {p['week_label']}. You can start assigning shifts."
    ),
    "assignment_published": lambda p: (
        f"Your shifts for week {p['week_label']} are confirmed:\n{_assignment_lines(p)}"
    ),
    "swap_request": lambda p: (
        f"{p.get('requester_name') or 'A colleague'} would like to swap the {p.get('shift_type') or 'Shift'} "
        f"shift on {p.get('day')}. Please respond in the scheduling app."
    ),
    "swap_partner_accept": lambda p: (
        f"Your swap with {p.get('partner_name') or 'your colleague'} for {p.get('shift_type') or 'Shift'} "
        f"on {p.get('day')} was accepted and awaits manager approval."
    ),
    "swap_manager_decision": lambda p: (
        f"Your swap request for {p.get('shift_type') or 'Shift'} on {p.get('day')} was {p['decision']}."
        + (f"\nReason: {p['reason']}" if p.get("reason") else "")
    ),
}


def render_message(template_key: str, payload: dict[str, Any]) -> str:
    template = TEMPLATES.get(template_key)
    if template is None:
        raise KeyError(f"Unknown notification template {template_key}")
    return template(payload)


class Notifier(Protocol):
    def send(self, user: User, template_key: str, payload: dict[str, Any]) -> bool:
        ...


class BotServiceNotifier:
    """Best-effort delivery of scheduling messages.

    Preferred route: internal bot-service (BOT_SERVICE_URL).
    Fallback route: Telegram Bot API directly (TG_BOT_TOKEN).

    send() returns True if the message went out, else False. Never raises.
    """

    def __init__(self, cfg: Settings | None = None, *, timeout: int = 5) -> None:
        self.cfg = cfg or default_settings
        self.timeout = timeout

    def send(self, user: User, template_key: str, payload: dict[str, Any]) -> bool:
        if not user.tg_user_id:
            log.warning("notify skipped: user %s has no telegram chat (template=%s)", user.id, template_key)
            return False
        try:
            text = render_message(template_key, {"first_name": user.short_name, **payload})
        except Exception:
            log.exception("notify render failed template=%s user=%s", template_key, user.id)
            return False

        if self.cfg.BOT_SERVICE_URL:
            return self._via_bot_service(int(user.tg_user_id), text)
        return self._via_telegram(int(user.tg_user_id), text)

    def _via_bot_service(self, chat_id: int, text: str) -> bool:
        try:
            body = json.dumps({"chat_id": chat_id, "text": text}, ensure_ascii=False).encode("utf-8")
            secret = self.cfg.BOT_SERVICE_SECRET
            req = urllib.request.Request(
                self.cfg.BOT_SERVICE_URL.rstrip("/") + "/notify",
                data=body,
                method="POST",
                headers={
                    "Content-Type": "application/json",
                    **({"X-Bot-Secret": secret} if secret else {}),
                },
            )
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read().decode("utf-8", errors="ignore")
                if 200 <= resp.status < 300:
                    if not raw:
                        return True
                    try:
                        return bool(json.loads(raw).get("ok", True))
                    except ValueError:
                        return True
                log.warning("bot-service notify failed status=%s body=%s", resp.status, raw[:300])
                return False
        except Exception as e:
            log.exception("bot-service notify exception: %s", e)
            return False

    def _via_telegram(self, chat_id: int, text: str) -> bool:
        token = self.cfg.TG_BOT_TOKEN
        if not token:
            log.warning("notify skipped: no BOT_SERVICE_URL and no telegram token (chat_id=%s)", chat_id)
            return False
        try:
            api_url = f"https://api.telegram.org/bot{token}/sendMessage"
            data = urllib.parse.urlencode(
                {"chat_id": str(chat_id), "text": text, "disable_web_page_preview": "true"}
            ).encode("utf-8")
            req = urllib.request.Request(api_url, data=data, method="POST")
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read().decode("utf-8", errors="ignore")
                ok = bool((json.loads(raw) if raw else {}).get("ok"))
                if not ok:
                    log.warning("telegram notify failed status=%s body=%s", resp.status, raw[:300])
                return ok
        except Exception as e:
            log.exception("telegram notify exception: %s", e)
            return False


def notify_many(notifier: Notifier, recipients: list[tuple[User, dict[str, Any]]], template_key: str) -> int:
    """Send one message per recipient; a failing recipient never stops the rest."""
    sent = 0
    for user, payload in recipients:
        try:
            if notifier.send(user, template_key, payload):
                sent += 1
        except Exception:
            log.exception("notification %s to user %s failed", template_key, user.id)
    return sent
