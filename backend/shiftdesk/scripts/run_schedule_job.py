"""Run one periodic scheduling job.

Meant to be called by cron (or any external scheduler) from the backend
environment. Suggested crontab lines come from `Settings.reminder_cron_expressions()`:

  seed          create missing default shift types and templates
  generate      ensure next week exists and spawn its shifts from templates
  remind-first  first availability reminder for next week
  remind-final  last availability reminder before the deadline
  auto-lock     lock next week at the availability deadline and notify managers

Env:
  - DATABASE_URL
  - BOT_SERVICE_URL / BOT_SERVICE_SECRET (preferred) OR TG_BOT_TOKEN (fallback)
  - DRY_RUN=1 logs recipients instead of sending
"""

from __future__ import annotations

import argparse
import logging
import os
from typing import Any

from shiftdesk.core.config import settings
from shiftdesk.core.db import SessionLocal
from shiftdesk.models.user import User
from shiftdesk.services import catalog, lifecycle
from shiftdesk.services.notify import BotServiceNotifier, Notifier

log = logging.getLogger("shiftdesk.jobs")

JOBS = ("seed", "generate", "remind-first", "remind-final", "auto-lock")

DRY_RUN = os.getenv("DRY_RUN", "").strip() in ("1", "true", "yes")


class DryRunNotifier:
    def send(self, user: User, template_key: str, payload: dict[str, Any]) -> bool:
        print(f"DRY_RUN {template_key}: user_id={user.id} chat_id={user.tg_user_id} payload={payload}")
        return True


def run(job: str, notifier: Notifier) -> str:
    with SessionLocal() as db:
        if job == "seed":
            return f"templates_created={catalog.seed_catalog(db)}"
        if job == "generate":
            result = lifecycle.generate_next_week(db)
            return f"week={result.week.label} created={result.created} spawned={result.spawned}"
        if job in lifecycle.REMINDER_TEMPLATES:
            sent = lifecycle.send_availability_reminder(db, job, notifier)
            return f"sent={sent}"
        if job == "auto-lock":
            week = lifecycle.auto_lock_collecting_week(db, notifier)
            return f"locked={week.label if week else None}"
    raise ValueError(f"Unknown job {job}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run a periodic scheduling job")
    parser.add_argument("job", nargs="?", choices=JOBS)
    parser.add_argument("--print-cron", action="store_true", help="print suggested cron expressions and exit")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.print_cron:
        for job, expr in settings.reminder_cron_expressions().items():
            print(f"{expr}  run_schedule_job.py {job}")
        return 0
    if args.job is None:
        parser.error("job is required")

    notifier: Notifier = DryRunNotifier() if DRY_RUN else BotServiceNotifier()
    print(run(args.job, notifier))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
