from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database
    database_url: str

    # Scheduling calendar
    SCHED_TZ: str = "Europe/Warsaw"
    SCHED_LOCK_DAY: int = 0  # 0=Sunday .. 6=Saturday
    SCHED_LOCK_HOUR: int = 18

    # Published for the external cron (availability reminders)
    SCHED_REMINDER1_DAY: int = 6
    SCHED_REMINDER1_HOUR: int = 18
    SCHED_REMINDER2_DAY: int = 0
    SCHED_REMINDER2_HOUR: int = 12

    # Notifications: bot-service first, direct Telegram API as fallback
    BOT_SERVICE_URL: str = ""
    BOT_SERVICE_SECRET: str = ""
    TG_BOT_TOKEN: str = ""

    # Schedule export (PDF/PNG rendering + upload lives in a separate service)
    EXPORT_SERVICE_URL: str = ""
    EXPORT_SERVICE_SECRET: str = ""
    EXPORT_TIMEOUT_SECONDS: int = 60

    def cron_expression(self, day: int, hour: int) -> str:
        return f"0 {hour} * * {day}"

    def reminder_cron_expressions(self) -> dict[str, str]:
        return {
            "remind-first": self.cron_expression(self.SCHED_REMINDER1_DAY, self.SCHED_REMINDER1_HOUR),
            "remind-final": self.cron_expression(self.SCHED_REMINDER2_DAY, self.SCHED_REMINDER2_HOUR),
            "auto-lock": self.cron_expression(self.SCHED_LOCK_DAY, self.SCHED_LOCK_HOUR),
            "generate": "0 0 * * 1",
        }


settings = Settings()
