from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .reminders.planner import DEFAULT_HORIZON_DAYS, DEFAULT_LEAD_TIMES, DEFAULT_REMINDER_HOUR, PlannerOptions, QuietHours


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _deep_merge(base: object, override: object) -> object:
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def _parse_int_list_env(value: str) -> list[int]:
    """
    Accept "7,3,1,0", "7 3 1 0" or a JSON list "[7, 3, 1, 0]".

    Junk tokens are skipped rather than crashing; duplicates are dropped, order kept.
    """
    s = (value or "").strip()
    if not s:
        return []

    if s.startswith("["):
        try:
            data = json.loads(s)
            items = [str(x) for x in data] if isinstance(data, list) else [s]
        except ValueError:
            items = [s]
    else:
        items = re.split(r"[,\s]+", s)

    out: list[int] = []
    for item in items:
        token = (item or "").strip()
        if not re.fullmatch(r"-?\d+", token):
            continue
        n = int(token)
        if n not in out:
            out.append(n)
    return out


def _default_config_from_env() -> dict:
    """Env-only config so a `.env` is enough; YAML stays an optional override."""
    reminders: dict = {}
    lead_times = _parse_int_list_env(os.getenv("REMINDER_LEAD_TIMES", ""))
    if lead_times:
        reminders["lead_times"] = lead_times
    if os.getenv("REMINDER_HOUR"):
        reminders["reminder_hour"] = os.getenv("REMINDER_HOUR")

    return {
        "wallet": {
            "user_id": os.getenv("VITTA_USER_ID", "local"),
            "cards_file": os.getenv("VITTA_CARDS_FILE", "cards.yaml"),
        },
        "state": {
            "db_path": os.getenv("STATE_DB_PATH", "data/wallet.db"),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", "data/wallet.log"),
        },
        "reminders": reminders,
    }


class WalletConfig(BaseModel):
    user_id: str = "local"
    cards_file: str = "cards.yaml"

    @field_validator("user_id")
    @classmethod
    def _user_required(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("wallet.user_id must not be empty")
        return value


class StateConfig(BaseModel):
    db_path: str = "data/wallet.db"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = "data/wallet.log"


class QuietHoursConfig(BaseModel):
    start: int = Field(default=21, ge=0, le=23)
    end: int = Field(default=8, ge=0, le=23)


class ReminderConfig(BaseModel):
    """
    Reminder scheduling.

    `lead_times` are days before the due date (0 = the due date itself). `follow_up_days` are days
    after the due date and are only planned while the payment is due today.
    """

    lead_times: list[int] = Field(default_factory=lambda: list(DEFAULT_LEAD_TIMES))
    follow_up_days: list[int] = Field(default_factory=list)
    reminder_hour: int = Field(default=DEFAULT_REMINDER_HOUR, ge=0, le=23)
    quiet_hours: Optional[QuietHoursConfig] = QuietHoursConfig()
    horizon_days: int = Field(default=DEFAULT_HORIZON_DAYS, ge=1, le=366)

    @model_validator(mode="after")
    def _validate_days(self) -> "ReminderConfig":
        if not self.lead_times:
            raise ValueError("reminders.lead_times must contain at least one value")
        if any(x < 0 for x in self.lead_times):
            raise ValueError("reminders.lead_times must be >= 0 (days before the due date)")
        if any(x <= 0 for x in self.follow_up_days):
            raise ValueError("reminders.follow_up_days must be > 0 (days after the due date)")
        self.lead_times = sorted(set(self.lead_times), reverse=True)
        return self

    def planner_options(self) -> PlannerOptions:
        quiet = None
        if self.quiet_hours is not None:
            quiet = QuietHours(start=self.quiet_hours.start, end=self.quiet_hours.end)
        return PlannerOptions(
            reminder_hour=self.reminder_hour,
            quiet_hours=quiet,
            follow_up_days=tuple(self.follow_up_days),
            horizon_days=self.horizon_days,
        )


class AppConfig(BaseModel):
    wallet: WalletConfig = WalletConfig()
    state: StateConfig = StateConfig()
    logging: LoggingConfig = LoggingConfig()
    reminders: ReminderConfig = ReminderConfig()


def load_config(path: Union[str, Path]) -> AppConfig:
    p = Path(path)
    raw: dict = {}
    if p.exists():
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    return AppConfig.model_validate(merged)
