from .planner import (
    DEFAULT_HORIZON_DAYS,
    DEFAULT_LEAD_TIMES,
    PlannerOptions,
    QuietHours,
    filter_existing_reminders,
    generate_baseline_reminder_plan,
    summarize_reminder_plan,
)
from .runner import PlanRunResult, deliver_due_reminders, plan_reminders_for_user, plan_reminders_for_users

__all__ = [
    "DEFAULT_LEAD_TIMES",
    "DEFAULT_HORIZON_DAYS",
    "PlannerOptions",
    "QuietHours",
    "generate_baseline_reminder_plan",
    "filter_existing_reminders",
    "summarize_reminder_plan",
    "PlanRunResult",
    "plan_reminders_for_user",
    "plan_reminders_for_users",
    "deliver_due_reminders",
]
