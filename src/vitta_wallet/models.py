from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, Field, field_validator


CardNetwork = Literal["Visa", "Mastercard", "Amex", "Discover"]
SpendCategory = Literal["dining", "groceries", "travel", "gas", "default"]
ReminderStatus = Literal["scheduled", "sent", "acknowledged", "snoozed", "cancelled"]
Urgency = Literal["normal", "soon", "urgent", "due", "overdue"]

SPEND_CATEGORIES: tuple[str, ...] = ("dining", "groceries", "travel", "gas", "default")
CATEGORY_ALIASES = {"general": "default"}

REMINDER_TYPE_PAYMENT_DUE = "payment_due"

_NETWORKS = {
    "visa": "Visa",
    "mastercard": "Mastercard",
    "master card": "Mastercard",
    "amex": "Amex",
    "american express": "Amex",
    "discover": "Discover",
}


class Card(BaseModel):
    card_id: str = ""
    card_name: str
    nickname: Optional[str] = None
    issuer: Optional[str] = None
    card_network: Optional[CardNetwork] = None

    credit_limit: float = Field(default=0.0, ge=0)
    # May exceed credit_limit; balance <= limit is only enforced when a form is submitted.
    current_balance: float = Field(default=0.0, ge=0)
    apr: float = Field(default=0.0, ge=0, le=99)
    amount_to_pay: float = Field(default=0.0, ge=0)

    statement_close_day: Optional[int] = Field(default=None, ge=1, le=31)
    payment_due_day: Optional[int] = Field(default=None, ge=1, le=31)
    grace_period_days: Optional[int] = None

    # Points or cash-back percent per spend category; 1x is the floor every card earns.
    reward_structure: dict[str, Annotated[float, Field(ge=1)]] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    @field_validator("card_network", mode="before")
    @classmethod
    def _normalize_network(cls, value: object) -> object:
        if value is None or value == "":
            return None
        if isinstance(value, str):
            return _NETWORKS.get(value.strip().lower(), value)
        return value

    @field_validator("reward_structure", mode="before")
    @classmethod
    def _normalize_rewards(cls, value: object) -> object:
        if value is None:
            return {}
        if not isinstance(value, dict):
            return value
        out: dict[str, object] = {}
        for k, v in value.items():
            key = str(k).strip().lower()
            out[CATEGORY_ALIASES.get(key, key)] = v
        return out

    def card_key(self) -> str:
        return self.card_id or self.card_name

    def display_name(self) -> str:
        return self.nickname or self.card_name

    @property
    def available_credit(self) -> float:
        return max(self.credit_limit - self.current_balance, 0.0)

    @property
    def monthly_interest(self) -> float:
        """Interest one cycle of carrying the current balance would cost: balance x APR / 100 / 12."""
        return self.current_balance * self.apr / 100 / 12


class BillingCycle(BaseModel):
    statement_close_day: int
    payment_due_day: int
    grace_period_days: int


class RewardPick(BaseModel):
    card: Card
    category: SpendCategory
    multiplier: float
    estimated_reward: float = 0.0


class Tip(BaseModel):
    kind: Literal["pay_in_full", "high_utilization", "moderate_utilization", "zero_balance"]
    severity: Literal["info", "warning", "severe"]
    icon: str
    title: str
    message: str


class UtilizationReport(BaseModel):
    card_key: str
    # None when the card has no credit limit (utilization is undefined).
    utilization_percent: Optional[float]
    available_credit: float
    tips: list[Tip] = Field(default_factory=list)


class CardAllocation(BaseModel):
    card_key: str
    card_name: str
    apr: float
    balance: float
    payment: float
    residual_balance: float
    projected_interest: float


class OptimizationPlan(BaseModel):
    budget: float
    allocations: list[CardAllocation] = Field(default_factory=list)
    total_allocated: float = 0.0
    surplus: float = 0.0
    projected_interest: float = 0.0
    interest_if_unpaid: float = 0.0
    interest_avoided: float = 0.0

    def as_mapping(self) -> dict[str, float]:
        return {a.card_key: a.payment for a in self.allocations}


class ReminderPayload(BaseModel):
    card_nickname: str
    urgency: Urgency
    urgency_emoji: str
    # Same sign as Reminder.lead_time_days: days left before the due date, negative once it has passed.
    days_until_due: int
    amount_due: float = 0.0


class Reminder(BaseModel):
    user_id: str = ""
    card_key: str
    reminder_type: str = REMINDER_TYPE_PAYMENT_DUE
    due_date: date
    target_datetime: datetime
    # Days before the due date; 0 is the due date itself, negative values are post-due follow-ups.
    lead_time_days: int
    status: ReminderStatus = "scheduled"
    priority: int = 0
    payload: ReminderPayload

    def reminder_key(self) -> str:
        # Used for idempotent upserts. Keep stable and human-readable.
        parts = [
            self.user_id,
            self.card_key,
            self.reminder_type,
            self.due_date.isoformat(),
            str(self.lead_time_days),
        ]
        return "|".join(parts)


class ReminderSummary(BaseModel):
    total_upcoming: int
    next_reminder: Optional[Reminder] = None
    by_card: dict[str, list[Reminder]] = Field(default_factory=dict)


class MuteState(BaseModel):
    # None is the user-wide mute; otherwise the mute covers only this card.
    card_key: Optional[str] = None
    muted: bool = False
    # Only meaningful when muted; None means "until explicitly unmuted".
    muted_until: Optional[datetime] = None

    def is_active(self, now: datetime) -> bool:
        if not self.muted:
            return False
        if self.muted_until is None:
            return True
        return now < self.muted_until
