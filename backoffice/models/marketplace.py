from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

ITEM_STATUSES = ("available", "sold", "pending", "cancelled", "reserved")
ITEM_CONDITIONS = ("Brand New", "Like New", "Good", "Fair", "Poor")
PRICE_MODES = ("fixed", "negotiable", "free")
TRANSACTION_STATUSES = ("pending", "completed", "cancelled", "reserved")
VIOLATION_TYPES = (
    "fake listings",
    "price manipulation",
    "identity theft",
    "misinformation",
    "Non-compliance with Transaction Protocol",
    "chargeback abuse",
    "other",
)

ROLE_USER = 0
ROLE_ADMIN = 1
ROLE_BANNED = 2
ROLE_RESTRICTED = 3


class _Row(BaseModel):
    # Remote rows carry more columns than we model; keep them around
    model_config = ConfigDict(extra="allow")


class Listing(_Row):
    item_id: int | None = None
    item_name: str | None = None
    item_type: str | None = None
    item_status: str | None = None
    item_condition: str | None = None
    item_price_type: str | None = None
    item_price: float | None = None
    item_price_min: float | None = None
    item_price_max: float | None = None
    photos: list[str] | None = None
    stud_id: int | None = None
    created_at: datetime | None = None


class Transaction(_Row):
    transac_id: int | None = None
    status: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    item: Listing | None = None


class Report(_Row):
    report_id: int | None = None
    violation_type: str | None = None
    created_at: datetime | None = None


class Person(_Row):
    stud_id: int | None = None
    user_id: str | None = None
    stud_fname: str | None = None
    stud_lname: str | None = None
    stud_school: str | None = None
    stud_email: str | None = None
    stud_warning_count: int | None = None
    is_role: int | None = None

    @property
    def full_name(self) -> str:
        return f"{self.stud_fname or ''} {self.stud_lname or ''}".strip()


class ChartSeries(BaseModel):
    labels: list[str]
    values: list[float]


class TimeToSell(BaseModel):
    average: dict[str, float]
    counts: dict[str, int]

    @classmethod
    def empty(cls) -> TimeToSell:
        return cls(
            average={mode: 0.0 for mode in PRICE_MODES},
            counts={mode: 0 for mode in PRICE_MODES},
        )


class AdminIdentity(BaseModel):
    user_id: str
    email: str | None = None
    is_admin: bool = False


class UserSummary(BaseModel):
    total: int = 0
    active: int = 0
    flagged: int = 0
