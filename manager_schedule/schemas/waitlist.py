from __future__ import annotations

from datetime import date as date_type
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator


WaitlistServiceScope = Literal["grooming", "daycare", "both"]


class DateSpan(BaseModel):
    start_date: date_type
    end_date: Optional[date_type] = None

    @model_validator(mode="after")
    def _check_order(self) -> "DateSpan":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def covers(self, day: date_type) -> bool:
        if day < self.start_date:
            return False
        return self.end_date is None or day <= self.end_date


class DogCategory(BaseModel):
    id: str
    name: str


class WaitlistEntry(BaseModel):
    id: str
    customer_id: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    customer_type_id: Optional[str] = None
    customer_type_name: Optional[str] = None
    dog_id: Optional[str] = None
    dog_name: Optional[str] = None
    breed_name: Optional[str] = None
    dog_categories: List[DogCategory] = Field(default_factory=list)
    service_scope: WaitlistServiceScope = "grooming"
    date_spans: List[DateSpan] = Field(..., min_length=1)
    notes: Optional[str] = None

    def is_waiting_on(self, day: date_type) -> bool:
        return any(span.covers(day) for span in self.date_spans)


class WaitlistFilter(BaseModel):
    search_term: str = ""
    customer_type_ids: List[str] = Field(default_factory=list)
    category_ids: List[str] = Field(default_factory=list)

    @property
    def active_count(self) -> int:
        return (
            (1 if self.search_term.strip() else 0)
            + len(self.customer_type_ids)
            + len(self.category_ids)
        )


class WaitlistRequest(WaitlistFilter):
    date: date_type


class WaitlistBucket(BaseModel):
    id: str
    label: str
    entries: List[WaitlistEntry]


class WaitlistBuckets(BaseModel):
    client_types: List[WaitlistBucket] = Field(default_factory=list)
    dog_categories: List[WaitlistBucket] = Field(default_factory=list)


class WaitlistSummary(BaseModel):
    total: int
    filtered: int
    scope_counts: Dict[str, int]
    active_filters: int


class WaitlistView(BaseModel):
    date: date_type
    entries: List[WaitlistEntry]
    buckets: WaitlistBuckets
    summary: WaitlistSummary
    last_updated: datetime
    error: Optional[str] = None
