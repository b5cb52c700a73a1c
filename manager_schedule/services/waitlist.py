from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Protocol, Sequence

from manager_schedule.clients.supabase import SupabaseClient
from manager_schedule.schemas.waitlist import (
    WaitlistBucket,
    WaitlistBuckets,
    WaitlistEntry,
    WaitlistFilter,
    WaitlistRequest,
    WaitlistSummary,
    WaitlistView,
)
from manager_schedule.services.exceptions import ServiceError
from manager_schedule.services.mock_store import WaitlistRepository, get_mock_store

logger = logging.getLogger(__name__)

UNCLASSIFIED_CUSTOMER_TYPE = "uncategorized-customer-type"
UNCLASSIFIED_DOG_CATEGORY = "uncategorized-dog-category"
UNCLASSIFIED_LABEL = "Unclassified"

SERVICE_SCOPES = ("grooming", "daycare", "both")


def _matches_term(entry: WaitlistEntry, term: str) -> bool:
    haystack = (
        entry.dog_name,
        entry.customer_name,
        entry.customer_phone,
        entry.customer_email,
        entry.breed_name,
        entry.notes,
    )
    return any(term in value.lower() for value in haystack if value)


def filter_entries(entries: Iterable[WaitlistEntry], filters: WaitlistFilter) -> List[WaitlistEntry]:
    """Keep the entries that satisfy every active filter."""

    term = filters.search_term.strip().lower()
    customer_types = set(filters.customer_type_ids)
    categories = set(filters.category_ids)

    result = []
    for entry in entries:
        if term and not _matches_term(entry, term):
            continue
        if customer_types and entry.customer_type_id not in customer_types:
            continue
        if categories and not any(category.id in categories for category in entry.dog_categories):
            continue
        result.append(entry)
    return result


def bucket_entries(entries: Sequence[WaitlistEntry]) -> WaitlistBuckets:
    """Group entries by customer type and, separately, by each dog category.

    Buckets appear in the order their first entry does. An entry with several
    categories shows up once in each of their buckets.
    """

    client_types: Dict[str, WaitlistBucket] = {}
    dog_categories: Dict[str, WaitlistBucket] = {}

    for entry in entries:
        if entry.customer_type_id:
            type_id = entry.customer_type_id
            label = entry.customer_type_name or entry.customer_type_id
        else:
            type_id, label = UNCLASSIFIED_CUSTOMER_TYPE, UNCLASSIFIED_LABEL
        client_types.setdefault(type_id, WaitlistBucket(id=type_id, label=label, entries=[]))
        client_types[type_id].entries.append(entry)

        if not entry.dog_categories:
            dog_categories.setdefault(
                UNCLASSIFIED_DOG_CATEGORY,
                WaitlistBucket(id=UNCLASSIFIED_DOG_CATEGORY, label=UNCLASSIFIED_LABEL, entries=[]),
            )
            dog_categories[UNCLASSIFIED_DOG_CATEGORY].entries.append(entry)
            continue
        seen = set()
        for category in entry.dog_categories:
            if category.id in seen:
                continue
            seen.add(category.id)
            dog_categories.setdefault(
                category.id, WaitlistBucket(id=category.id, label=category.name, entries=[])
            )
            dog_categories[category.id].entries.append(entry)

    return WaitlistBuckets(
        client_types=list(client_types.values()),
        dog_categories=list(dog_categories.values()),
    )


def summarize(
    entries: Sequence[WaitlistEntry],
    filtered: Sequence[WaitlistEntry],
    filters: WaitlistFilter,
) -> WaitlistSummary:
    scope_counts = {scope: 0 for scope in SERVICE_SCOPES}
    for entry in filtered:
        scope_counts[entry.service_scope] += 1
    return WaitlistSummary(
        total=len(entries),
        filtered=len(filtered),
        scope_counts=scope_counts,
        active_filters=filters.active_count,
    )


class WaitlistSource(Protocol):
    async def entries_for(self, day: date) -> List[WaitlistEntry]:
        ...


class EmptyWaitlistSource:
    """The salon deployment reports no waiting entries."""

    async def entries_for(self, day: date) -> List[WaitlistEntry]:
        return []


class StoreWaitlistSource:
    def __init__(
        self,
        client: SupabaseClient,
        *,
        repository: WaitlistRepository | None = None,
    ) -> None:
        self._client = client
        self._repository = repository
        if self._client.use_mock_data:
            self._repository = repository or get_mock_store().waitlist

    async def entries_for(self, day: date) -> List[WaitlistEntry]:
        if self._client.use_mock_data:
            await self._client.simulate_latency()
            if not self._repository:
                raise RuntimeError("Mock waitlist repository not configured")
            return await self._repository.list_for_date(day)

        try:
            rows = await self._client.select(
                "waitlist", {"select": "*", "order": "created_at.asc"}
            )
            entries = [WaitlistEntry(**row) for row in rows]
            return [entry for entry in entries if entry.is_waiting_on(day)]
        except ServiceError:
            raise
        except Exception as exc:  # pragma: no cover - defensive
            logger.exception("Unexpected error while loading waitlist")
            raise ServiceError("Failed to load waitlist", cause=exc)


class WaitlistService:
    def __init__(self, source: WaitlistSource) -> None:
        self._source = source

    async def view(self, request: WaitlistRequest) -> WaitlistView:
        logger.info("Building waitlist view for %s", request.date)
        now = datetime.now(timezone.utc)
        try:
            entries = await self._source.entries_for(request.date)
        except ServiceError as exc:
            logger.warning("Waitlist source failed for %s: %s", request.date, exc)
            return WaitlistView(
                date=request.date,
                entries=[],
                buckets=WaitlistBuckets(),
                summary=summarize([], [], request),
                last_updated=now,
                error=str(exc),
            )

        filtered = filter_entries(entries, request)
        return WaitlistView(
            date=request.date,
            entries=filtered,
            buckets=bucket_entries(filtered),
            summary=summarize(entries, filtered, request),
            last_updated=now,
        )
