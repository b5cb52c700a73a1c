"""Explicit state of one manager board session.

Holds what the board UI keeps between gestures: the selected day and filter,
the single pending-resize slot and the lifecycle of each proposed change.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Optional

from manager_schedule.schemas.schedule import PendingResizeState, ScheduleQuery, ServiceFilter
from manager_schedule.services.exceptions import ProposalInFlightError

logger = logging.getLogger(__name__)


class ProposalState(str, enum.Enum):
    IDLE = "idle"
    PROPOSED = "proposed"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class BoardState:
    selected_date: date = field(default_factory=date.today)
    service_filter: ServiceFilter = "both"
    pending_resize: Optional[PendingResizeState] = None
    proposals: Dict[str, ProposalState] = field(default_factory=dict)

    @property
    def query(self) -> ScheduleQuery:
        return ScheduleQuery(date=self.selected_date, service_filter=self.service_filter)

    def select(self, query: ScheduleQuery) -> None:
        self.selected_date = query.date
        self.service_filter = query.service_filter

    def proposal_state(self, appointment_id: str) -> ProposalState:
        return self.proposals.get(appointment_id, ProposalState.IDLE)

    def begin_proposal(self, appointment_id: str) -> None:
        if self.proposal_state(appointment_id) is ProposalState.PROPOSED:
            raise ProposalInFlightError(
                f"Appointment {appointment_id} already has a change being committed"
            )
        self.proposals[appointment_id] = ProposalState.PROPOSED

    def resolve_proposal(self, appointment_id: str, outcome: ProposalState) -> None:
        if outcome not in (ProposalState.COMMITTED, ProposalState.ROLLED_BACK):
            raise ValueError(f"{outcome} is not a terminal proposal state")
        logger.debug("Proposal for %s resolved as %s", appointment_id, outcome.value)
        self.proposals[appointment_id] = outcome

    def set_pending_resize(self, pending: PendingResizeState) -> None:
        self.pending_resize = pending

    def clear_pending_resize(self) -> None:
        self.pending_resize = None

    def pending_resize_for(self, appointment_id: str) -> Optional[PendingResizeState]:
        if self.pending_resize and self.pending_resize.appointment.id == appointment_id:
            return self.pending_resize
        return None
