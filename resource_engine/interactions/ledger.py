"""
Append-only interaction ledger.

Every recommendation served produces one RecommendationRecord; user actions
on it are appended as InteractionEvents and fold into that record's flags.
Events are mirrored into the user's profile history, which is where the
collaborative strategy reads ratings from.
"""

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from resource_engine.exceptions import LedgerError
from resource_engine.interactions.events import (
    InteractionEvent,
    InteractionPayload,
    RecommendationRecord,
)
from resource_engine.logging_config import get_logger
from resource_engine.recommendations.experiments import ExperimentAssignment
from resource_engine.recommendations.profiles import (
    InteractionType,
    ProfileStore,
    UserInteraction,
    UserProfile,
)
from resource_engine.recommendations.strategies import ScoredCandidate

logger = get_logger(__name__)


class InteractionLedger:
    """
    Recommendation records and interaction events.

    Records and events are only ever added; tracking an event replaces the
    matching record with an updated copy of its flags.
    """

    def __init__(
        self,
        profile_store: Optional[ProfileStore] = None,
        persist_path: Optional[str] = None
    ):
        """
        Initialize the ledger.

        Args:
            profile_store: Store that receives interactions as profile history
            persist_path: Optional JSON Lines file mirroring every entry. A failed
                mirror write is logged; the in-memory ledger keeps the entry
        """
        self._lock = threading.RLock()
        self._records: Dict[str, RecommendationRecord] = {}
        self._events: List[InteractionEvent] = []
        self.profile_store = profile_store
        self.persist_path = Path(persist_path) if persist_path else None

        if self.persist_path is not None:
            self.persist_path.parent.mkdir(parents=True, exist_ok=True)
            logger.info("ledger_persistence_enabled", path=str(self.persist_path))

    def _write_entry(self, entry_type: str, data: Dict[str, Any]) -> None:
        """Append an entry to the JSON Lines mirror, if one is configured"""
        if self.persist_path is None:
            return
        entry = {"entry_type": entry_type, "written_at": datetime.utcnow().isoformat(), **data}
        try:
            with open(self.persist_path, "a") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            raise LedgerError(
                f"Failed to write ledger entry: {e}",
                {"path": str(self.persist_path), "entry_type": entry_type}
            )

    def _mirror(self, entry_type: str, data: Dict[str, Any]) -> None:
        """Mirror an entry without failing the caller; in-memory state stays authoritative"""
        try:
            self._write_entry(entry_type, data)
        except LedgerError as e:
            logger.error("ledger_mirror_write_failed", error=e.message, **e.details)

    def record_recommendations(
        self,
        profile: UserProfile,
        candidates: Sequence[ScoredCandidate],
        assignment: Optional[ExperimentAssignment] = None
    ) -> List[ScoredCandidate]:
        """
        Create one metrics record per returned candidate.

        Args:
            profile: User the recommendations were served to
            candidates: Final candidates in display order
            assignment: Experiment assignment that governed the response

        Returns:
            The candidates with their recommendation ids set
        """
        location = profile.demographics.location
        records = [
            RecommendationRecord(
                user_id=profile.anonymous_id,
                resource_id=candidate.resource_id,
                strategy=candidate.strategy.value,
                position=position,
                score=candidate.score,
                experiment_id=assignment.experiment_id if assignment else None,
                variant_id=assignment.variant_id if assignment else None,
                risk_level=profile.risk_level.value,
                country=location.country if location else profile.demographics.country_of_origin,
                language=profile.demographics.language,
            )
            for position, candidate in enumerate(candidates, start=1)
        ]

        with self._lock:
            for record in records:
                self._records[record.id] = record

        for record in records:
            self._mirror("recommendation", record.model_dump(mode="json"))

        logger.debug(
            "recommendations_recorded",
            anonymous_id=profile.anonymous_id,
            count=len(records)
        )
        return [
            candidate.model_copy(update={"recommendation_id": record.id})
            for candidate, record in zip(candidates, records)
        ]

    def track(self, recommendation_id: str, payload: InteractionPayload) -> Optional[InteractionEvent]:
        """
        Record a user action on a served recommendation.

        Unknown recommendation ids are logged and ignored.

        Returns:
            The appended event, or None if the recommendation is unknown
        """
        with self._lock:
            record = self._records.get(recommendation_id)
            if record is None:
                logger.warning("interaction_for_unknown_recommendation", recommendation_id=recommendation_id)
                return None

            event = InteractionEvent(
                recommendation_id=recommendation_id,
                resource_id=record.resource_id,
                user_id=record.user_id,
                payload=payload,
            )
            self._events.append(event)
            self._records[recommendation_id] = record.model_copy(update=_flag_updates(payload))

        self._mirror("interaction", event.model_dump(mode="json"))

        if self.profile_store is not None:
            self.profile_store.record_interaction(record.user_id, _as_user_interaction(event))

        logger.info(
            "interaction_tracked",
            recommendation_id=recommendation_id,
            event_type=event.event_type,
            resource_id=record.resource_id
        )
        return event

    def get_record(self, recommendation_id: str) -> Optional[RecommendationRecord]:
        return self._records.get(recommendation_id)

    def records(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[RecommendationRecord]:
        """Snapshot of records created within an optional time range (aware bounds are compared in UTC)"""
        start, end = to_naive_utc(start), to_naive_utc(end)
        with self._lock:
            records = list(self._records.values())
        return [
            r for r in records
            if (start is None or r.created_at >= start) and (end is None or r.created_at <= end)
        ]

    def events(self, recommendation_id: Optional[str] = None) -> List[InteractionEvent]:
        with self._lock:
            events = list(self._events)
        if recommendation_id is not None:
            events = [e for e in events if e.recommendation_id == recommendation_id]
        return events

    def __len__(self) -> int:
        return len(self._records)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Records are stamped in naive UTC; convert aware datetimes to match"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _flag_updates(payload: InteractionPayload) -> Dict[str, Any]:
    if payload.type == "view":
        return {"viewed": True}
    if payload.type == "click":
        return {"viewed": True, "clicked": True, "time_to_click": payload.time_to_click}
    if payload.type == "complete":
        return {"completed": True, "completion_time": payload.duration}
    if payload.type == "rate":
        return {"rating": payload.rating, "helpfulness": payload.helpfulness}
    if payload.type == "bookmark":
        return {"bookmarked": True}
    return {"shared": True}


def _as_user_interaction(event: InteractionEvent) -> UserInteraction:
    payload = event.payload
    return UserInteraction(
        type=InteractionType(payload.type),
        resource_id=event.resource_id,
        timestamp=event.timestamp,
        rating=payload.rating if payload.type == "rate" else None,
        duration=payload.duration if payload.type == "complete" else None,
    )
