"""
Live view of the decisions in one matrix

Holds an arrival-ordered, id-keyed collection seeded from a snapshot and kept
current from the change feed. This class is the only writer of that collection.
"""
from typing import Callable, Dict, List, Optional
from uuid import UUID

from adjudication.core.errors import BackendError
from adjudication.core.logging_config import LoggingConfig
from adjudication.core.metrics import change_events_applied_total
from adjudication.models.decision import DecisionRecord
from adjudication.services.decision_change_feed import (ChangeEventType,
                                                        DecisionChangeEvent,
                                                        DecisionSubscription)
from adjudication.services.decision_store import DecisionStoreGateway

logger = LoggingConfig.get_logger(__name__)

# apply() results
INSERTED = "inserted"
REPLACED = "replaced"
STALE = "stale"
IGNORED = "ignored"


class LiveDecisionView:
    """
    Decisions for one matrix, merged from a snapshot and the change feed

    Events replace the record with the same id in place, or are appended when
    the id is new. An event older than the held copy of its record is dropped.
    Delete events are not supported and leave the collection unchanged.
    """

    def __init__(
        self,
        store: DecisionStoreGateway,
        matrix_id: str,
        on_change: Optional[Callable[[DecisionChangeEvent, "LiveDecisionView"], None]] = None,
    ):
        self.store = store
        self.matrix_id = matrix_id
        self.on_change = on_change
        self._records: List[DecisionRecord] = []
        self._positions: Dict[UUID, int] = {}
        self._subscription: Optional[DecisionSubscription] = None
        self._pending: List[DecisionChangeEvent] = []
        self._seeded = False

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def decisions(self) -> List[DecisionRecord]:
        """Current collection in arrival order (copy)"""
        return list(self._records)

    @property
    def is_open(self) -> bool:
        return self._subscription is not None and not self._subscription.closed

    def get(self, decision_id: UUID) -> Optional[DecisionRecord]:
        position = self._positions.get(decision_id)
        return self._records[position] if position is not None else None

    def position_of(self, decision_id: UUID) -> Optional[int]:
        return self._positions.get(decision_id)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(list(self._records))

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------

    def load_snapshot(self, records: List[DecisionRecord]):
        """Replace the whole collection with a snapshot"""
        self._records = []
        self._positions = {}
        for record in records:
            if record.id in self._positions:
                self._records[self._positions[record.id]] = record
            else:
                self._positions[record.id] = len(self._records)
                self._records.append(record)
        self._seeded = True

    def apply(self, event: DecisionChangeEvent) -> str:
        """
        Merge one change event

        Returns:
            One of "inserted", "replaced", "stale", "ignored"
        """
        result = self._merge(event)
        change_events_applied_total.labels(result=result).inc()
        if result in (INSERTED, REPLACED) and self.on_change is not None:
            self.on_change(event, self)
        return result

    def _merge(self, event: DecisionChangeEvent) -> str:
        if event.event_type == ChangeEventType.DELETE:
            logger.warning(
                "Delete event received; decision removal is not supported",
                extra={
                    "matrix_id": self.matrix_id,
                    "decision_id": str(event.record.id) if event.record else None,
                }
            )
            return IGNORED

        record = event.record
        if record is None:
            return IGNORED

        position = self._positions.get(record.id)
        if position is None:
            self._positions[record.id] = len(self._records)
            self._records.append(record)
            return INSERTED

        current = self._records[position]
        if record.updated_at < current.updated_at:
            logger.debug(
                f"Dropping stale event for decision {record.id}",
                extra={"sequence": event.sequence}
            )
            return STALE

        self._records[position] = record
        return REPLACED

    def _on_event(self, event: DecisionChangeEvent):
        if not self._seeded:
            self._pending.append(event)
            return
        self.apply(event)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> "LiveDecisionView":
        """
        Subscribe, seed from a snapshot, then replay events that arrived meanwhile

        A snapshot failure is logged and leaves the collection empty; live
        events are still merged.
        """
        if self.is_open:
            return self

        self._seeded = False
        self._pending = []
        self._subscription = self.store.subscribe_decision_changes(self.matrix_id, self._on_event)

        try:
            snapshot = await self.store.list_decisions(self.matrix_id)
        except BackendError as e:
            logger.error(f"Error fetching decisions: {e.message}", extra={"matrix_id": self.matrix_id})
            snapshot = []
        except BaseException:
            self.close()
            raise

        self.load_snapshot(snapshot)
        pending, self._pending = self._pending, []
        for event in pending:
            self.apply(event)

        logger.info(
            f"Live view opened with {len(self._records)} decisions",
            extra={"matrix_id": self.matrix_id, "replayed_events": len(pending)}
        )
        return self

    def close(self):
        """Release the change-feed subscription (idempotent)"""
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
            logger.debug("Live view closed", extra={"matrix_id": self.matrix_id})

    async def __aenter__(self) -> "LiveDecisionView":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb):
        self.close()
