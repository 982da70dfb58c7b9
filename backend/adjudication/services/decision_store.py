"""
Decision Store Gateway: the only component that talks to the decision backend
"""
import asyncio
import functools
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, TypeVar
from uuid import UUID

from sqlalchemy import and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from adjudication.core.errors import BackendError
from adjudication.core.logging_config import LoggingConfig
from adjudication.core.metrics import (backend_call_duration_seconds,
                                       backend_errors_total)
from adjudication.models.decision import (Decision, DecisionKey,
                                          DecisionPayload, DecisionRecord)
from adjudication.services.decision_change_feed import (ChangeEventType,
                                                        ChangeHandler,
                                                        DecisionChangeFeed,
                                                        DecisionSubscription,
                                                        get_change_feed)
from adjudication.utils.datetime_utils import next_updated_at, utc_now

logger = LoggingConfig.get_logger(__name__)

T = TypeVar("T")


class DecisionStoreGateway(ABC):
    """Backend contract consumed by the reconciler and the live view"""

    @abstractmethod
    async def find_decision(
        self,
        matrix_id: str,
        collaborator_email: str,
        uccs_code: int
    ) -> Optional[DecisionRecord]:
        """Return at most one decision matching the full key"""

    @abstractmethod
    async def insert_decision(self, key: DecisionKey, payload: DecisionPayload) -> DecisionRecord:
        """Create a decision; the backend assigns id and updated_at"""

    @abstractmethod
    async def update_decision(self, decision_id: UUID, payload: DecisionPayload) -> DecisionRecord:
        """Overwrite level and look-back of an existing decision; refreshes updated_at"""

    @abstractmethod
    async def list_decisions(self, matrix_id: str) -> List[DecisionRecord]:
        """Snapshot of every decision in a matrix"""

    @abstractmethod
    def subscribe_decision_changes(self, matrix_id: str, on_event: ChangeHandler) -> DecisionSubscription:
        """Open a change-event subscription scoped to one matrix"""


class SqlDecisionStore(DecisionStoreGateway):
    """
    Decision store backed by SQLAlchemy

    Blocking database work runs in the default executor, each call on its own
    session. Writes hold a lock across commit and publish so change events
    leave in commit order.
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        feed: Optional[DecisionChangeFeed] = None,
    ):
        if session_factory is None:
            from adjudication.core.database import get_session_local
            session_factory = get_session_local()
        self.session_factory = session_factory
        self.feed = feed or get_change_feed()
        self._write_lock = threading.Lock()

    async def _run(self, operation: str, fn: Callable[..., T], *args) -> T:
        loop = asyncio.get_running_loop()
        start_time = time.perf_counter()
        try:
            return await loop.run_in_executor(None, functools.partial(fn, *args))
        except BackendError:
            backend_errors_total.labels(operation=operation).inc()
            raise
        except SQLAlchemyError as e:
            backend_errors_total.labels(operation=operation).inc()
            message = str(getattr(e, "orig", None) or e)
            logger.error(
                f"Decision store {operation} failed: {message}",
                exc_info=True,
                extra={"operation": operation}
            )
            raise BackendError(message, operation=operation) from e
        except ValueError as e:
            # Row failed conversion, e.g. a level outside Green/Yellow/Red
            backend_errors_total.labels(operation=operation).inc()
            logger.error(
                f"Decision store {operation} returned an invalid row: {e}",
                extra={"operation": operation}
            )
            raise BackendError(f"Invalid decision row: {e}", operation=operation) from e
        finally:
            backend_call_duration_seconds.labels(operation=operation).observe(
                time.perf_counter() - start_time
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _find_sync(self, matrix_id: str, collaborator_email: str, uccs_code: int) -> Optional[DecisionRecord]:
        db: Session = self.session_factory()
        try:
            row = db.query(Decision).filter(
                and_(
                    Decision.matrix_id == matrix_id,
                    Decision.collaborator_email == collaborator_email,
                    Decision.uccs_code == uccs_code,
                )
            ).order_by(Decision.created_at.asc(), Decision.id.asc()).first()
            return row.to_record() if row else None
        finally:
            db.close()

    async def find_decision(
        self,
        matrix_id: str,
        collaborator_email: str,
        uccs_code: int
    ) -> Optional[DecisionRecord]:
        return await self._run("find", self._find_sync, matrix_id, collaborator_email, uccs_code)

    def _list_sync(self, matrix_id: str) -> List[DecisionRecord]:
        db: Session = self.session_factory()
        try:
            rows = db.query(Decision).filter(
                Decision.matrix_id == matrix_id
            ).order_by(Decision.created_at.asc(), Decision.id.asc()).all()
            return [row.to_record() for row in rows]
        finally:
            db.close()

    async def list_decisions(self, matrix_id: str) -> List[DecisionRecord]:
        return await self._run("list", self._list_sync, matrix_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _insert_sync(self, key: DecisionKey, payload: DecisionPayload) -> DecisionRecord:
        with self._write_lock:
            now = utc_now()
            db: Session = self.session_factory()
            try:
                row = Decision(
                    matrix_id=key.matrix_id,
                    collaborator_email=key.collaborator_email,
                    uccs_code=key.uccs_code,
                    decision_level=payload.decision_level.value,
                    look_back_period=payload.look_back_period,
                    created_at=now,
                    updated_at=now,
                )
                db.add(row)
                db.commit()
                db.refresh(row)
                record = row.to_record()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

            logger.info(
                f"Inserted decision {record.id}",
                extra={"matrix_id": record.matrix_id, "uccs_code": record.uccs_code}
            )
            self.feed.publish(ChangeEventType.INSERT, record)
            return record

    async def insert_decision(self, key: DecisionKey, payload: DecisionPayload) -> DecisionRecord:
        if key.uccs_code is None:
            raise BackendError("uccs_code is required", operation="insert")
        return await self._run("insert", self._insert_sync, key, payload)

    def _update_sync(self, decision_id: UUID, payload: DecisionPayload) -> DecisionRecord:
        with self._write_lock:
            db: Session = self.session_factory()
            try:
                row = db.get(Decision, decision_id)
                if row is None:
                    raise BackendError(f"Decision {decision_id} not found", operation="update")
                row.decision_level = payload.decision_level.value
                row.look_back_period = payload.look_back_period
                row.updated_at = next_updated_at(row.updated_at)
                db.commit()
                db.refresh(row)
                record = row.to_record()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

            logger.info(
                f"Updated decision {record.id}",
                extra={"matrix_id": record.matrix_id, "uccs_code": record.uccs_code}
            )
            self.feed.publish(ChangeEventType.UPDATE, record)
            return record

    async def update_decision(self, decision_id: UUID, payload: DecisionPayload) -> DecisionRecord:
        return await self._run("update", self._update_sync, decision_id, payload)

    # ------------------------------------------------------------------
    # Change feed
    # ------------------------------------------------------------------

    def subscribe_decision_changes(self, matrix_id: str, on_event: ChangeHandler) -> DecisionSubscription:
        return self.feed.subscribe(matrix_id, on_event)


_decision_store: Optional[SqlDecisionStore] = None


def get_decision_store() -> SqlDecisionStore:
    """Get the process-wide decision store"""
    global _decision_store
    if _decision_store is None:
        _decision_store = SqlDecisionStore()
    return _decision_store


def reset_decision_store():
    global _decision_store
    _decision_store = None
