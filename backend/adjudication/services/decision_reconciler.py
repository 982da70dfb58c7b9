"""
Reconciliation of a submitted decision against the stored one

Lookup-then-write: find the record for (matrix, collaborator, offense); update
it in place when present, otherwise insert a new one.

The sequence is not atomic. Two submissions for the same key racing between
the lookup and the insert can both insert, leaving two records for one key.
Usage assumes a single writer per key; closing the gap needs an atomic upsert
keyed on the triple from the backend.
"""
from enum import Enum
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from adjudication.core.config import SessionConfig
from adjudication.core.errors import BackendError, DecisionError, ValidationError
from adjudication.core.logging_config import LoggingConfig
from adjudication.core.metrics import decision_submissions_total
from adjudication.models.decision import (DecisionKey, DecisionLevel,
                                          DecisionPayload)
from adjudication.services.decision_store import DecisionStoreGateway

logger = LoggingConfig.get_logger(__name__)


class SubmitOutcome(str, Enum):
    """What a successful submission did"""
    CREATED = "created"
    UPDATED = "updated"

    @property
    def message(self) -> str:
        if self is SubmitOutcome.UPDATED:
            return "Decision updated successfully!"
        return "Decision submitted successfully!"


class DecisionReconciler:
    """Keeps at most one decision per (matrix, collaborator, offense)"""

    def __init__(self, store: DecisionStoreGateway, session: SessionConfig):
        self.store = store
        self.session = session

    def key_for(self, uccs_code: Optional[int]) -> DecisionKey:
        """Key for an offense under the session's matrix and collaborator"""
        return DecisionKey(
            matrix_id=self.session.matrix_id,
            collaborator_email=self.session.collaborator_email,
            uccs_code=uccs_code,
        )

    async def submit(self, key: DecisionKey, payload: DecisionPayload) -> SubmitOutcome:
        """
        Create or update the decision for a key

        Args:
            key: Matrix, collaborator and offense being classified
            payload: Decision level and look-back period to store

        Returns:
            SubmitOutcome.CREATED or SubmitOutcome.UPDATED

        Raises:
            ValidationError: No offense selected (raised before any backend call)
            BackendError: Lookup, insert or update failed; not retried
        """
        if key.uccs_code is None:
            decision_submissions_total.labels(outcome="validation_error").inc()
            raise ValidationError(field="uccs_code")

        try:
            existing = await self.store.find_decision(
                key.matrix_id, key.collaborator_email, key.uccs_code
            )
            if existing is not None:
                await self.store.update_decision(existing.id, payload)
                outcome = SubmitOutcome.UPDATED
            else:
                await self.store.insert_decision(key, payload)
                outcome = SubmitOutcome.CREATED
        except BackendError:
            decision_submissions_total.labels(outcome="backend_error").inc()
            raise
        except DecisionError:
            raise
        except Exception as e:
            decision_submissions_total.labels(outcome="backend_error").inc()
            logger.error(f"Decision submission failed: {e}", exc_info=True)
            raise BackendError(str(e) or type(e).__name__) from e

        decision_submissions_total.labels(outcome=outcome.value).inc()
        logger.info(
            f"Decision {outcome.value}",
            extra={
                "matrix_id": key.matrix_id,
                "uccs_code": key.uccs_code,
                "decision_level": payload.decision_level.value,
            }
        )
        return outcome

    async def submit_for(
        self,
        uccs_code: Optional[int],
        decision_level: Union[DecisionLevel, str],
        look_back_period: Optional[int] = None,
    ) -> SubmitOutcome:
        """Submit for the session's matrix and collaborator from raw form values"""
        if uccs_code is None:
            return await self.submit(self.key_for(None), DecisionPayload())
        try:
            payload = DecisionPayload(
                decision_level=decision_level,
                look_back_period=look_back_period,
            )
        except PydanticValidationError as e:
            decision_submissions_total.labels(outcome="validation_error").inc()
            first = e.errors()[0]
            field = str(first["loc"][0]) if first.get("loc") else None
            raise ValidationError(f"Invalid {field or 'value'}: {first['msg']}", field=field) from e
        return await self.submit(self.key_for(uccs_code), payload)
