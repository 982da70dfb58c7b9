"""
Decision model: the classification of one offense by one collaborator within a matrix
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import (CheckConstraint, Column, DateTime, ForeignKey, Index,
                        Integer, String, Uuid)

from adjudication.core.database import Base
from adjudication.utils.datetime_utils import ensure_utc, utc_now


class DecisionLevel(str, Enum):
    """Three-tier classification outcome"""
    GREEN = "Green"
    YELLOW = "Yellow"
    RED = "Red"


class Decision(Base):
    """
    Stored decision row

    At most one live row per (matrix_id, collaborator_email, uccs_code) is
    expected, but the table deliberately carries no unique constraint on that
    triple: uniqueness is kept by the reconciler's lookup-then-write protocol.
    When a race leaves duplicates, lookups resolve to the earliest-created row
    so later submissions keep landing on the same one.
    """
    __tablename__ = "decisions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    matrix_id = Column(String(255), nullable=False)
    collaborator_email = Column(String(320), nullable=False)
    uccs_code = Column(Integer, ForeignKey("uccs_offenses.uccs_code"), nullable=False)

    decision_level = Column(String(10), nullable=False)
    look_back_period = Column(Integer, nullable=True)  # years; NULL means not specified

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "decision_level IN ('Green', 'Yellow', 'Red')",
            name="ck_decisions_level",
        ),
        Index('idx_decisions_key', 'matrix_id', 'collaborator_email', 'uccs_code'),
        Index('idx_decisions_matrix', 'matrix_id'),
    )

    def __repr__(self):
        return (
            f"<Decision(id={self.id}, matrix_id='{self.matrix_id}', "
            f"uccs_code={self.uccs_code}, decision_level='{self.decision_level}')>"
        )

    def to_record(self) -> "DecisionRecord":
        """Detach the row into a renderable value"""
        return DecisionRecord(
            id=self.id,
            matrix_id=self.matrix_id,
            collaborator_email=self.collaborator_email,
            uccs_code=self.uccs_code,
            decision_level=DecisionLevel(self.decision_level),
            look_back_period=self.look_back_period,
            updated_at=self.updated_at,
        )


class DecisionRecord(BaseModel):
    """Decision as seen by the gateway, the change feed and the live view"""
    model_config = ConfigDict(frozen=True)

    id: UUID
    matrix_id: str
    collaborator_email: str
    uccs_code: int
    decision_level: DecisionLevel
    look_back_period: Optional[int] = Field(default=None, ge=0)
    updated_at: datetime

    @field_validator("updated_at")
    @classmethod
    def normalize_updated_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def collaborator_name(self) -> str:
        """Local part of the collaborator email"""
        return self.collaborator_email.split("@")[0]

    @property
    def tier_label(self) -> str:
        return self.decision_level.value

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": str(self.id),
            "matrix_id": self.matrix_id,
            "collaborator_email": self.collaborator_email,
            "uccs_code": self.uccs_code,
            "decision_level": self.decision_level.value,
            "look_back_period": self.look_back_period,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class DecisionKey(BaseModel):
    """Identity of the subject a decision classifies"""
    model_config = ConfigDict(frozen=True)

    matrix_id: str
    collaborator_email: str
    uccs_code: Optional[int] = None  # None until an offense is selected


class DecisionPayload(BaseModel):
    """Mutable part of a decision"""
    model_config = ConfigDict(frozen=True)

    decision_level: DecisionLevel = DecisionLevel.GREEN
    look_back_period: Optional[int] = Field(default=None, ge=0)
