"""
SQLAlchemy models
"""
from adjudication.core.database import Base  # noqa: F401
from adjudication.models.decision import (Decision, DecisionKey,  # noqa: F401
                                          DecisionLevel, DecisionPayload,
                                          DecisionRecord)
from adjudication.models.offense import Offense, UccsOffense  # noqa: F401
