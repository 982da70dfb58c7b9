"""
FastAPI dependencies for the decision workflow
"""
from fastapi import Depends

from adjudication.core.config import SessionConfig, get_settings
from adjudication.services.decision_reconciler import DecisionReconciler
from adjudication.services.decision_store import (DecisionStoreGateway,
                                                  get_decision_store)
from adjudication.services.offense_catalog import OffenseCatalog


def get_session_config() -> SessionConfig:
    return get_settings().session_config


def get_store() -> DecisionStoreGateway:
    return get_decision_store()


def get_offense_catalog() -> OffenseCatalog:
    return OffenseCatalog()


def get_reconciler(
    store: DecisionStoreGateway = Depends(get_store),
    session: SessionConfig = Depends(get_session_config),
) -> DecisionReconciler:
    return DecisionReconciler(store, session)
