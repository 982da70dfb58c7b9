"""
Form controller: captures operator input and submits it through the reconciler
"""
from typing import List, Optional

from adjudication.core.errors import DecisionError
from adjudication.core.logging_config import LoggingConfig
from adjudication.models.decision import DecisionLevel
from adjudication.models.offense import Offense
from adjudication.services.decision_reconciler import DecisionReconciler
from adjudication.services.offense_catalog import OffenseCatalog

logger = LoggingConfig.get_logger(__name__)

DEFAULT_LOOK_BACK_YEARS = 3


class DecisionForm:
    """Transient form state for one operator session"""

    def __init__(self, catalog: OffenseCatalog, reconciler: DecisionReconciler):
        self.catalog = catalog
        self.reconciler = reconciler
        self.offenses: List[Offense] = []
        self.selected_offense: Optional[int] = None
        self.decision_level: DecisionLevel = DecisionLevel.GREEN
        self.look_back_years: Optional[int] = DEFAULT_LOOK_BACK_YEARS
        self.is_loading = False
        self.message = ""

    async def load(self) -> List[Offense]:
        """Fetch the offense catalog; a failure leaves the list empty"""
        try:
            self.offenses = await self.catalog.list_offenses()
        except DecisionError as e:
            logger.error(f"Error fetching offenses: {e.message}")
            self.offenses = []
        return self.offenses

    def select_offense(self, uccs_code: Optional[int]):
        self.selected_offense = uccs_code

    @property
    def submit_label(self) -> str:
        return "Saving..." if self.is_loading else "Submit Decision"

    async def submit(self) -> str:
        """
        Submit the current selection

        Returns:
            The status message now shown to the operator
        """
        self.message = ""
        self.is_loading = True
        try:
            outcome = await self.reconciler.submit_for(
                self.selected_offense,
                self.decision_level,
                self.look_back_years,
            )
            self.message = outcome.message
        except DecisionError as e:
            self.message = e.user_message
        finally:
            self.is_loading = False
        return self.message
