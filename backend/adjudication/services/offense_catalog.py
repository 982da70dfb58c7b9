"""
Offense catalog reader
"""
import asyncio
import csv
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from adjudication.core.errors import BackendError
from adjudication.core.logging_config import LoggingConfig
from adjudication.models.offense import Offense, UccsOffense

logger = LoggingConfig.get_logger(__name__)


class OffenseCatalog:
    """Read access to the UCCS offense catalog"""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        if session_factory is None:
            from adjudication.core.database import get_session_local
            session_factory = get_session_local()
        self.session_factory = session_factory

    def list_offenses_sync(self) -> List[Offense]:
        """Every offense, ordered by code ascending"""
        db: Session = self.session_factory()
        try:
            rows = db.query(UccsOffense).order_by(UccsOffense.uccs_code.asc()).all()
            return [row.to_offense() for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Error fetching offenses: {e}", exc_info=True)
            raise BackendError(str(getattr(e, "orig", None) or e), operation="list_offenses") from e
        finally:
            db.close()

    async def list_offenses(self) -> List[Offense]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.list_offenses_sync)

    def seed_offenses(self, rows: Iterable[Tuple[int, str]]) -> int:
        """
        Insert or refresh catalog rows

        Used only for local setups; the workflow itself never writes the catalog.

        Returns:
            Number of rows written
        """
        db: Session = self.session_factory()
        count = 0
        try:
            for code, description in rows:
                existing = db.get(UccsOffense, code)
                if existing:
                    existing.uccs_desc = description
                else:
                    db.add(UccsOffense(uccs_code=code, uccs_desc=description))
                count += 1
            db.commit()
            logger.info(f"Seeded {count} offenses")
            return count
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error seeding offenses: {e}", exc_info=True)
            raise BackendError(str(getattr(e, "orig", None) or e), operation="seed_offenses") from e
        finally:
            db.close()


def read_offense_csv(path: Path) -> List[Tuple[int, str]]:
    """
    Read (uccs_code, uccs_desc) pairs from a CSV file

    A header row is accepted when it names uccs_code and uccs_desc columns;
    otherwise the first two columns are used.
    """
    rows: List[Tuple[int, str]] = []
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        for line_no, line in enumerate(reader, start=1):
            if not line or not line[0].strip():
                continue
            code = line[0].strip()
            if line_no == 1 and not code.isdigit():
                continue  # header
            description = line[1].strip() if len(line) > 1 else ""
            rows.append((int(code), description))
    return rows
