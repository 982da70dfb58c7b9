"""
UCCS offense catalog model
"""
from pydantic import BaseModel, ConfigDict
from sqlalchemy import Column, Integer, Text

from adjudication.core.database import Base


class UccsOffense(Base):
    """
    Catalog entry for a classifiable offense

    Rows are owned by the external catalog; the decision workflow only reads them.
    """
    __tablename__ = "uccs_offenses"

    uccs_code = Column(Integer, primary_key=True, autoincrement=False)
    uccs_desc = Column(Text, nullable=False, default="")

    def __repr__(self):
        return f"<UccsOffense(uccs_code={self.uccs_code}, uccs_desc='{self.uccs_desc}')>"

    def to_offense(self) -> "Offense":
        return Offense(uccs_code=self.uccs_code, uccs_desc=self.uccs_desc or "")


class Offense(BaseModel):
    """Detached catalog entry"""
    model_config = ConfigDict(frozen=True, from_attributes=True)

    uccs_code: int
    uccs_desc: str

    @property
    def label(self) -> str:
        """Option label as shown in the offense picker"""
        return f"{self.uccs_code} - {self.uccs_desc}"
