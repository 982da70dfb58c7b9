"""
Tests for OffenseCatalog
"""
import pytest

from adjudication.core.errors import BackendError
from adjudication.models.offense import UccsOffense
from adjudication.services.offense_catalog import read_offense_csv


@pytest.mark.asyncio
async def test_list_offenses_ordered_by_code(catalog):
    """Test offenses come back in ascending code order"""
    offenses = await catalog.list_offenses()

    assert [(o.uccs_code, o.uccs_desc) for o in offenses] == [
        (101, "Simple assault"),
        (150, "Petty theft"),
        (205, "Burglary"),
    ]


def test_seed_refreshes_existing_rows(catalog):
    """Test seeding an existing code updates its description"""
    written = catalog.seed_offenses([(150, "Theft under $500"), (400, "Arson")])

    assert written == 2
    offenses = {o.uccs_code: o.uccs_desc for o in catalog.list_offenses_sync()}
    assert offenses[150] == "Theft under $500"
    assert offenses[400] == "Arson"
    assert len(offenses) == 4


def test_list_failure_raises_backend_error(catalog, engine):
    """Test SQL failures are reported as BackendError"""
    UccsOffense.__table__.drop(engine)

    with pytest.raises(BackendError) as exc_info:
        catalog.list_offenses_sync()

    assert exc_info.value.operation == "list_offenses"


def test_read_offense_csv_with_header(tmp_path):
    """Test CSV parsing skips the header and blank lines"""
    path = tmp_path / "offenses.csv"
    path.write_text("uccs_code,uccs_desc\n101,Simple assault\n\n205, Burglary \n", encoding="utf-8")

    assert read_offense_csv(path) == [(101, "Simple assault"), (205, "Burglary")]


def test_read_offense_csv_without_header(tmp_path):
    """Test CSV parsing accepts a file with no header"""
    path = tmp_path / "offenses.csv"
    path.write_text("310,Robbery\n", encoding="utf-8")

    assert read_offense_csv(path) == [(310, "Robbery")]
