"""CLI for local setup and operator actions against the decision store."""
import argparse
import asyncio
import sys
from pathlib import Path

from adjudication.core.config import get_settings
from adjudication.core.database import create_tables
from adjudication.core.errors import DecisionError
from adjudication.core.logging_config import LoggingConfig
from adjudication.models.decision import DecisionLevel
from adjudication.services.decision_form import DecisionForm
from adjudication.services.decision_reconciler import DecisionReconciler
from adjudication.services.decision_store import SqlDecisionStore
from adjudication.services.offense_catalog import OffenseCatalog, read_offense_csv


def cmd_init_db(args):
    """Create missing tables."""
    create_tables()
    print("Tables created")
    return 0


def cmd_seed_offenses(args):
    """Load the offense catalog from a CSV file."""
    path = Path(args.csv)
    if not path.exists():
        print(f"File not found: {path}", file=sys.stderr)
        return 1
    count = OffenseCatalog().seed_offenses(read_offense_csv(path))
    print(f"Seeded {count} offenses")
    return 0


def cmd_list_offenses(args):
    """Print the offense catalog."""
    for offense in OffenseCatalog().list_offenses_sync():
        print(offense.label)
    return 0


async def _list_decisions(matrix_id):
    return await SqlDecisionStore().list_decisions(matrix_id)


def cmd_list_decisions(args):
    """Print the decisions of the session matrix."""
    session = get_settings().session_config
    records = asyncio.run(_list_decisions(session.matrix_id))
    if not records:
        print("No decisions made for this matrix yet.")
        return 0
    for record in records:
        print(f"Code: {record.uccs_code} ({record.collaborator_name})  {record.tier_label}")
    return 0


async def _submit(args):
    session = get_settings().session_config
    form = DecisionForm(OffenseCatalog(), DecisionReconciler(SqlDecisionStore(), session))
    form.select_offense(args.offense)
    form.decision_level = DecisionLevel(args.level)
    form.look_back_years = args.look_back
    return await form.submit()


def cmd_submit(args):
    """Submit a decision as the session collaborator."""
    message = asyncio.run(_submit(args))
    print(message)
    return 0 if message.startswith("Decision") else 1


def build_parser():
    p = argparse.ArgumentParser(prog="adjudication")
    sub = p.add_subparsers(dest="cmd")

    sub.add_parser("init-db", help="Create missing tables").set_defaults(func=cmd_init_db)

    s = sub.add_parser("seed-offenses", help="Load offenses from a CSV (uccs_code,uccs_desc)")
    s.add_argument("csv")
    s.set_defaults(func=cmd_seed_offenses)

    sub.add_parser("list-offenses", help="Print the offense catalog").set_defaults(func=cmd_list_offenses)
    sub.add_parser("list-decisions", help="Print decisions in the session matrix").set_defaults(func=cmd_list_decisions)

    s = sub.add_parser("submit", help="Classify an offense")
    s.add_argument("--offense", type=int, default=None, help="UCCS offense code")
    s.add_argument("--level", choices=[level.value for level in DecisionLevel], default=DecisionLevel.GREEN.value)
    s.add_argument("--look-back", type=int, default=3, help="Look-back period in years")
    s.set_defaults(func=cmd_submit)

    return p


def main(argv=None):
    LoggingConfig.configure()
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 1
    try:
        return args.func(args)
    except DecisionError as e:
        print(e.user_message, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
