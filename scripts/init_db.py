"""Apply the draw engine migrations and optionally verify the models match.

Usage::

    python scripts/init_db.py                 # upgrade to head
    python scripts/init_db.py --revision 0001
    python scripts/init_db.py --check-drift   # exit 1 when models and DB differ
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from alembic import command
from alembic.autogenerate import api as ag_api
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from sqlalchemy import inspect

from golfdraw.db.engine import make_engine
from golfdraw.models import Base

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def upgrade_db(target_revision: str = "head") -> None:
    """Apply Alembic migrations up to the requested revision."""
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    command.upgrade(alembic_cfg, target_revision)


def _describe_ops(ops, depth: int = 0) -> list[str]:
    lines = []
    for op in ops:
        lines.append(f"{'  ' * depth}- {op}")
        lines.extend(_describe_ops(getattr(op, "ops", None) or [], depth + 1))
    return lines


def check_drift(engine) -> int:
    """Compare the live schema against the ORM models.

    Returns
    -------
    int
        ``0`` when they agree, ``1`` when differences were found.
    """
    with engine.connect() as connection:
        context = MigrationContext.configure(
            connection=connection,
            opts={
                "compare_type": True,
                "compare_server_default": True,
                "render_as_batch": connection.dialect.name == "sqlite",
            },
        )
        upgrade_ops = ag_api.produce_migrations(context, Base.metadata).upgrade_ops
    if upgrade_ops is None or upgrade_ops.is_empty():
        logger.info("Schema drift check passed.")
        return 0
    logger.error("Schema drift detected:\n" + "\n".join(_describe_ops(upgrade_ops.ops)))
    return 1


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--revision", default="head", help="target Alembic revision")
    parser.add_argument("--check-drift", action="store_true", help="compare models to the database afterwards")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    upgrade_db(args.revision)
    engine = make_engine()
    try:
        tables = sorted(inspect(engine).get_table_names())
        logger.info(f"Database at {engine.url.render_as_string(hide_password=True)} has tables: {', '.join(tables)}")
        return check_drift(engine) if args.check_drift else 0
    finally:
        engine.dispose()


if __name__ == "__main__":
    raise SystemExit(main())
