"""Compare the lottery tables in the configured database with the models.

Exit codes: 0 when in sync, 1 when differences exist, 2 when the check failed.
Tables outside the lottery schema are ignored.
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional

from alembic.autogenerate import api as ag_api
from alembic.runtime.migration import MigrationContext

from prizepool.db.engine import make_engine
from prizepool.db.utils import VERSION_TABLE, include_lottery_object
from prizepool.models import Base


def _describe(ops, depth: int = 0) -> list[str]:
    lines = []
    for op in ops:
        lines.append(f"{'  ' * depth}- {op}")
        lines.extend(_describe(getattr(op, "ops", None) or [], depth + 1))
    return lines


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--db-url", help="Database URL (defaults to DB_URL)")
    args = parser.parse_args(argv)

    engine = make_engine(database_url=args.db_url)
    target = engine.url.render_as_string(hide_password=True)
    try:
        with engine.connect() as connection:
            context = MigrationContext.configure(
                connection=connection,
                opts={
                    "include_object": include_lottery_object,
                    "version_table": VERSION_TABLE,
                    "compare_type": True,
                    "compare_server_default": True,
                    "render_as_batch": connection.dialect.name == "sqlite",
                },
            )
            upgrade_ops = ag_api.produce_migrations(context, Base.metadata).upgrade_ops
    except Exception as exc:
        print(f"Lottery schema check: ERROR for {target}: {exc}", file=sys.stderr)
        return 2
    finally:
        engine.dispose()

    if upgrade_ops is None:
        print(f"Lottery schema check: ERROR for {target}: no upgrade ops produced.")
        return 2
    if upgrade_ops.is_empty():
        print(f"Lottery schema check: OK for {target}.")
        return 0
    print(f"Lottery schema check: DRIFT for {target}:")
    print("\n".join(_describe(upgrade_ops.ops or [])))
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
