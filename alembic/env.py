from __future__ import annotations

import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))
load_dotenv(ROOT_DIR / ".env")

from prizepool.db.engine import DEFAULT_SQLITE_URL, make_engine  # noqa: E402
from prizepool.db.utils import (  # noqa: E402
    VERSION_TABLE,
    include_lottery_object,
    resolve_sqlite_url,
)
from prizepool.models import Base  # noqa: E402 - import registers every lottery table

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# -x db_url=... overrides DB_URL, which overrides the packaged default.
DATABASE_URL = resolve_sqlite_url(
    context.get_x_argument(as_dictionary=True).get("db_url")
    or os.getenv("DB_URL")
    or DEFAULT_SQLITE_URL,
    ROOT_DIR,
)
# ConfigParser interpolation treats '%' specially.
config.set_main_option("sqlalchemy.url", DATABASE_URL.replace("%", "%%"))

COMMON_OPTS = dict(
    target_metadata=target_metadata,
    include_object=include_lottery_object,
    version_table=VERSION_TABLE,
    compare_type=True,
    compare_server_default=True,
)


def run_migrations_offline() -> None:
    """Emit the lottery schema as SQL without connecting."""

    context.configure(
        url=DATABASE_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **COMMON_OPTS,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply lottery migrations against a live connection."""

    engine = make_engine(database_url=DATABASE_URL)
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            # SQLite cannot ALTER constraints in place.
            render_as_batch=connection.dialect.name == "sqlite",
            **COMMON_OPTS,
        )
        with context.begin_transaction():
            context.run_migrations()
    engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
