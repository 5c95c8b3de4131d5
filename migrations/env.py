# =============================================================================
# ⚙️ Alembic Environment Configuration (Slashhour Core API)
# -----------------------------------------------------------------------------
# Uses the same URL resolution as the app (DATABASE_URL, MySQL parts or
# SQLite) and registers every model on Base.metadata.
# =============================================================================

import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

# project root on sys.path when alembic is run from the repository root
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from database import Base, build_database_url  # noqa: E402
import models  # noqa: E402,F401

# -------------------------------------------------------------------------
# 🔹 Alembic configuration
# -------------------------------------------------------------------------
config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name)

SQLALCHEMY_DATABASE_URL = build_database_url()
config.set_main_option("sqlalchemy.url", SQLALCHEMY_DATABASE_URL.replace("%", "%%"))

target_metadata = Base.metadata


# -------------------------------------------------------------------------
# 🔹 Offline mode
# -------------------------------------------------------------------------
def run_migrations_offline() -> None:
    """Renders SQL without a live connection (e.g. for review in CI)."""
    context.configure(
        url=SQLALCHEMY_DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=False,
    )

    with context.begin_transaction():
        context.run_migrations()


# -------------------------------------------------------------------------
# 🔹 Online mode
# -------------------------------------------------------------------------
def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section) or {}

    connectable = engine_from_config(
        section,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            compare_server_default=False,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
