"""
Alembic Environment Configuration
──────────────────────────────────
- Reads DATABASE_URL from fleet_maintenance/config.py (which reads from .env)
- Imports ALL models via fleet_maintenance/models/__init__.py so Alembic sees every table
- Runs in "offline" mode (emits SQL) or "online" mode (applies to the DB)
- SQLite databases are migrated in batch mode (ALTER TABLE is limited there)
"""

from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from alembic import context

# ─── Import settings & Base ────────────────────────────────────────────────────
from fleet_maintenance.config import settings
from fleet_maintenance.database import Base

# ─── Import ALL models so Alembic detects them ────────────────────────────────
import fleet_maintenance.models  # noqa: F401 (registers models on Base.metadata)

# ─── Alembic config object ────────────────────────────────────────────────────
config = context.config

# Override sqlalchemy.url with value from our settings (reads from .env)
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

# Setup Python logging from alembic.ini
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Metadata for autogenerate support
target_metadata = Base.metadata


# ─── Offline Mode ─────────────────────────────────────────────────────────────
def run_migrations_offline() -> None:
    """Emit the migration SQL without connecting to the database."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        render_as_batch=settings.is_sqlite,
    )

    with context.begin_transaction():
        context.run_migrations()


# ─── Online Mode ──────────────────────────────────────────────────────────────
def run_migrations_online() -> None:
    """Connect to the database and apply migrations directly."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,   # No pooling during migrations
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=settings.is_sqlite,
        )

        with context.begin_transaction():
            context.run_migrations()


# ─── Entry Point ──────────────────────────────────────────────────────────────
if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
