import sys
from pathlib import Path
from logging.config import fileConfig

from sqlalchemy import create_engine, pool
from alembic import context

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from backoffice.core.config import settings
from backoffice.db.base import Base
# registers every table on Base.metadata
from backoffice.models import audit_log, ledger_entry, password_reset, pending_user, user  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _configure(**kw):
    # sqlite needs batch mode for ALTER TABLE
    batch = settings.database_url.startswith("sqlite")
    context.configure(target_metadata=target_metadata, compare_type=True, render_as_batch=batch, **kw)


def run_migrations_offline():
    _configure(url=settings.database_url, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    engine = create_engine(settings.database_url, poolclass=pool.NullPool, future=True)
    with engine.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
