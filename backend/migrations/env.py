from alembic import context
from sqlalchemy import engine_from_config, pool
from logging.config import fileConfig
import os, sys

# 讓 alembic 找到 models
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from models import Base  # noqa
from utils.db import _default_sqlite_url, _normalize_url  # noqa

config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name, disable_existing_loggers=False)
target_metadata = Base.metadata


def _url() -> str:
    return _normalize_url(os.getenv("DATABASE_URL") or _default_sqlite_url())


def run_migrations_offline():
    context.configure(url=_url(), target_metadata=target_metadata, literal_binds=True, render_as_batch=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(
        {"sqlalchemy.url": _url()},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata,
                          render_as_batch=connection.dialect.name == "sqlite")
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode(): run_migrations_offline()
else: run_migrations_online()
