# migrations/env.py
import os
import sys
from logging.config import fileConfig

from flask import current_app
from alembic import context

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Project root must be importable so 'chatdesk' resolves when alembic runs from here
project_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_dir not in sys.path:
    sys.path.insert(0, project_dir)

try:
    from chatdesk.extensions import db
    from chatdesk.database import models  # noqa: F401 registers every table on the metadata
except ImportError as e:
    print(f"Error importing chatdesk components in migrations/env.py: {e}")
    sys.exit(1)

target_metadata = db.metadata


def get_engine_url():
    """Retrieve database URL from Flask config."""
    try:
        return current_app.config['SQLALCHEMY_DATABASE_URI']
    except RuntimeError:
        # Outside an app context; fall back to alembic.ini
        return config.get_main_option("sqlalchemy.url")


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = get_engine_url()
    if not url:
        raise ValueError("Database URL not found. Set DATABASE_URI in the environment.")

    context.configure(
        url=url.replace('%', '%%'),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against the app's engine."""
    connectable = db.engine

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            # SQLite cannot ALTER most constraints in place
            render_as_batch=connection.dialect.name == 'sqlite',
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
