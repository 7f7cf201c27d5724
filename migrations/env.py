# migrations/env.py
from __future__ import annotations

import logging
import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine

# <project_root>/migrations/env.py -> make "import hmjaya" resolvable
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

logger = logging.getLogger("alembic.env")


# -----------------------------------------------------------------------------
# Two ways in:
#   DATABASE_URL set  -> standalone alembic run, models imported directly
#   otherwise         -> `flask db ...`, engine taken from Flask-Migrate
# -----------------------------------------------------------------------------
def _flask_migrate():
    from flask import current_app

    return current_app.extensions["migrate"]


def _resolve():
    """Return (url, metadata, engine_or_None, extra_configure_args)."""
    env_url = os.getenv("DATABASE_URL")
    if env_url:
        from hmjaya import models  # noqa: F401
        from hmjaya.extensions import db
        from hmjaya.settings import _normalize_db_url

        return _normalize_db_url(env_url), db.metadata, None, {}

    migrate = _flask_migrate()
    engine = migrate.db.engine
    url = engine.url.render_as_string(hide_password=False)
    return url, migrate.db.metadata, engine, dict(migrate.configure_args or {})


URL, METADATA, FLASK_ENGINE, EXTRA_ARGS = _resolve()
config.set_main_option("sqlalchemy.url", URL.replace("%", "%%"))


def process_revision_directives(ctx, revision, directives):
    """Drop autogenerate revisions that would be empty."""
    cmd_opts = getattr(config, "cmd_opts", None)
    if cmd_opts and getattr(cmd_opts, "autogenerate", False) and directives[0].upgrade_ops.is_empty():
        directives[:] = []
        logger.info("No schema changes for hmjaya models.")


def _configure_args(is_sqlite: bool) -> dict:
    args = dict(EXTRA_ARGS)
    args.setdefault("process_revision_directives", process_revision_directives)
    args.setdefault("compare_type", True)
    args["target_metadata"] = METADATA
    # SQLite cannot ALTER most things in place
    args["render_as_batch"] = is_sqlite
    return args


def run_migrations_offline():
    context.configure(url=URL, literal_binds=True, **_configure_args(URL.startswith("sqlite")))
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    engine = FLASK_ENGINE or create_engine(URL)
    logger.info("Migrating %s", engine.url.render_as_string(hide_password=True))

    with engine.connect() as connection:
        context.configure(connection=connection, **_configure_args(connection.dialect.name == "sqlite"))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
