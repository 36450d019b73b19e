import logging
import os
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from flask import current_app

config = context.config

# alembic.ini lives next to this file; fall back to basicConfig when it is absent
_ini = config.config_file_name
if _ini and Path(_ini).exists():
    fileConfig(_ini)
else:
    logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("alembic.env")

# Registers every table (orgs, memberships, audit log, CMS tables) on db.metadata
import orgcms.models  # noqa: E402,F401

_migrate = current_app.extensions["migrate"]
_db = _migrate.db
engine = _db.engine

config.set_main_option(
    "sqlalchemy.url",
    engine.url.render_as_string(hide_password=False).replace("%", "%%"),
)

# Tables autogenerate must never propose dropping (audit_logs is append-only history)
_PROTECTED_TABLES = {"audit_logs", "system_logs"}
# Comma separated index names that autogenerate may drop
_DROP_INDEX_ALLOWLIST = {
    name.strip()
    for name in os.getenv("ALEMBIC_DROP_INDEX_ALLOWLIST", "").split(",")
    if name.strip()
}


def _include_object(obj, name, type_, reflected, compare_to):
    dropping = reflected and compare_to is None
    if not dropping:
        return True
    if type_ == "table" and name in _PROTECTED_TABLES:
        logger.warning("Refusing to autogenerate DROP TABLE %s", name)
        return False
    if type_ == "index":
        return name in _DROP_INDEX_ALLOWLIST
    return True


def _skip_empty_revision(context_, revision, directives):
    if getattr(config.cmd_opts, "autogenerate", False) and directives[0].upgrade_ops.is_empty():
        directives[:] = []
        logger.info("No changes in schema detected.")


def _configure_args(**extra):
    # SQLite cannot ALTER constraints in place (role/status CHECKs); batch mode rebuilds the table
    return {
        "target_metadata": _db.metadata,
        "compare_type": True,
        "compare_server_default": True,
        "include_object": _include_object,
        "render_as_batch": engine.dialect.name == "sqlite",
        **extra,
    }


def run_migrations_offline():
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        **_configure_args(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    args = dict(_migrate.configure_args)
    args.setdefault("process_revision_directives", _skip_empty_revision)
    with engine.connect() as connection:
        context.configure(connection=connection, **_configure_args(**args))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
