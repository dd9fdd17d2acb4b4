"""Schema migration runner backed by Alembic.

Revisions live in ``settings.MIGRATIONS_DIR`` and form a single linear chain.
The ledger table (``settings.MIGRATIONS_TABLE``) records the applied head;
everything reachable from it is considered applied. Downgrades are not
supported.
"""

from typing import Any

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import Script, ScriptDirectory
from sqlalchemy.engine import Connection

from . import db
from .config import settings
from .errors import ServiceError
from .logger import logger


# ==================== Helper Functions ====================

def _build_config(connection: Connection | None = None) -> Config:
    """Alembic config pointing at the fixed migrations directory."""
    config = Config()
    config.set_main_option("script_location", settings.MIGRATIONS_DIR)
    if connection is not None:
        # Picked up by alembic/env.py instead of opening its own engine
        config.attributes["connection"] = connection
    return config


def _describe(script: Script) -> dict[str, Any]:
    """Convert an Alembic script into a JSON-friendly descriptor."""
    return {
        "revision": script.revision,
        "down_revision": script.down_revision,
        "name": script.doc,
        "path": script.path,
    }


def _pending_scripts(connection: Connection, config: Config) -> list[Script]:
    """Scripts not yet recorded in the ledger, in application order."""
    script_directory = ScriptDirectory.from_config(config)
    context = MigrationContext.configure(
        connection, opts={"version_table": settings.MIGRATIONS_TABLE}
    )

    applied: set[str] = set()
    for head in context.get_current_heads():
        for script in script_directory.iterate_revisions(head, "base"):
            applied.add(script.revision)

    # walk_revisions() goes from heads down to base
    ordered = reversed(list(script_directory.walk_revisions()))
    return [script for script in ordered if script.revision not in applied]


def _list_pending(connection: Connection) -> list[dict[str, Any]]:
    pending = _pending_scripts(connection, _build_config())
    connection.rollback()
    return [_describe(script) for script in pending]


def _apply_pending(connection: Connection) -> list[dict[str, Any]]:
    config = _build_config(connection)
    pending = _pending_scripts(connection, config)
    # Alembic only commits per revision when no transaction is open
    connection.commit()
    if not pending:
        return []

    for script in pending:
        logger.info(f"Applying migration {script.revision}: {script.doc}")
    command.upgrade(config, "heads")
    return [_describe(script) for script in pending]


# ==================== Migration Operations ====================


async def list_pending_migrations() -> list[dict[str, Any]]:
    """Return the migrations that would be applied, without applying them.

    Raises:
        ServiceError: the database or Alembic failed; the cause is chained
    """
    try:
        async with db.get_new_connection() as connection:
            pending = await connection.run_sync(_list_pending)
    except Exception as e:
        logger.error(f"Failed to list pending migrations: {str(e)}", exc_info=True)
        raise ServiceError(
            message="Failed to list pending migrations.",
            action="Check the database connection and the migrations directory.",
            cause=e,
        ) from e

    logger.debug(f"Pending migrations: {len(pending)}")
    return pending


async def run_pending_migrations() -> list[dict[str, Any]]:
    """Apply pending migrations in order and return the ones applied.

    Each revision commits to the ledger before the next starts, so a failure
    leaves earlier revisions of the same run applied.

    Raises:
        ServiceError: the database or a revision failed; the cause is chained
    """
    try:
        async with db.get_new_connection() as connection:
            applied = await connection.run_sync(_apply_pending)
    except Exception as e:
        logger.error(f"Failed to run pending migrations: {str(e)}", exc_info=True)
        raise ServiceError(
            message="Failed to run pending migrations.",
            action="Check the database connection and the failing migration.",
            cause=e,
        ) from e

    if applied:
        logger.info(f"Applied {len(applied)} migration(s)")
    else:
        logger.info("No pending migrations to apply")
    return applied
