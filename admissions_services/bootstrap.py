"""
Process start-up for hosts embedding the ledger.

    engine = bootstrap(get_active_settings("/etc/admissions/ledger.yaml"))
    with session_scope() as session:
        ledger = AdmissionsLedger(session, settings=settings)

Logging is configured before the engine so that the level from the settings
wins over the engine's own default ``configure_logging()`` call.
"""

from sqlalchemy.engine import Engine

from admissions_config import AdmissionsSettings, get_active_settings
from admissions_kernel.db.engine import create_tables, init_engine_from_url
from admissions_kernel.logging_config import configure_logging, get_logger

logger = get_logger("services.bootstrap")


def bootstrap(settings: AdmissionsSettings | None = None, create_schema: bool = False) -> Engine:
    """Configure logging, initialize the engine and optionally create tables."""
    settings = settings or get_active_settings()
    configure_logging(level=settings.log_level)
    engine = init_engine_from_url(
        settings.database_url,
        echo=settings.echo_sql,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
    )
    if create_schema:
        create_tables()
    logger.info(
        "ledger_bootstrapped",
        extra={"dialect": engine.dialect.name, "create_schema": create_schema},
    )
    return engine
