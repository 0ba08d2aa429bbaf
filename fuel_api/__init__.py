"""
fuel_api -- thin Flask HTTP layer over the fuel kernel.

Every write goes through the LedgerCoordinator stored on the application,
so each request is one transaction.  Authentication is external; the
caller's identity arrives in the ``X-Actor-Id`` header.
"""

from __future__ import annotations

import os

from flask import Flask
from sqlalchemy.orm import Session, sessionmaker

from fuel_config import LedgerSettings, get_active_settings
from fuel_config.bridges import build_ledger_policy
from fuel_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from fuel_kernel.db.immutability import register_immutability_listeners
from fuel_kernel.domain.clock import Clock, SystemClock
from fuel_kernel.logging_config import configure_logging, get_logger
from fuel_kernel.services.ledger_coordinator import KeyedLockRegistry, LedgerCoordinator

logger = get_logger("api")

DEFAULT_DATABASE_URL = "sqlite:///fuel_ledger.db"
EXTENSION_KEY = "fuel_ledger"


def create_app(
    settings: LedgerSettings | None = None,
    database_url: str | None = None,
    session_factory: sessionmaker[Session] | None = None,
    clock: Clock | None = None,
) -> Flask:
    """
    Application factory.

    Args:
        settings: Ledger settings; loaded from the default file if omitted.
        database_url: Overrides the DATABASE_URL environment variable.
        session_factory: Use an already initialised session factory
            instead of creating an engine (tests).
        clock: Clock for timestamps; the system clock if omitted.
    """
    configure_logging()
    settings = settings or get_active_settings()

    if session_factory is None:
        url = database_url or os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)
        init_engine_from_url(url)
        create_tables()
        session_factory = get_session_factory()
    register_immutability_listeners()

    app = Flask(__name__)
    app.config["FUEL_SETTINGS"] = settings
    app.extensions[EXTENSION_KEY] = LedgerCoordinator(
        session_factory,
        clock=clock or SystemClock(),
        policy=build_ledger_policy(settings),
        locks=KeyedLockRegistry(),
    )

    from fuel_api.errors import register_error_handlers
    from fuel_api.register_blueprints import register_blueprints

    register_error_handlers(app)
    register_blueprints(app)

    logger.info(
        "api_app_created",
        extra={"settings_name": settings.name, "settings_version": settings.version},
    )
    return app
