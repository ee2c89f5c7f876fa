from __future__ import annotations

import logging
import os
import sqlite3

from flask import Flask

from sqlalchemy import event
from sqlalchemy.engine import Engine

from .extensions import db, migrate


@event.listens_for(Engine, "connect")
def _set_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    if isinstance(dbapi_connection, sqlite3.Connection):
        cur = dbapi_connection.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.execute("PRAGMA journal_mode=WAL")
        cur.execute("PRAGMA synchronous=NORMAL")
        cur.execute("PRAGMA busy_timeout=30000")
        cur.close()


def _configure_logging(app: Flask) -> None:
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    logger = logging.getLogger("petcare")
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    if not logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(handler)


def create_app(config_object: str = "config.Config", **overrides) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.update(overrides)

    os.makedirs(app.instance_path, exist_ok=True)

    uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if uri.startswith("sqlite:"):
        opts = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS", {}))
        ca = dict(opts.get("connect_args", {}))
        ca.setdefault("check_same_thread", False)
        ca.setdefault("timeout", 30)
        opts["connect_args"] = ca
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = opts

    _configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)

    from .models.user import User  # noqa: F401
    from .models.pet import Pet  # noqa: F401
    from .models.event import PetEvent  # noqa: F401

    from .cli import (
        init_db_cmd,
        reset_db_cmd,
        purge_data_cmd,
        seed_demo_cmd,
        due_reminders_cmd,
    )

    app.cli.add_command(init_db_cmd)
    app.cli.add_command(reset_db_cmd)
    app.cli.add_command(purge_data_cmd)
    app.cli.add_command(seed_demo_cmd)
    app.cli.add_command(due_reminders_cmd)

    @app.teardown_appcontext
    def _teardown(_exc):
        if _exc is not None:
            db.session.rollback()

    return app
