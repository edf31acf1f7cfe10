from __future__ import annotations

import importlib
import logging
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .auth.middleware import apply_security_headers
from .auth.settings import AuthSettings
from .common.http import ApiJSONProvider, fail
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_users, list_tables
from .logging_config import setup_logging

from .container import build_container
from .assets.controller import register as register_assets
from .audit.controller import register as register_audit
from .auth.controller import register as register_auth
from .budgets.controller import register as register_budgets
from .change_requests.controller import register as register_change_requests
from .health.controller import register as register_health
from .projects.controller import register as register_projects
from .risks.controller import register as register_risks
from .sprints.controller import register as register_sprints
from .tasks.controller import register as register_tasks
from .time_entries.controller import register as register_time_entries
from .users.controller import register as register_users

logger = logging.getLogger(__name__)

DATABASE_DIR = Path(__file__).resolve().parents[3] / "database"


def create_app() -> Flask:
    load_dotenv(override=False)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    setup_logging(getattr(settings, "LOG_LEVEL", "INFO"), log_file=getattr(settings, "LOG_FILE", None))

    app = Flask(__name__)
    app.json = ApiJSONProvider(app)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    environment = getattr(settings, "ENVIRONMENT", "development")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    logger.info(
        "Starting EPMS (settings=%s, db=%s@%s:%s/%s)",
        settings_module,
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
    )

    if bool(getattr(settings, "AUTO_INIT_DB", False)):
        apply_schema(db_config, schema_path=DATABASE_DIR / "schema.sql")
        logger.info("Schema ready (tables=%s)", len(list_tables(db_config)))
    if bool(getattr(settings, "AUTO_SEED_DB", False)):
        apply_seed_sql(db_config, seed_path=DATABASE_DIR / "seed.sql")
        ensure_demo_users(db_config, bcrypt_rounds=int(getattr(settings, "BCRYPT_ROUNDS", 12)))

    auth_settings = AuthSettings.from_settings(settings)
    container = build_container(db_config=db_config, auth_settings=auth_settings)
    app.extensions["epms.container"] = container

    production = environment == "production"

    @app.after_request
    def security_headers(response):
        return apply_security_headers(response, production=production)

    @app.errorhandler(404)
    def not_found(_error):
        return fail("Not found", 404)

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return fail("Method not allowed", 405)

    register_auth(app, container)
    register_users(app, container)
    register_projects(app, container)
    register_tasks(app, container)
    register_sprints(app, container)
    register_risks(app, container)
    register_change_requests(app, container)
    register_time_entries(app, container)
    register_budgets(app, container)
    register_assets(app, container)
    register_audit(app, container)
    register_health(app, container, environment=environment)

    return app
