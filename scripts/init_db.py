"""Create the configured EPMS database and apply ``database/schema.sql``.

Exits non-zero when any table the API depends on is still missing afterwards.
"""

from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.epms.epms.database.bootstrap import apply_schema, list_tables, missing_tables
from src.epms.epms.logging_config import setup_logging

logger = logging.getLogger("epms.init_db")


def main() -> int:
    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    setup_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    db_config = dict(settings.DB_CONFIG)
    target = f"{db_config.get('user')}@{db_config.get('host')}:{db_config.get('port', 3306)}/{db_config.get('database')}"

    logger.info("Applying schema with %s to %s", settings_module, target)
    apply_schema(db_config, schema_path=REPO_ROOT / "database" / "schema.sql")

    tables = list_tables(db_config)
    missing = missing_tables(tables)
    if missing:
        logger.error("Schema incomplete on %s; missing tables: %s", target, ", ".join(missing))
        return 1
    logger.info("Schema ready on %s (%d tables)", target, len(tables))
    return 0


if __name__ == "__main__":
    sys.exit(main())
