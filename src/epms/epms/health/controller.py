from __future__ import annotations

import logging
import time

from flask import Flask, jsonify

from ..common.datetime_utils import now_local
from ..core.constants import APP_VERSION
from ..container import Container

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container, *, environment: str) -> None:
    @app.route("/api/health", methods=["GET"], endpoint="health")
    def health():
        started = time.perf_counter()
        database_ok = container.conn.ping()
        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        if not database_ok:
            logger.warning("Health check failed: database unreachable")

        body = {
            "status": "healthy" if database_ok else "unhealthy",
            "timestamp": now_local().isoformat(),
            "version": APP_VERSION,
            "environment": environment,
            "checks": {
                "database": {
                    "status": "up" if database_ok else "down",
                    "responseTimeMs": elapsed_ms,
                }
            },
        }
        return jsonify(body), 200 if database_ok else 503
