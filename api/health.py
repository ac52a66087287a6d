import logging
import time

from flask import Blueprint, current_app

from models.base_model import utcnow
from utils.decorators import components

logger = logging.getLogger(__name__)

bp = Blueprint("health", __name__)

_started = time.monotonic()


def _base():
    return {
        "service": "auth-service",
        "version": current_app.config.get("SERVICE_VERSION", "1.0.0"),
        "timestamp": utcnow().isoformat() + "Z",
        "uptime": round(time.monotonic() - _started, 3),
    }


def _probe(name, fn):
    try:
        fn()
        return {"status": "healthy"}
    except Exception:
        logger.warning("%s health probe failed", name, exc_info=True)
        return {"status": "unhealthy", "error": f"{name} connection failed"}


@bp.get("/health")
def health():
    """
    Health check
    ---
    tags:
      - Health
    responses:
      200:
        description: API is up
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
    """
    return {"status": "ok", **_base()}, 200


@bp.get("/health/detailed")
def health_detailed():
    """
    Detailed health check (store and transport probes)
    ---
    tags:
      - Health
    responses:
      200: { description: All dependencies healthy }
      503: { description: At least one dependency unhealthy }
    """
    parts = components()
    checks = {
        "database": _probe("database", parts.storage.ping),
        "transport": _probe("transport", parts.transport.ping),
    }
    healthy = all(c["status"] == "healthy" for c in checks.values())
    body = {"status": "healthy" if healthy else "unhealthy", **_base(), "checks": checks}
    return body, 200 if healthy else 503


@bp.get("/health/ready")
def ready():
    """
    Readiness probe
    ---
    tags:
      - Health
    responses:
      200: { description: Ready }
      503: { description: Dependencies not available }
    """
    parts = components()
    try:
        parts.storage.ping()
        parts.transport.ping()
    except Exception:
        logger.warning("readiness check failed", exc_info=True)
        return {"status": "not ready", "error": "Service dependencies not available"}, 503
    return {"status": "ready", "timestamp": utcnow().isoformat() + "Z"}, 200


@bp.get("/health/live")
def live():
    """
    Liveness probe
    ---
    tags:
      - Health
    responses:
      200: { description: Alive }
    """
    return {"status": "alive", "timestamp": utcnow().isoformat() + "Z"}, 200
