from flask import Blueprint
from sqlalchemy import text

from models import storage
from services.errors import StoreUnavailable

bp = Blueprint("health", __name__)

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
            database:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
      503:
        description: Database unreachable
    """
    try:
        with storage.unit_of_work(what="health check") as session:
            session.execute(text("SELECT 1"))
    except StoreUnavailable:
        return {"status": "degraded", "database": "unavailable", "version": "1.0.0"}, 503
    return {"status": "ok", "database": "ok", "version": "1.0.0"}, 200
