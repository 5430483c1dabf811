from flask import Blueprint
from sqlalchemy.exc import SQLAlchemyError

from models import storage
from services.errors import ServiceUnavailableError

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    """
    Health check (also pings the database)
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
      503:
        description: Database unreachable
    """
    try:
        storage.ping()
    except SQLAlchemyError as exc:
        raise ServiceUnavailableError("database unavailable") from exc
    return {"status": "ok", "version": "1.0.0"}, 200
