from flask import Blueprint, jsonify

from repositories import memory_repo

health_bp = Blueprint("health_bp", __name__, url_prefix="/health")

@health_bp.get("/")
def health() -> jsonify:
    """
    Health probe.

    Returns:
        {"status": "ok", "configs": <number of stored configs>}
    """
    return jsonify({"status": "ok", "configs": len(memory_repo.list_configs())})
