"""Connection management API.

Routes (JSON in, JSON out):
    GET  /api/connections                  list (secrets never returned)
    POST /api/connections                  create -> 201
    GET  /api/connections/<id>             fetch one
    PUT  /api/connections/<id>             update (absent secret keeps stored value)
    POST /api/connections/<id>/test        test a stored connection
    POST /api/connections/test-config      test an unsaved configuration

A failed connection test is still a 200 carrying ``success: false``; only
invalid input (400) and unknown ids (404) are HTTP errors.
"""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from oneid.core.connections import ConnectionService, ValidationError

bp = Blueprint("connections", __name__)


def _service() -> ConnectionService:
    return current_app.config["CONNECTION_SERVICE"]


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


@bp.route("", methods=["GET"])
def list_connections():
    return jsonify({"connections": _service().list_connections()}), 200


@bp.route("", methods=["POST"])
def create_connection():
    """Create a connection.

    Returns:
        201 Created with the public connection and a Location header
    """
    created = _service().create_connection(_json_body())
    response = jsonify(created)
    response.status_code = 201
    response.headers["Location"] = f"{request.host_url.rstrip('/')}/api/connections/{created['id']}"
    return response


@bp.route("/test-config", methods=["POST"])
def test_config():
    report = _service().test_config(_json_body())
    return jsonify(report), 200


@bp.route("/<connection_id>", methods=["GET"])
def get_connection(connection_id: str):
    return jsonify(_service().get_connection(connection_id)), 200


@bp.route("/<connection_id>", methods=["PUT"])
def update_connection(connection_id: str):
    updated = _service().update_connection(connection_id, _json_body())
    return jsonify(updated), 200


@bp.route("/<connection_id>/test", methods=["POST"])
def test_connection(connection_id: str):
    report = _service().test_connection(connection_id)
    return jsonify(report), 200
