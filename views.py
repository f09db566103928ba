import time
from dataclasses import asdict

from flask import Blueprint, Response, current_app, jsonify, request
from werkzeug.exceptions import MethodNotAllowed

import records
from client_ip import client_ip, peer_address

time_bp = Blueprint("time", __name__)

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _json_response(record):
    try:
        return jsonify(asdict(record))
    except (TypeError, ValueError) as e:
        current_app.logger.error("Error encoding response: %s", e)
        resp = Response("Internal server error\n", status=500, mimetype="text/plain")
        resp.headers["X-Content-Type-Options"] = "nosniff"
        return resp


@time_bp.route("/health", methods=ALL_METHODS)
def health():
    return _json_response(records.health_record())


# Anything not routed elsewhere lands here
@time_bp.route("/", defaults={"path": ""}, methods=ALL_METHODS)
@time_bp.route("/<path:path>", methods=ALL_METHODS)
def index(path):
    ip = client_ip(request.headers, peer_address(request.environ))
    resp = _json_response(records.time_record(time.time_ns(), ip))
    if resp.status_code == 200:
        current_app.logger.info("Request from %s - %s", ip, request.user_agent.string)
    return resp


@time_bp.app_errorhandler(MethodNotAllowed)
def any_method(e):
    # Methods outside ALL_METHODS (TRACE, PROPFIND, ...) fail routing
    if request.path == "/health":
        return health()
    return index(request.path.lstrip("/"))
