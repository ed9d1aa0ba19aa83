# -*- coding: utf-8 -*-
"""
REST API for the admin panel and the public storefront.
"""

import logging
from typing import Any, Dict, Optional

from flask import Blueprint, Flask, current_app, g, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from . import comments, config, domains, telegram_users, tickets
from .auth import ensure_default_admin, login, token_required
from .bulk import run_bulk_action
from .csv_import import import_domains_csv
from .db import init_db, set_db_file
from .errors import ApiError, ValidationError
from .realtime import broadcast_new_comment, broadcast_new_ticket, connection_count, socketio

logger = logging.getLogger(__name__)


def _body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def ok(status: int = 200, **payload: Any):
    body = {"success": True}
    body.update(payload)
    return jsonify(body), status


# -------------------------
# Auth
# -------------------------
auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.route("/login", methods=["POST"])
def auth_login():
    data = _body()
    result = login(data.get("username"), data.get("password"))
    return ok(message="Login successful", **result)


@auth_bp.route("/me", methods=["GET"])
@token_required
def auth_me():
    return ok(user={"id": g.user.get("userId"), "username": g.user.get("username")})


# -------------------------
# Domains
# -------------------------
domains_bp = Blueprint("domains", __name__, url_prefix="/api/domains")


@domains_bp.route("/public", methods=["GET"])
def public_domains():
    return ok(data=domains.list_public_domains())


@domains_bp.route("/all", methods=["GET"])
def all_domains():
    return ok(data=domains.list_all_public())


@domains_bp.route("", methods=["GET"])
@token_required
def admin_domains():
    args = request.args
    data = domains.list_domains(
        status=args.get("status"),
        posted=args.get("posted"),
        category=args.get("category"),
        country=args.get("country"),
        search=args.get("search"),
    )
    return ok(data=data, total=len(data))


@domains_bp.route("", methods=["POST"])
@token_required
def create_domain():
    doc = domains.create_domain(_body())
    return ok(201, message="Domain created successfully", data=doc)


@domains_bp.route("/multiple", methods=["POST"])
@token_required
def create_domains():
    data = _body()
    items = data.get("domains")
    if not isinstance(items, list) or not items:
        raise ValidationError("Domains array is required")
    created, errors = domains.create_domains(items, shared=data)
    return ok(201, message=f"{len(created)} domains created successfully",
              data={"created": created, "errors": errors})


@domains_bp.route("/import", methods=["POST"])
@token_required
def import_domains():
    upload = request.files.get("csvFile")
    source = upload.stream if upload and upload.filename else None
    report = import_domains_csv(source)
    return ok(message="CSV import completed", **report)


@domains_bp.route("/bulk-actions", methods=["POST"])
@token_required
def bulk_actions():
    data = _body()
    names = data.get("domains")
    if not isinstance(names, list) or not names:
        raise ValidationError("domains must be a non-empty array of domain names")
    result = run_bulk_action(data.get("action"), names, workers=current_app.config["BULK_WORKERS"])
    return ok(message=f"Bulk action '{result['action']}' completed", **result)


@domains_bp.route("/<domain_id>", methods=["PUT"])
@token_required
def update_domain(domain_id):
    doc = domains.update_domain(domain_id, _body())
    return ok(message="Domain updated successfully", data=doc)


@domains_bp.route("/<domain_id>", methods=["DELETE"])
@token_required
def delete_domain(domain_id):
    domains.delete_domain(domain_id)
    return ok(message="Domain deleted successfully")


@domains_bp.route("/<domain_id>/sold", methods=["PATCH"])
@token_required
def domain_sold(domain_id):
    return ok(message="Domain marked as sold", data=domains.mark_sold(domain_id))


@domains_bp.route("/<domain_id>/available", methods=["PATCH"])
@token_required
def domain_available(domain_id):
    return ok(message="Domain marked as available", data=domains.mark_available(domain_id))


@domains_bp.route("/<domain_id>/post", methods=["PATCH"])
@token_required
def domain_post(domain_id):
    return ok(message="Domain posted to channel", data=domains.post_to_channel(domain_id))


@domains_bp.route("/<domain_id>/unpost", methods=["PATCH"])
@token_required
def domain_unpost(domain_id):
    return ok(message="Domain removed from channel", data=domains.remove_from_channel(domain_id))


# -------------------------
# Tickets
# -------------------------
tickets_bp = Blueprint("tickets", __name__, url_prefix="/api/tickets")


@tickets_bp.route("", methods=["GET"])
@token_required
def list_tickets():
    return ok(data=tickets.list_tickets(status=request.args.get("status")))


@tickets_bp.route("/count/new", methods=["GET"])
@token_required
def new_tickets_count():
    return ok(count=tickets.count_new())


@tickets_bp.route("", methods=["POST"])
def create_ticket():
    data = _body()
    ticket = tickets.create_ticket(data.get("customer_id"), data.get("request_domains"), price=data.get("price"))
    broadcast_new_ticket(ticket)
    return ok(201, message="Ticket created successfully", data=ticket)


@tickets_bp.route("/customer-domains", methods=["POST"])
def tickets_by_customer():
    data = _body()
    customer_id = data.get("customer_id")
    names = data.get("domains")
    if not customer_id or not isinstance(names, list):
        raise ValidationError("customer_id and domains array are required")
    return ok(data=tickets.tickets_for_customer(customer_id, names))


@tickets_bp.route("/<ticket_id>", methods=["PUT"])
@token_required
def update_ticket(ticket_id):
    result = tickets.update_ticket(ticket_id, _body(), workers=current_app.config["BULK_WORKERS"])
    payload = {"data": result["ticket"]}
    if "domainUpdates" in result:
        payload["domainUpdates"] = result["domainUpdates"]
    return ok(message="Ticket updated successfully", **payload)


@tickets_bp.route("/<ticket_id>", methods=["DELETE"])
@token_required
def delete_ticket(ticket_id):
    tickets.delete_ticket(ticket_id)
    return ok(message="Ticket deleted successfully")


@tickets_bp.route("/<ticket_id>/read", methods=["PATCH"])
@token_required
def ticket_read(ticket_id):
    return ok(message="Ticket marked as read", data=tickets.mark_read(ticket_id))


@tickets_bp.route("/<ticket_id>/sold", methods=["PATCH"])
@token_required
def ticket_sold(ticket_id):
    result = tickets.mark_sold(ticket_id, price=_body().get("price"), workers=current_app.config["BULK_WORKERS"])
    return ok(message="Ticket marked as sold", data=result["ticket"], domainUpdates=result["domainUpdates"])


@tickets_bp.route("/<ticket_id>/cancelled", methods=["PATCH"])
@token_required
def ticket_cancelled(ticket_id):
    return ok(message="Ticket marked as cancelled", data=tickets.mark_cancelled(ticket_id))


# -------------------------
# Comments
# -------------------------
comments_bp = Blueprint("comments", __name__, url_prefix="/api/comments")


@comments_bp.route("", methods=["POST"])
def create_comment():
    data = _body()
    comment = comments.create_comment(data.get("telegram_username"), data.get("content"))
    broadcast_new_comment(comment)
    return ok(201, message="Comment created successfully", data=comment)


@comments_bp.route("", methods=["GET"])
@token_required
def list_comments():
    return ok(data=comments.list_comments())


@comments_bp.route("/count/new", methods=["GET"])
@token_required
def new_comments_count():
    return ok(count=comments.count_new())


@comments_bp.route("/<comment_id>/read", methods=["PATCH"])
@token_required
def comment_read(comment_id):
    comments.mark_read(comment_id)
    return ok(message="Comment marked as read")


@comments_bp.route("/<comment_id>", methods=["DELETE"])
@token_required
def delete_comment(comment_id):
    comments.delete_comment(comment_id)
    return ok(message="Comment deleted successfully")


# -------------------------
# Telegram subscribers
# -------------------------
telegram_bp = Blueprint("telegram", __name__, url_prefix="/api/telegram")


@telegram_bp.route("/users", methods=["GET"])
@token_required
def telegram_users_list():
    users = telegram_users.list_users()
    return ok(data=users, total=len(users))


@telegram_bp.route("/users/<telegram_id>", methods=["GET"])
@token_required
def telegram_user(telegram_id):
    return ok(data=telegram_users.get_user(telegram_id))


# -------------------------
# Errors
# -------------------------
def register_error_handlers(app: Flask):
    @app.errorhandler(ApiError)
    def handle_api_error(e: ApiError):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(e):
        mb = app.config.get("MAX_UPLOAD_MB", 5)
        return jsonify({"success": False, "message": f"File too large. Maximum size is {mb}MB.", "error": e.name}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        message = "Route not found" if e.code == 404 else e.description
        return jsonify({"success": False, "message": message, "error": e.name}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"success": False, "message": "Internal server error", "error": str(e)}), 500


# -------------------------
# App factory
# -------------------------
def create_app(overrides: Optional[Dict[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.config.update(config.as_dict())
    if overrides:
        app.config.update(overrides)
    app.url_map.strict_slashes = False

    set_db_file(app.config["DB_FILE"])
    init_db()
    ensure_default_admin(app.config["DEFAULT_ADMIN_USERNAME"], app.config["DEFAULT_ADMIN_PASSWORD"])

    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}})
    for bp in (auth_bp, domains_bp, tickets_bp, comments_bp, telegram_bp):
        app.register_blueprint(bp)

    @app.route("/api/health", methods=["GET"])
    def health():
        return jsonify({
            "message": "Server is running!",
            "websocket": {"connections": connection_count(), "status": "active"},
        })

    register_error_handlers(app)
    socketio.init_app(app, cors_allowed_origins=app.config["CORS_ORIGINS"], async_mode="threading")
    return app
