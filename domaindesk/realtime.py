# -*- coding: utf-8 -*-
"""
Socket.IO push channel for the admin panel. Only clients presenting a
valid admin token stay connected; every connected client receives the
NEW_TICKET / NEW_COMMENT notifications.
"""

import logging
import threading
from typing import Any, Dict, Optional

from flask import current_app, request
from flask_socketio import SocketIO, emit

from .auth import decode_token
from .db import now_iso
from .errors import AuthError

logger = logging.getLogger(__name__)

socketio = SocketIO()

EVENT = "notification"

_clients: Dict[str, str] = {}
_clients_lock = threading.Lock()


def connection_count() -> int:
    with _clients_lock:
        return len(_clients)


@socketio.on("connect")
def on_connect(auth: Optional[dict] = None):
    token = request.args.get("token") or (auth or {}).get("token")
    if not token:
        logger.info("Socket refused: no token provided")
        return False
    cfg = current_app.config
    try:
        claims = decode_token(token, cfg["JWT_SECRET"], cfg["JWT_ALGORITHM"])
    except AuthError as e:
        logger.info("Socket refused: %s", e.message)
        return False
    with _clients_lock:
        _clients[request.sid] = claims.get("username", "")
    logger.info("Socket client connected: %s", claims.get("username"))
    emit(EVENT, {"type": "CONNECTED", "message": "WebSocket connection established"})


@socketio.on("disconnect")
def on_disconnect(reason: Any = None):
    with _clients_lock:
        username = _clients.pop(request.sid, None)
    if username is not None:
        logger.info("Socket client disconnected: %s", username)


def broadcast(event_type: str, **payload: Any):
    if socketio.server is None:
        return
    message = {"type": event_type, "timestamp": now_iso()}
    message.update(payload)
    try:
        socketio.emit(EVENT, message)
    except Exception:
        # a dead socket must not fail the request that produced the event
        logger.exception("Broadcast of %s failed", event_type)


def broadcast_new_ticket(ticket: Dict[str, Any]):
    broadcast("NEW_TICKET", ticket=ticket)


def broadcast_new_comment(comment: Dict[str, Any]):
    broadcast("NEW_COMMENT", comment=comment)
