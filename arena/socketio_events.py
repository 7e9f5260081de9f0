from flask import current_app, request
from flask_login import current_user
from arena import socketio
from arena.services.session.coordinator import ALL, OTHERS, SENDER, SessionCoordinator
from arena.services.session.identity import Identity
from typing import Iterable

NAMESPACE = '/ws'


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _coordinator() -> SessionCoordinator:
    return current_app.extensions['session_coordinator']


def _dispatch(sid: str, outbound: Iterable) -> None:
    """Fan coordinator output out to the connections it is addressed to."""
    for message in outbound:
        if message.audience == SENDER:
            socketio.emit(message.event, message.payload, to=sid, namespace=NAMESPACE)
        elif message.audience == OTHERS:
            socketio.emit(message.event, message.payload, namespace=NAMESPACE, skip_sid=sid)
        elif message.audience == ALL:
            socketio.emit(message.event, message.payload, namespace=NAMESPACE)


def handle_connect(auth=None):
    current_app.logger.info(f"[connect] {_get_sid()}")


def handle_disconnect(reason=None):
    sid = _get_sid()
    _dispatch(sid, _coordinator().leave(sid))


def handle_join(data=None):
    sid = _get_sid()
    data = data if isinstance(data, dict) else {}
    identity = None
    # A browser session that logged in over HTTP does not need to resend credentials
    if not (data.get('username') and data.get('password')) and current_user.is_authenticated:
        identity = Identity.from_user(current_user)
    outbound = _coordinator().join(sid, credentials=data, identity=identity)
    if outbound and outbound[0].event == 'join_error':
        current_app.logger.info(f"[join] rejected {sid}: {outbound[0].payload['message']}")
    _dispatch(sid, outbound)


def handle_move(data=None):
    sid = _get_sid()
    _dispatch(sid, _coordinator().move(sid, data))


def handle_shoot(data=None):
    sid = _get_sid()
    _dispatch(sid, _coordinator().shoot(sid, data))


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the '/ws' namespace."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('join', handle_join, namespace=NAMESPACE)
    socketio.on_event('move', handle_move, namespace=NAMESPACE)
    socketio.on_event('shoot', handle_shoot, namespace=NAMESPACE)
