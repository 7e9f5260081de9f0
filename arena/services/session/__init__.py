"""Session domain services: registry, hitscan validation and the event core.

The coordinator is transport-agnostic; ``arena.socketio_events`` feeds it
Socket.IO events and dispatches what it returns.
"""

from .coordinator import SessionCoordinator, SessionSettings
from .identity import AccountIdentityProvider
from .stats import StatStore


def build_coordinator(app) -> SessionCoordinator:
    return SessionCoordinator(
        identity_provider=AccountIdentityProvider(),
        stat_sink=StatStore(app).flush,
        settings=SessionSettings.from_config(app.config),
    )
