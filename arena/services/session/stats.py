from sqlalchemy import case
from sqlalchemy.exc import SQLAlchemyError

from arena import db, socketio
from arena.models import User


class StatStore:
    """Best-effort persistence of kill/death counters.

    ``flush`` never blocks the caller: outside of TESTING the write runs as a
    Socket.IO background task. Failures are logged and rolled back; the
    in-memory session state is never touched.
    """

    def __init__(self, app):
        self.app = app

    def flush(self, identity, kills: int, deaths: int) -> None:
        if identity.account_id is None:
            return
        if self.app.config.get('TESTING'):
            self._write(identity.account_id, identity.username, kills, deaths)
        else:
            socketio.start_background_task(self._write, identity.account_id, identity.username, kills, deaths)

    def _write(self, account_id: int, username: str, kills: int, deaths: int) -> None:
        with self.app.app_context():
            try:
                # Counters only move forward so a late, older flush cannot undo a newer one
                matched = User.query.filter_by(id=account_id).update({
                    User.kills: case((User.kills < kills, kills), else_=User.kills),
                    User.deaths: case((User.deaths < deaths, deaths), else_=User.deaths),
                }, synchronize_session=False)
                if not matched:
                    db.session.rollback()
                    self.app.logger.warning(f"[stats] account {account_id} ({username}) no longer exists")
                    return
                db.session.commit()
                self.app.logger.info(f"[stats] saved {username} kills={kills} deaths={deaths}")
            except SQLAlchemyError as exc:
                db.session.rollback()
                self.app.logger.error(f"[stats] update failed for {username}: {exc}")
