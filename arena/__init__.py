from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
# One connection's events are handled in arrival order
socketio = SocketIO(async_mode=None, async_handlers=False)


def _allowed_origins(config):
    origins = config.get('CORS_ORIGINS') or '*'
    if origins == '*':
        return '*'
    return [o.strip() for o in origins.split(',') if o.strip()]


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = _allowed_origins(flask_app.config)

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    # Credentialed CORS cannot be combined with a wildcard origin
    CORS(flask_app, supports_credentials=allowed_origins != '*', origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from arena.routes import main
    flask_app.register_blueprint(main)

    # One authoritative session per application instance
    from arena.services.session import build_coordinator
    flask_app.extensions['session_coordinator'] = build_coordinator(flask_app)

    from arena.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    from arena.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return User.query.filter_by(id=int(user_id)).first()

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed users
            users = ['testuser1', 'testuser2', 'testuser3']
            for u in users:
                user = User(username=u)
                user.set_password('password')
                db.session.add(user)

            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    flask_app.logger.info(f"[session] ready (require_login={flask_app.config.get('REQUIRE_LOGIN')})")
    return flask_app
