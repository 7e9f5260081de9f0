from arena import db, bcrypt
from flask_login import UserMixin

USERNAME_MAX_LENGTH = 50


class User(UserMixin, db.Model):
    """A registered account and its lifetime kill/death counters."""
    __tablename__ = 'players'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(USERNAME_MAX_LENGTH), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    kills = db.Column(db.Integer, nullable=False, default=0)
    deaths = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, server_default=db.func.now())

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'kills': self.kills or 0,
            'deaths': self.deaths or 0,
        }
