import enum

from ..extensions import db
from flask_login import UserMixin
from .base import TimestampMixin, enum_type
from werkzeug.security import generate_password_hash, check_password_hash


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    EMPLOYER = "EMPLOYER"
    CANDIDATE = "CANDIDATE"


class User(db.Model, UserMixin, TimestampMixin):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=False)
    password_hash = db.Column(db.String(255))
    role = db.Column(enum_type(UserRole), nullable=False, default=UserRole.CANDIDATE)
    # bearer token for API clients that don't hold a session cookie
    api_token = db.Column(db.String(128), unique=True, index=True)

    def set_password(self, raw):
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, raw)

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"
