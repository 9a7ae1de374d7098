from ..extensions import db
from .base import TimestampMixin


class PlatformSetting(db.Model, TimestampMixin):
    __tablename__ = 'platform_settings'
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(128), nullable=False, unique=True, index=True)
    value = db.Column(db.JSON, nullable=True)
    # bumped on every write; writers must present the version they read
    version = db.Column(db.Integer, nullable=False, default=1)

    def __repr__(self):
        return f"<PlatformSetting key={self.key} version={self.version} value={self.value}>"
