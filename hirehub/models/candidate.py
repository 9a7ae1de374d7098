from ..extensions import db
from .base import TimestampMixin


class Candidate(db.Model, TimestampMixin):
    __tablename__ = "candidates"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True)
    phone = db.Column(db.String(40))
    linkedin = db.Column(db.String(255))

    user = db.relationship("User", lazy="joined")

    @property
    def name(self):
        return self.user.name if self.user else None

    @property
    def email(self):
        return self.user.email if self.user else None

    @property
    def first_name(self):
        return (self.name or "").split(" ")[0]

    def __repr__(self) -> str:
        return f"<Candidate id={self.id} name={self.name!r}>"
