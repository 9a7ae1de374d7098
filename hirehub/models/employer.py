from ..extensions import db
from .base import TimestampMixin


class Employer(db.Model, TimestampMixin):
    __tablename__ = "employers"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True)
    company_name = db.Column(db.String(200), nullable=False)
    contact_name = db.Column(db.String(120))
    contact_email = db.Column(db.String(254))

    user = db.relationship("User", lazy="joined")

    @property
    def billing_email(self):
        """Dedicated contact address, falling back to the account email."""
        if self.contact_email:
            return self.contact_email
        return self.user.email if self.user else None

    def __repr__(self) -> str:
        return f"<Employer id={self.id} company_name={self.company_name!r}>"
