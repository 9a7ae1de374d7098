from ..extensions import db
from .base import TimestampMixin


class Job(db.Model, TimestampMixin):
    __tablename__ = "jobs"

    id = db.Column(db.Integer, primary_key=True)
    employer_id = db.Column(db.Integer, db.ForeignKey("employers.id"), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    salary_min = db.Column(db.Integer)
    salary_max = db.Column(db.Integer)

    def __repr__(self) -> str:
        return f"<Job id={self.id} title={self.title!r}>"
