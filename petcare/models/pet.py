from datetime import datetime, timezone
from sqlalchemy import CheckConstraint
from ..extensions import db


class Pet(db.Model):
    __tablename__ = "pets"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = db.Column(db.String(120), nullable=False)
    pet_type = db.Column(db.String(50), nullable=False)
    breed = db.Column(db.String(120), nullable=True)
    age_years = db.Column(db.Integer, nullable=True)
    age_months = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    photo_url = db.Column(db.String(255), nullable=True)

    created_at = db.Column(
        db.DateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        CheckConstraint(
            "age_years IS NULL OR age_years >= 0", name="ck_pet_age_non_negative"
        ),
    )

    owner = db.relationship("User", backref=db.backref("pets", lazy="dynamic"))
