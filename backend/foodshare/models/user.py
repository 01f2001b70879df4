from sqlalchemy import func
from ..extensions import db
from .columns import BigId
from .enums import role_enum


class Actor(db.Model):
    """A registered participant. Donors, NGOs and recipients share one table; the role drives capability checks."""

    __tablename__ = "users"

    id = db.Column(BigId, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(120))
    role = db.Column(role_enum, nullable=False)
    organization = db.Column(db.String(200))
    phone = db.Column(db.String(40))
    password_hash = db.Column(db.Text)
    last_login_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    listings = db.relationship(
        "Listing",
        back_populates="donor",
        foreign_keys="Listing.donor_user_id",
        lazy=True,
    )
    claims = db.relationship(
        "Claim",
        back_populates="claimant",
        foreign_keys="Claim.claimant_user_id",
        lazy=True,
    )
    audit_logs = db.relationship(
        "AuditLog",
        back_populates="actor",
        foreign_keys="AuditLog.actor_user_id",
        lazy=True,
    )
