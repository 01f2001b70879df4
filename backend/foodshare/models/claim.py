from sqlalchemy import func, Index
from ..extensions import db
from .columns import BigId
from .enums import claim_status_enum


class Claim(db.Model):
    __tablename__ = "claims"

    id = db.Column(BigId, primary_key=True)
    listing_id = db.Column(db.BigInteger, db.ForeignKey("listings.id", ondelete="CASCADE"), nullable=False)
    claimant_user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = db.Column(claim_status_enum, nullable=False, server_default="pending")
    notes = db.Column(db.Text)
    pickup_time = db.Column(db.DateTime(timezone=True))
    decided_at = db.Column(db.DateTime(timezone=True))
    completed_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    listing = db.relationship("Listing", back_populates="claims")
    claimant = db.relationship("Actor", back_populates="claims", foreign_keys=[claimant_user_id])
    delivery = db.relationship("Delivery", back_populates="claim", uselist=False)

    __table_args__ = (
        Index("idx_claims_listing_status", "listing_id", "status"),
        Index("idx_claims_claimant", "claimant_user_id"),
    )
