from sqlalchemy import func, Index
from sqlalchemy.dialects.postgresql import JSONB
from ..extensions import db
from .columns import BigId
from .enums import listing_status_enum


class Listing(db.Model):
    __tablename__ = "listings"

    id = db.Column(BigId, primary_key=True)
    donor_user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    quantity = db.Column(db.Integer, nullable=False)
    unit = db.Column(db.String(20), nullable=False, server_default="portions")
    location = db.Column(db.String(255))
    food_type = db.Column(db.String(50))
    dietary_restrictions = db.Column(db.String(255))
    # Free-form labels, e.g. ["bakery", "vegetarian"] and ["gluten", "nuts"]
    categories = db.Column(db.JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list)
    allergens = db.Column(db.JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list)
    status = db.Column(listing_status_enum, nullable=False, server_default="available")
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    claimed_at = db.Column(db.DateTime(timezone=True))
    expired_at = db.Column(db.DateTime(timezone=True))
    delivered_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    donor = db.relationship("Actor", back_populates="listings", foreign_keys=[donor_user_id])
    claims = db.relationship("Claim", back_populates="listing", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_listings_status", "status"),
        Index("idx_listings_donor", "donor_user_id"),
        Index("idx_listings_expires_at", "expires_at"),
        Index("idx_listings_food_type", "food_type"),
    )
