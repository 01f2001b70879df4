from sqlalchemy import func, Index
from ..extensions import db
from .columns import BigId
from .enums import delivery_status_enum


class Delivery(db.Model):
    __tablename__ = "deliveries"

    id = db.Column(BigId, primary_key=True)
    # One delivery per accepted claim
    claim_id = db.Column(db.BigInteger, db.ForeignKey("claims.id", ondelete="CASCADE"), nullable=False, unique=True)
    listing_id = db.Column(db.BigInteger, db.ForeignKey("listings.id", ondelete="CASCADE"), nullable=False)
    delivery_agent = db.Column(db.String(100))
    status = db.Column(delivery_status_enum, nullable=False, server_default="scheduled")
    current_lat = db.Column(db.Float)
    current_lng = db.Column(db.Float)
    eta = db.Column(db.DateTime(timezone=True))
    delivered_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    claim = db.relationship("Claim", back_populates="delivery")
    listing = db.relationship("Listing")

    __table_args__ = (
        Index("idx_deliveries_listing", "listing_id"),
        Index("idx_deliveries_status", "status"),
    )
