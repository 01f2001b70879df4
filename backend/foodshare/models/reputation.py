from sqlalchemy import func, CheckConstraint, Index, UniqueConstraint
from ..extensions import db
from .columns import BigId


class ReputationEntry(db.Model):
    """Append-only point award. Totals are always summed, never stored."""

    __tablename__ = "reputation_entries"

    id = db.Column(BigId, primary_key=True)
    user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    points = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(100), nullable=False)
    claim_id = db.Column(db.BigInteger, db.ForeignKey("claims.id", ondelete="SET NULL"))
    # Stable key for replayed awards (e.g. "claim:12:donor")
    idempotency_key = db.Column(db.String(120), unique=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    user = db.relationship("Actor")

    __table_args__ = (
        Index("idx_reputation_user", "user_id"),
    )


class Review(db.Model):
    __tablename__ = "reviews"

    id = db.Column(BigId, primary_key=True)
    claim_id = db.Column(db.BigInteger, db.ForeignKey("claims.id", ondelete="CASCADE"), nullable=False)
    reviewer_user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reviewee_user_id = db.Column(db.BigInteger, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    claim = db.relationship("Claim")
    reviewer = db.relationship("Actor", foreign_keys=[reviewer_user_id])
    reviewee = db.relationship("Actor", foreign_keys=[reviewee_user_id])

    __table_args__ = (
        UniqueConstraint("claim_id", "reviewer_user_id", name="uq_reviews_claim_reviewer"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
        Index("idx_reviews_reviewee", "reviewee_user_id"),
    )
