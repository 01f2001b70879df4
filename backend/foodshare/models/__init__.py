from .user import Actor
from .listing import Listing
from .claim import Claim
from .delivery import Delivery
from .reputation import ReputationEntry, Review
from .audit_log import AuditLog

__all__ = ["Actor", "Listing", "Claim", "Delivery", "ReputationEntry", "Review", "AuditLog"]
