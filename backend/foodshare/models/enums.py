from sqlalchemy import Enum

# Status vocabularies. Columns store the lower-case string values directly.


class Role:
    DONOR = "donor"
    NGO = "ngo"
    RECIPIENT = "recipient"
    ADMIN = "admin"

    ALL = (DONOR, NGO, RECIPIENT, ADMIN)
    CLAIMANTS = (NGO, RECIPIENT)


class ListingStatus:
    AVAILABLE = "available"
    CLAIMED = "claimed"
    EXPIRED = "expired"
    DELIVERED = "delivered"

    ALL = (AVAILABLE, CLAIMED, EXPIRED, DELIVERED)
    # Expiry only applies while the food has not changed hands
    EXPIRABLE = (AVAILABLE, CLAIMED)


class ClaimStatus:
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"

    ALL = (PENDING, ACCEPTED, REJECTED, COMPLETED)
    ACTIVE = (PENDING, ACCEPTED)


class DeliveryStatus:
    SCHEDULED = "scheduled"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"

    # Position in the forward-only state machine
    ORDER = {SCHEDULED: 0, OUT_FOR_DELIVERY: 1, DELIVERED: 2}
    ALL = tuple(ORDER)


role_enum = Enum(*Role.ALL, name="role_enum")
listing_status_enum = Enum(*ListingStatus.ALL, name="listing_status_enum")
claim_status_enum = Enum(*ClaimStatus.ALL, name="claim_status_enum")
delivery_status_enum = Enum(*DeliveryStatus.ALL, name="delivery_status_enum")
