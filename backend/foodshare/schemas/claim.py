from marshmallow import Schema, fields, validate

from ..models.enums import ClaimStatus


class ClaimRequestSchema(Schema):
    listing_id = fields.Int(required=True, data_key="listingId")
    notes = fields.Str(allow_none=True, validate=validate.Length(max=2000))
    pickup_time = fields.DateTime(allow_none=True, data_key="pickupTime")


class ClaimDecisionSchema(Schema):
    # Donors decide pending claims: accept or reject
    status = fields.Str(required=True, validate=validate.OneOf([ClaimStatus.ACCEPTED, ClaimStatus.REJECTED]))
    # Optional delivery details recorded when accepting
    delivery_agent = fields.Str(allow_none=True, data_key="deliveryAgent", validate=validate.Length(max=100))
    eta = fields.DateTime(allow_none=True)


class ClaimSchema(Schema):
    id = fields.Int(dump_only=True)
    listing_id = fields.Int(data_key="listingId")
    claimant_user_id = fields.Int(data_key="claimantId")
    status = fields.Str()
    notes = fields.Str(allow_none=True)
    pickup_time = fields.DateTime(data_key="pickupTime", allow_none=True)
    decided_at = fields.DateTime(data_key="decidedAt", allow_none=True)
    completed_at = fields.DateTime(data_key="completedAt", allow_none=True)
    created_at = fields.DateTime(data_key="createdAt")
