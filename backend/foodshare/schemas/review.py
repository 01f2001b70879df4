from marshmallow import Schema, fields, validate


class ReviewCreateSchema(Schema):
    claim_id = fields.Int(required=True, data_key="claimId")
    # Range is enforced by the reputation ledger (InvalidRating -> 422)
    rating = fields.Raw(required=True)
    reviewee_id = fields.Int(allow_none=True, data_key="revieweeId")
    comment = fields.Str(allow_none=True, validate=validate.Length(max=2000))


class ReviewSchema(Schema):
    id = fields.Int(dump_only=True)
    claim_id = fields.Int(data_key="claimId")
    reviewer_user_id = fields.Int(data_key="reviewerId")
    reviewee_user_id = fields.Int(data_key="revieweeId")
    rating = fields.Int()
    comment = fields.Str(allow_none=True)
    created_at = fields.DateTime(data_key="createdAt")


class ReputationEntrySchema(Schema):
    id = fields.Int(dump_only=True)
    user_id = fields.Int(data_key="userId")
    points = fields.Int()
    reason = fields.Str()
    claim_id = fields.Int(data_key="claimId", allow_none=True)
    created_at = fields.DateTime(data_key="createdAt")
