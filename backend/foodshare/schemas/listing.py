from marshmallow import Schema, fields, validate, validates, ValidationError

from ..services.timeutil import as_utc, utcnow


class ListingCreateSchema(Schema):
    title = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    description = fields.Str(allow_none=True)
    quantity = fields.Int(required=True, strict=True, validate=validate.Range(min=1))
    unit = fields.Str(load_default="portions", validate=validate.Length(min=1, max=20))
    location = fields.Str(allow_none=True, validate=validate.Length(max=255))
    expires_at = fields.DateTime(required=True, data_key="expiresAt")
    food_type = fields.Str(allow_none=True, data_key="foodType", validate=validate.Length(min=1, max=50))
    dietary_restrictions = fields.Str(allow_none=True, data_key="dietaryRestrictions", validate=validate.Length(max=255))
    categories = fields.List(fields.Str(validate=validate.Length(min=1, max=50)), load_default=list)
    allergens = fields.List(fields.Str(validate=validate.Length(min=1, max=50)), load_default=list)

    @validates("expires_at")
    def _expires_in_future(self, value, **kwargs):
        if as_utc(value) <= utcnow():
            raise ValidationError("expiresAt must be in the future")


class ListingSchema(Schema):
    id = fields.Int(dump_only=True)
    donor_user_id = fields.Int(data_key="donorId")
    title = fields.Str()
    description = fields.Str(allow_none=True)
    quantity = fields.Int()
    unit = fields.Str()
    location = fields.Str(allow_none=True)
    food_type = fields.Str(data_key="foodType", allow_none=True)
    dietary_restrictions = fields.Str(data_key="dietaryRestrictions", allow_none=True)
    categories = fields.List(fields.Str())
    allergens = fields.List(fields.Str())
    status = fields.Str()
    expires_at = fields.DateTime(data_key="expiresAt")
    claimed_at = fields.DateTime(data_key="claimedAt", allow_none=True)
    expired_at = fields.DateTime(data_key="expiredAt", allow_none=True)
    delivered_at = fields.DateTime(data_key="deliveredAt", allow_none=True)
    created_at = fields.DateTime(data_key="createdAt")
