from marshmallow import Schema, fields, validate, validates_schema, ValidationError

from ..models.enums import DeliveryStatus


class DeliveryUpdateSchema(Schema):
    status = fields.Str(validate=validate.OneOf(DeliveryStatus.ALL))
    lat = fields.Float(allow_none=True, validate=validate.Range(min=-90, max=90))
    lng = fields.Float(allow_none=True, validate=validate.Range(min=-180, max=180))
    eta = fields.DateTime(allow_none=True)

    @validates_schema
    def _check_fields(self, data, **kwargs):
        has_lat = data.get("lat") is not None
        has_lng = data.get("lng") is not None
        if has_lat != has_lng:
            raise ValidationError("lat and lng must be provided together")
        if not data.get("status") and not has_lat:
            raise ValidationError("Provide a status and/or a position")


class DeliverySchema(Schema):
    id = fields.Int(dump_only=True)
    claim_id = fields.Int(data_key="claimId")
    listing_id = fields.Int(data_key="listingId")
    delivery_agent = fields.Str(data_key="deliveryAgent", allow_none=True)
    status = fields.Str()
    current_lat = fields.Float(data_key="lat", allow_none=True)
    current_lng = fields.Float(data_key="lng", allow_none=True)
    eta = fields.DateTime(allow_none=True)
    delivered_at = fields.DateTime(data_key="deliveredAt", allow_none=True)
    updated_at = fields.DateTime(data_key="updatedAt")
