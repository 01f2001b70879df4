from marshmallow import Schema, fields, validate

from ..models.enums import Role


class RegisterSchema(Schema):
    email = fields.Email(required=True)
    password = fields.Str(required=True, load_only=True, validate=validate.Length(min=8))
    name = fields.Str(allow_none=True, validate=validate.Length(max=120))
    # Admin accounts are provisioned out of band
    role = fields.Str(required=True, validate=validate.OneOf([Role.DONOR, Role.NGO, Role.RECIPIENT]))
    organization = fields.Str(allow_none=True, validate=validate.Length(max=200))
    phone = fields.Str(allow_none=True, validate=validate.Length(max=40))


class LoginSchema(Schema):
    email = fields.Email(required=True)
    password = fields.Str(required=True, load_only=True)


class ActorSchema(Schema):
    id = fields.Int(dump_only=True)
    email = fields.Str()
    name = fields.Str(allow_none=True)
    role = fields.Str()
    organization = fields.Str(allow_none=True)
