from marshmallow import Schema, fields, validate, EXCLUDE

from models.relation import RelationKind, TARGET_ID_MAX_LENGTH

KIND_VALUES = [k.value for k in RelationKind]


class RelationToggleSchema(Schema):
    kind = fields.String(required=True, validate=validate.OneOf(KIND_VALUES))
    target_id = fields.String(required=True, validate=validate.Length(min=1, max=TARGET_ID_MAX_LENGTH))

    class Meta:
        unknown = EXCLUDE


class RelationQuerySchema(Schema):
    kind = fields.String(required=True, validate=validate.OneOf(KIND_VALUES))

    class Meta:
        unknown = EXCLUDE


class RelationStateOutSchema(Schema):
    kind = fields.String()
    target_id = fields.String()
    present = fields.Boolean()
