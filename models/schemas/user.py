from marshmallow import Schema, fields, pre_load, validates, validates_schema, ValidationError, EXCLUDE


def _norm(v):
    return v.strip().lower() if isinstance(v, str) else v


class UserCreateSchema(Schema):
    username = fields.String(required=True)
    email = fields.Email(required=True)
    fullname = fields.String(required=True)
    password = fields.String(required=True, load_only=True)

    class Meta:
        unknown = EXCLUDE

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            for key in ("email", "username"):
                if key in data:
                    data[key] = _norm(data[key])
        return data

    @validates("username")
    def validate_username(self, value, **kwargs):
        if not value or len(value) > 64:
            raise ValidationError("Username must be 1-64 characters long.")
        if "@" in value:
            raise ValidationError("Username must not contain '@'.")

    @validates("fullname")
    def validate_fullname(self, value, **kwargs):
        if not value.strip():
            raise ValidationError("Fullname is required.")

    @validates("password")
    def validate_password(self, value, **kwargs):
        if len(value) < 8:
            raise ValidationError("Password must be at least 8 characters long.")


class UserLoginSchema(Schema):
    """Accepts email, username or a generic identifier."""
    identifier = fields.String()
    email = fields.String()
    username = fields.String()
    password = fields.String(required=True, load_only=True)

    class Meta:
        unknown = EXCLUDE

    @validates_schema
    def require_identifier(self, data, **kwargs):
        if not any((data.get(k) or "").strip() for k in ("identifier", "email", "username")):
            raise ValidationError("email or username is required", field_name="email")


class PasswordChangeSchema(Schema):
    old_password = fields.String(required=True, load_only=True)
    new_password = fields.String(required=True, load_only=True)

    class Meta:
        unknown = EXCLUDE

    @pre_load
    def accept_camel_case(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            for camel, snake in (("oldPassword", "old_password"), ("newPassword", "new_password")):
                if camel in data:
                    data.setdefault(snake, data.pop(camel))
        return data

    @validates("new_password")
    def validate_password(self, value, **kwargs):
        if len(value) < 8:
            raise ValidationError("Password must be at least 8 characters long.")


class UserOutSchema(Schema):
    id = fields.String(allow_none=False)
    username = fields.String()
    email = fields.String()
    fullname = fields.String(allow_none=True)
    created_at = fields.DateTime(allow_none=True)
