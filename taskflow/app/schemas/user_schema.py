"""
schemas/user_schema.py — Marshmallow schemas for /api/users endpoints.

Validation responsibility:
  - This file: field presence, types, lengths, formats, role normalisation.
  - services/user_service.py: DUPLICATE_EMAIL (requires a DB lookup).

IMPORTANT: All schemas inherit from marshmallow.Schema directly.
           Do NOT use ma.Schema — it requires an active Flask app context
           and breaks unit tests. See extensions.py.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, pre_load, validate, validates

from taskflow.app.errors import ErrorCode
from taskflow.app.models.enums import Role


class RegisterSchema(Schema):
    """
    POST /api/users/register

    Field rules:
      username : 3–50 chars, alphanumeric + underscore only
      email    : valid email format
      password : min 8 chars, at least one letter and one digit
      role     : optional, 'regular' (default) or 'admin', any letter case
    """

    username = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=3,
                max=50,
                error="Username must be between 3 and 50 characters.",
            ),
            validate.Regexp(
                r"^[a-zA-Z0-9_]+$",
                error="Username may only contain letters, numbers, and underscores.",
            ),
        ],
    )

    email = fields.Email(
        required=True,
        validate=validate.Length(max=255),
    )

    password = fields.Str(required=True, load_only=True)

    role = fields.Str(load_default=Role.REGULAR.value)

    @pre_load
    def normalise(self, data, **kwargs):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if isinstance(data.get("email"), str):
            data["email"] = data["email"].strip().lower()
        if isinstance(data.get("role"), str):
            data["role"] = data["role"].strip().lower()
        return data

    @validates("password")
    def validate_password_strength(self, value: str, **kwargs) -> None:
        if len(value) < 8:
            raise ValidationError("Password must be at least 8 characters long.")
        if not any(c.isalpha() for c in value):
            raise ValidationError("Password must contain at least one letter.")
        if not any(c.isdigit() for c in value):
            raise ValidationError("Password must contain at least one digit.")

    @validates("role")
    def validate_role(self, value: str, **kwargs) -> None:
        try:
            Role.parse(value)
        except ValueError:
            raise ValidationError(ErrorCode.INVALID_ROLE)


class LoginSchema(Schema):
    """
    POST /api/users/login

    Credential correctness is checked in user_service.py
    (USER_NOT_FOUND 404, INVALID_CREDENTIALS 401).
    """

    email = fields.Email(required=True)
    password = fields.Str(required=True, load_only=True)

    @pre_load
    def normalise(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get("email"), str):
            data = {**data, "email": data["email"].strip().lower()}
        return data
