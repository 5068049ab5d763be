# chatdesk/api/schemas/user_schemas.py
# -*- coding: utf-8 -*-
"""
Schemas for User API requests and responses.
"""
from marshmallow import Schema, fields, validate, EXCLUDE

ROLES = ['admin', 'user']
STATUSES = ['active', 'inactive', 'suspended']


# Base User Schema (for output, excluding sensitive info like password hash)
class UserSchema(Schema):
    id = fields.Int(dump_only=True)
    username = fields.Str(required=True)
    email = fields.Email(required=True)
    role = fields.Str(required=True, validate=validate.OneOf(ROLES))
    status = fields.Str(required=True, validate=validate.OneOf(STATUSES))
    full_name = fields.Str(allow_none=True, data_key="fullName")
    credit = fields.Method("get_credit", dump_only=True)
    created_at = fields.DateTime(dump_only=True, data_key="createdAt")
    updated_at = fields.DateTime(dump_only=True, data_key="updatedAt")

    def get_credit(self, obj):
        # Admins are unmetered
        if obj.is_admin:
            return 'unlimited'
        return obj.token_balance.balance if obj.token_balance else 0


# Schema for creating a new user (Admin Input)
class CreateUserSchema(Schema):
    username = fields.Str(required=True, validate=validate.Length(min=3, error="Username must be at least 3 characters long."))
    email = fields.Email(required=True)
    password = fields.Str(required=True, load_only=True, validate=validate.Length(min=8, error="Password must be at least 8 characters long."))
    role = fields.Str(load_default='user', validate=validate.OneOf(ROLES))
    status = fields.Str(load_default='active', validate=validate.OneOf(STATUSES))
    full_name = fields.Str(allow_none=True, data_key="fullName")
    initial_credits = fields.Int(load_default=0, validate=validate.Range(min=0), data_key="initialCredits")


# Schema for updating a user (Admin Input - Partial)
class UpdateUserSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.Email()
    role = fields.Str(validate=validate.OneOf(ROLES))
    status = fields.Str(validate=validate.OneOf(STATUSES))
    full_name = fields.Str(allow_none=True, data_key="fullName")
    password = fields.Str(load_only=True, validate=validate.Length(min=8, error="Password must be at least 8 characters long."))


# Admin grants credits to a user
class CreditTopUpSchema(Schema):
    amount = fields.Int(required=True, strict=True, validate=validate.Range(min=1, error="Amount must be at least 1."))


# Schema for user list pagination response
class UserListSchema(Schema):
    items = fields.List(fields.Nested(UserSchema()), required=True)
    page = fields.Int(required=True)
    perPage = fields.Int(required=True, attribute="per_page")
    total = fields.Int(required=True)
    pages = fields.Int(required=True)
