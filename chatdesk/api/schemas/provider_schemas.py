# chatdesk/api/schemas/provider_schemas.py
# -*- coding: utf-8 -*-
"""
Schemas for Provider Account and Sender Number API requests and responses.
Credentials are write-only on input and masked on output.
"""
from marshmallow import Schema, fields, validate, EXCLUDE

from chatdesk.database.models.provider_account import PROVIDER_TYPES
from chatdesk.providers.base import ProviderKind
from chatdesk.services.provider_account_service import mask_credentials

PROVIDER_KINDS = [kind.value for kind in ProviderKind]


# --- Provider Accounts ---

class ProviderAccountSchema(Schema):
    id = fields.Int(dump_only=True)
    provider_type = fields.Str(data_key="providerType")
    provider_kind = fields.Str(data_key="providerKind")
    provider_name = fields.Str(data_key="providerName")
    credentials = fields.Method("get_masked_credentials", dump_only=True)
    is_active = fields.Bool(data_key="isActive")
    created_by = fields.Int(dump_only=True, allow_none=True, data_key="createdBy")
    created_at = fields.DateTime(dump_only=True, data_key="createdAt")
    updated_at = fields.DateTime(dump_only=True, data_key="updatedAt")

    def get_masked_credentials(self, obj):
        return mask_credentials(obj.credentials)


class CreateProviderAccountSchema(Schema):
    provider_type = fields.Str(load_default='sms', validate=validate.OneOf(PROVIDER_TYPES), data_key="providerType")
    provider_kind = fields.Str(required=True, validate=validate.OneOf(PROVIDER_KINDS), data_key="providerKind")
    provider_name = fields.Str(required=True, validate=validate.Length(min=1, max=100), data_key="providerName")
    credentials = fields.Dict(keys=fields.Str(), load_default=dict, load_only=True)
    is_active = fields.Bool(load_default=True, data_key="isActive")


class UpdateProviderAccountSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    provider_type = fields.Str(validate=validate.OneOf(PROVIDER_TYPES), data_key="providerType")
    provider_kind = fields.Str(validate=validate.OneOf(PROVIDER_KINDS), data_key="providerKind")
    provider_name = fields.Str(validate=validate.Length(min=1, max=100), data_key="providerName")
    credentials = fields.Dict(keys=fields.Str(), load_only=True)
    is_active = fields.Bool(data_key="isActive")


class ConnectionResultSchema(Schema):
    ok = fields.Bool(dump_only=True)
    message = fields.Str(dump_only=True)


# --- Sender Numbers ---

class SenderNumberSchema(Schema):
    id = fields.Int(dump_only=True)
    label = fields.Str(allow_none=True)
    number = fields.Str()
    channel_type = fields.Str(data_key="channelType")
    provider_account_id = fields.Int(allow_none=True, data_key="providerAccountId")
    is_active = fields.Bool(data_key="isActive")
    region = fields.Str(allow_none=True)
    created_at = fields.DateTime(dump_only=True, data_key="createdAt")


class CreateSenderNumberSchema(Schema):
    number = fields.Str(required=True, validate=validate.Length(min=1, max=50))
    label = fields.Str(allow_none=True, load_default=None)
    channel_type = fields.Str(load_default='sms', validate=validate.OneOf(PROVIDER_TYPES), data_key="channelType")
    provider_account_id = fields.Int(allow_none=True, load_default=None, data_key="providerAccountId")
    is_active = fields.Bool(load_default=True, data_key="isActive")
    region = fields.Str(allow_none=True, load_default=None)


class UpdateSenderNumberSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    label = fields.Str(allow_none=True)
    channel_type = fields.Str(validate=validate.OneOf(PROVIDER_TYPES), data_key="channelType")
    provider_account_id = fields.Int(allow_none=True, data_key="providerAccountId")
    is_active = fields.Bool(data_key="isActive")
    region = fields.Str(allow_none=True)
