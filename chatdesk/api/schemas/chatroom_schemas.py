# chatdesk/api/schemas/chatroom_schemas.py
# -*- coding: utf-8 -*-
"""
Schemas for Chatroom, assignment and Contact API requests and responses.
"""
from marshmallow import Schema, fields, validate, EXCLUDE

from chatdesk.database.models.provider_account import PROVIDER_TYPES


class ChatroomSchema(Schema):
    id = fields.Int(dump_only=True)
    name = fields.Str()
    provider_type = fields.Str(data_key="providerType")
    sender_number_id = fields.Int(allow_none=True, data_key="senderNumberId")
    sender_number = fields.Str(attribute="sender_number.number", dump_only=True, allow_none=True, data_key="senderNumber")
    is_active = fields.Bool(data_key="isActive")
    description = fields.Str(allow_none=True)
    created_at = fields.DateTime(dump_only=True, data_key="createdAt")
    updated_at = fields.DateTime(dump_only=True, data_key="updatedAt")


class CreateChatroomSchema(Schema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    provider_type = fields.Str(load_default='sms', validate=validate.OneOf(PROVIDER_TYPES), data_key="providerType")
    sender_number_id = fields.Int(allow_none=True, load_default=None, data_key="senderNumberId")
    description = fields.Str(allow_none=True, load_default=None)
    is_active = fields.Bool(load_default=True, data_key="isActive")


class UpdateChatroomSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.Str(validate=validate.Length(min=1, max=100))
    provider_type = fields.Str(validate=validate.OneOf(PROVIDER_TYPES), data_key="providerType")
    sender_number_id = fields.Int(allow_none=True, data_key="senderNumberId")
    description = fields.Str(allow_none=True)
    is_active = fields.Bool(data_key="isActive")


class AssignUsersSchema(Schema):
    user_ids = fields.List(fields.Int(), required=True, validate=validate.Length(min=1), data_key="userIds")


# Chatroom as seen by a member, with its contact count
class MyChatroomSchema(Schema):
    chatroom = fields.Nested(ChatroomSchema, dump_only=True)
    contact_count = fields.Int(dump_only=True, data_key="contactCount")


class ContactSchema(Schema):
    id = fields.Int(dump_only=True)
    chatroom_id = fields.Int(dump_only=True, data_key="chatroomId")
    user_id = fields.Int(dump_only=True, allow_none=True, data_key="userId")
    name = fields.Str()
    phone_number = fields.Str(data_key="phoneNumber")
    email = fields.Str(allow_none=True)
    tags = fields.List(fields.Str())
    is_favorite = fields.Bool(data_key="isFavorite")
    added_via = fields.Str(dump_only=True, data_key="addedVia")
    last_message_at = fields.DateTime(dump_only=True, allow_none=True, data_key="lastMessageAt")
    last_message_preview = fields.Str(dump_only=True, allow_none=True, data_key="lastMessagePreview")
    created_at = fields.DateTime(dump_only=True, data_key="createdAt")


class CreateContactSchema(Schema):
    phone_number = fields.Str(required=True, validate=validate.Length(min=1, max=50), data_key="phoneNumber")
    name = fields.Str(allow_none=True, load_default=None)
    email = fields.Email(allow_none=True, load_default=None)
    tags = fields.List(fields.Str(), load_default=list)
