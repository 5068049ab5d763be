# chatdesk/api/schemas/line_schemas.py
# -*- coding: utf-8 -*-
"""
Schemas for Line (mini-chatroom) and Client Assignment API requests and responses.
"""
from marshmallow import Schema, fields, validate, EXCLUDE

from chatdesk.api.schemas.chatroom_schemas import ContactSchema


class LineSchema(Schema):
    id = fields.Int(dump_only=True)
    user_id = fields.Int(data_key="userId")
    real_number = fields.Str(data_key="realNumber")
    label = fields.Str(allow_none=True)
    assigned_chatroom_id = fields.Int(allow_none=True, data_key="assignedChatroomId")
    chatroom_name = fields.Str(attribute="chatroom.name", dump_only=True, allow_none=True, data_key="chatroomName")
    daily_message_limit = fields.Int(data_key="dailyMessageLimit")
    is_active = fields.Bool(data_key="isActive")
    created_at = fields.DateTime(dump_only=True, data_key="createdAt")


class CreateLineSchema(Schema):
    user_id = fields.Int(required=True, data_key="userId")
    real_number = fields.Str(required=True, validate=validate.Length(min=1, max=50), data_key="realNumber")
    label = fields.Str(allow_none=True, load_default=None)
    assigned_chatroom_id = fields.Int(allow_none=True, load_default=None, data_key="assignedChatroomId")
    daily_message_limit = fields.Int(allow_none=True, load_default=None, validate=validate.Range(min=1), data_key="dailyMessageLimit")
    is_active = fields.Bool(load_default=True, data_key="isActive")


class UpdateLineSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    label = fields.Str(allow_none=True)
    assigned_chatroom_id = fields.Int(allow_none=True, data_key="assignedChatroomId")
    daily_message_limit = fields.Int(validate=validate.Range(min=1), data_key="dailyMessageLimit")
    is_active = fields.Bool(data_key="isActive")


# A line as listed in the caller's inbox, with thread statistics
class LineSummarySchema(Schema):
    line = fields.Nested(LineSchema, dump_only=True)
    total_clients = fields.Int(dump_only=True, data_key="totalClients")
    active_clients = fields.Int(dump_only=True, data_key="activeClients")
    unread_count = fields.Int(dump_only=True, data_key="unreadCount")
    last_message_at = fields.DateTime(dump_only=True, allow_none=True, data_key="lastMessageAt")


class ClientAssignmentSchema(Schema):
    id = fields.Int(dump_only=True)
    line_id = fields.Int(dump_only=True, data_key="lineId")
    contact = fields.Nested(ContactSchema, dump_only=True)
    status = fields.Str(dump_only=True)
    label = fields.Str(dump_only=True, allow_none=True)
    last_message_at = fields.DateTime(dump_only=True, allow_none=True, data_key="lastMessageAt")
    last_message_content = fields.Str(dump_only=True, allow_none=True, data_key="lastMessageContent")
    unread_count = fields.Int(dump_only=True, data_key="unreadCount")
    last_read_at = fields.DateTime(dump_only=True, allow_none=True, data_key="lastReadAt")
    created_at = fields.DateTime(dump_only=True, data_key="createdAt")
