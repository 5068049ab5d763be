# chatdesk/api/schemas/message_schemas.py
# -*- coding: utf-8 -*-
"""
Schemas for message send requests, timeline output and the generic inbound webhook.
"""
from marshmallow import Schema, fields, validate, EXCLUDE


class MessageSchema(Schema):
    id = fields.Int(dump_only=True)
    direction = fields.Str(dump_only=True)
    from_address = fields.Str(dump_only=True, data_key="from")
    to_address = fields.Str(dump_only=True, data_key="to")
    body = fields.Str(dump_only=True)
    channel_type = fields.Str(dump_only=True, data_key="channelType")
    chatroom_id = fields.Int(dump_only=True, allow_none=True, data_key="chatroomId")
    contact_id = fields.Int(dump_only=True, allow_none=True, data_key="contactId")
    user_id = fields.Int(dump_only=True, allow_none=True, data_key="userId")
    line_id = fields.Int(dump_only=True, allow_none=True, data_key="lineId")
    client_assignment_id = fields.Int(dump_only=True, allow_none=True, data_key="clientAssignmentId")
    status = fields.Str(dump_only=True, allow_none=True)
    provider_message_id = fields.Str(dump_only=True, allow_none=True, data_key="providerMessageId")
    provider_status = fields.Str(dump_only=True, allow_none=True, data_key="providerStatus")
    error_detail = fields.Str(dump_only=True, allow_none=True, data_key="errorDetail")
    is_read = fields.Bool(dump_only=True, data_key="isRead")
    created_at = fields.DateTime(dump_only=True, data_key="createdAt")
    sent_at = fields.DateTime(dump_only=True, allow_none=True, data_key="sentAt")
    delivered_at = fields.DateTime(dump_only=True, allow_none=True, data_key="deliveredAt")


class InboundMessageSchema(Schema):
    id = fields.Int(dump_only=True)
    from_address = fields.Str(dump_only=True, data_key="from")
    to_address = fields.Str(dump_only=True, data_key="to")
    chatroom_id = fields.Int(dump_only=True, data_key="chatroomId")
    body = fields.Str(dump_only=True)
    provider_message_id = fields.Str(dump_only=True, allow_none=True, data_key="providerMessageId")
    created_at = fields.DateTime(dump_only=True, data_key="createdAt")


# --- Send requests ---

class ChatroomSendSchema(Schema):
    chatroom_id = fields.Int(required=True, data_key="chatroomId")
    contact_id = fields.Int(required=True, data_key="contactId")
    body = fields.Str(required=True, validate=validate.Length(min=1, max=1600))


class LineSendSchema(Schema):
    client_assignment_id = fields.Int(required=True, data_key="clientAssignmentId")
    body = fields.Str(required=True, validate=validate.Length(min=1, max=1600))


class UnreadSchema(Schema):
    chatroom_id = fields.Int(dump_only=True, data_key="chatroomId")
    unread = fields.Int(dump_only=True)


# --- Generic inbound webhook (providers without a dedicated adapter format) ---

class GenericInboundSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    from_address = fields.Str(required=True, data_key="from")
    to_address = fields.Str(required=True, data_key="to")
    body = fields.Str(required=True)
    provider_message_id = fields.Str(allow_none=True, load_default=None, data_key="providerMessageId")


class GenericStatusSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    provider_message_id = fields.Str(required=True, data_key="providerMessageId")
    status = fields.Str(required=True, validate=validate.OneOf(['sent', 'delivered', 'read', 'failed']))
    error_detail = fields.Str(allow_none=True, load_default=None, data_key="errorDetail")
