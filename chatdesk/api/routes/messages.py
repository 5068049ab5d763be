# chatdesk/api/routes/messages.py
# -*- coding: utf-8 -*-
"""
Message API Routes
Chatroom sends and the read-filtered timeline views.
"""
from flask import Blueprint, request, jsonify, current_app, abort
from flask_login import current_user
from marshmallow import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from chatdesk.extensions import db
from chatdesk.services.outbound_service import OutboundService, ChatroomTarget, SendOutcome
from chatdesk.services.inbound_service import InboundService
from chatdesk.utils.decorators import member_required
from chatdesk.utils.exceptions import ServiceError
from chatdesk.api.schemas.message_schemas import (
    MessageSchema, InboundMessageSchema, ChatroomSendSchema
)

messages_bp = Blueprint('messages_api', __name__)

message_schema = MessageSchema()
messages_schema = MessageSchema(many=True)
inbound_messages_schema = InboundMessageSchema(many=True)
chatroom_send_schema = ChatroomSendSchema()

MAX_LIMIT = 500


def send_response(outcome: SendOutcome):
    """
    Shape a SendOutcome for the API. A provider failure still reports the
    persisted message id and the remaining credit, under the provider's
    error kind and HTTP status.
    """
    message = outcome.message
    body = {
        "success": outcome.ok,
        "messageId": message.id,
        "providerMessageId": message.provider_message_id,
        "status": message.status,
        "remainingCredit": outcome.remaining_credit,
    }
    if outcome.ok:
        return jsonify(body), 200
    body.update(outcome.error.to_dict())
    return jsonify(body), outcome.error.status_code


def _limit() -> int:
    return max(1, min(request.args.get('limit', 100, type=int), MAX_LIMIT))


@messages_bp.route('/send', methods=['POST'])
@member_required
def send_to_contact():
    """Send a message to a contact through a chatroom."""
    json_data = request.get_json(silent=True)
    if not json_data:
        abort(400, description="No input data provided.")

    try:
        data = chatroom_send_schema.load(json_data)
    except ValidationError as err:
        current_app.logger.warning(f"Send validation error for user {current_user.id}: {err.messages}")
        return jsonify({"errors": err.messages}), 400

    target = ChatroomTarget(chatroom_id=data['chatroom_id'], contact_id=data['contact_id'])
    try:
        outcome = OutboundService.send_message(current_user._get_current_object(), target, data['body'])
    except ServiceError as e:
        db.session.rollback()
        current_app.logger.warning(f"Send refused for user {current_user.id} to {target}: {e.error_kind}: {e}")
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error sending message for user {current_user.id}: {e}")
        abort(500, description="Could not record the message.")

    return send_response(outcome)


@messages_bp.route('', methods=['GET'])
@member_required
def list_messages():
    """Unified timeline, restricted to chatrooms the caller may read. Optional ?chatroomId=."""
    chatroom_id = request.args.get('chatroomId', type=int)
    try:
        messages = OutboundService.timeline(current_user, chatroom_id=chatroom_id, limit=_limit())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(messages_schema.dump(messages)), 200


@messages_bp.route('/inbound', methods=['GET'])
@member_required
def list_inbound():
    """Raw inbound events, restricted to chatrooms the caller may read. Optional ?chatroomId=."""
    chatroom_id = request.args.get('chatroomId', type=int)
    try:
        inbound = InboundService.list_inbound(current_user, chatroom_id=chatroom_id, limit=_limit())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(inbound_messages_schema.dump(inbound)), 200


@messages_bp.route('/contacts/<int:contact_id>', methods=['GET'])
@member_required
def contact_messages(contact_id):
    """Every timeline entry with one contact, oldest first."""
    try:
        messages = OutboundService.contact_thread(current_user, contact_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(messages_schema.dump(messages)), 200
