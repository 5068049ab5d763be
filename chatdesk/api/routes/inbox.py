# chatdesk/api/routes/inbox.py
# -*- coding: utf-8 -*-
"""
Inbox API Routes
The line (mini-chatroom) inbox: the caller's lines, their client threads,
thread conversations, line sends and unread bookkeeping.
"""
from flask import Blueprint, request, jsonify, current_app, abort
from flask_login import current_user
from marshmallow import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from chatdesk.extensions import db
from chatdesk.services.line_service import LineService
from chatdesk.services.outbound_service import OutboundService, LineTarget
from chatdesk.utils.decorators import member_required
from chatdesk.utils.exceptions import ServiceError
from chatdesk.api.routes.messages import send_response
from chatdesk.api.schemas.line_schemas import LineSummarySchema, ClientAssignmentSchema
from chatdesk.api.schemas.message_schemas import MessageSchema, LineSendSchema, UnreadSchema

inbox_bp = Blueprint('inbox_api', __name__)

line_summaries_schema = LineSummarySchema(many=True)
client_assignment_schema = ClientAssignmentSchema()
client_assignments_schema = ClientAssignmentSchema(many=True)
messages_schema = MessageSchema(many=True)
line_send_schema = LineSendSchema()
unread_schema = UnreadSchema(many=True)


@inbox_bp.route('/lines', methods=['GET'])
@member_required
def my_lines():
    """The caller's active lines with unread totals."""
    return jsonify(line_summaries_schema.dump(LineService.my_lines(current_user))), 200


@inbox_bp.route('/lines/<int:line_id>/clients', methods=['GET'])
@member_required
def line_clients(line_id):
    try:
        clients = LineService.list_clients(current_user, line_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(client_assignments_schema.dump(clients)), 200


@inbox_bp.route('/clients/<int:client_assignment_id>/messages', methods=['GET'])
@member_required
def client_messages(client_assignment_id):
    try:
        messages = LineService.conversation(current_user, client_assignment_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(messages_schema.dump(messages)), 200


@inbox_bp.route('/send', methods=['POST'])
@member_required
def send_to_client():
    """Send a message to a client through the caller's line."""
    json_data = request.get_json(silent=True)
    if not json_data:
        abort(400, description="No input data provided.")

    try:
        data = line_send_schema.load(json_data)
    except ValidationError as err:
        current_app.logger.warning(f"Line send validation error for user {current_user.id}: {err.messages}")
        return jsonify({"errors": err.messages}), 400

    target = LineTarget(client_assignment_id=data['client_assignment_id'])
    try:
        outcome = OutboundService.send_message(current_user._get_current_object(), target, data['body'])
    except ServiceError as e:
        db.session.rollback()
        current_app.logger.warning(f"Line send refused for user {current_user.id} to {target}: {e.error_kind}: {e}")
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error sending line message for user {current_user.id}: {e}")
        abort(500, description="Could not record the message.")

    return send_response(outcome)


@inbox_bp.route('/clients/<int:client_assignment_id>/read', methods=['PATCH'])
@member_required
def mark_client_read(client_assignment_id):
    """Reset a thread's unread counter."""
    try:
        assignment = LineService.mark_read(current_user, client_assignment_id)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error marking thread {client_assignment_id} read: {e}")
        abort(500, description="Could not mark messages as read.")

    return jsonify({"success": True, "assignment": client_assignment_schema.dump(assignment)}), 200


@inbox_bp.route('/unread', methods=['GET'])
@member_required
def unread_counts():
    """Unread inbound message count per chatroom the caller may read."""
    return jsonify(unread_schema.dump(OutboundService.unread_by_chatroom(current_user))), 200
