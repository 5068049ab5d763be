# chatdesk/api/routes/chatrooms.py
# -*- coding: utf-8 -*-
"""
Chatroom API Routes (members)
Chatrooms the caller belongs to and their contacts.
"""
from flask import Blueprint, request, jsonify, current_app, abort
from flask_login import current_user
from marshmallow import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from chatdesk.extensions import db
from chatdesk.services.chatroom_service import ChatroomService
from chatdesk.utils.decorators import member_required
from chatdesk.utils.exceptions import ServiceError
from chatdesk.api.schemas.chatroom_schemas import MyChatroomSchema, ContactSchema, CreateContactSchema

chatrooms_bp = Blueprint('chatrooms_api', __name__)

my_chatrooms_schema = MyChatroomSchema(many=True)
contact_schema = ContactSchema()
contacts_schema = ContactSchema(many=True)
create_contact_schema = CreateContactSchema()


@chatrooms_bp.route('/mine', methods=['GET'])
@member_required
def my_chatrooms():
    """Chatrooms the caller may read, with contact counts."""
    return jsonify(my_chatrooms_schema.dump(ChatroomService.my_chatrooms(current_user))), 200


@chatrooms_bp.route('/<int:chatroom_id>/contacts', methods=['GET'])
@member_required
def list_contacts(chatroom_id):
    try:
        contacts = ChatroomService.list_contacts(current_user, chatroom_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(contacts_schema.dump(contacts)), 200


@chatrooms_bp.route('/<int:chatroom_id>/contacts', methods=['POST'])
@member_required
def add_contact(chatroom_id):
    """Add a contact to a chatroom by hand."""
    json_data = request.get_json(silent=True)
    if not json_data:
        abort(400, description="No input data provided.")

    try:
        data = create_contact_schema.load(json_data)
    except ValidationError as err:
        return jsonify({"errors": err.messages}), 400

    try:
        contact = ChatroomService.add_contact(current_user, chatroom_id, **data)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        current_app.logger.warning(f"Add contact to chatroom {chatroom_id} refused for user {current_user.id}: {e}")
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error adding contact to chatroom {chatroom_id}: {e}")
        abort(500, description="Could not add contact.")

    return jsonify(contact_schema.dump(contact)), 201
