# chatdesk/api/routes/admin_chatrooms.py
# -*- coding: utf-8 -*-
"""
Admin API Routes for Chatrooms, their user assignments, and Lines.
"""
from flask import Blueprint, request, jsonify, current_app, abort
from flask_login import current_user
from marshmallow import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from chatdesk.extensions import db
from chatdesk.services.chatroom_service import ChatroomService
from chatdesk.services.line_service import LineService
from chatdesk.utils.decorators import admin_required
from chatdesk.utils.exceptions import ServiceError
from chatdesk.api.schemas.chatroom_schemas import (
    ChatroomSchema, CreateChatroomSchema, UpdateChatroomSchema, AssignUsersSchema
)
from chatdesk.api.schemas.line_schemas import LineSchema, CreateLineSchema, UpdateLineSchema
from chatdesk.api.schemas.user_schemas import UserSchema

admin_chatrooms_bp = Blueprint('admin_chatrooms_api', __name__)
admin_lines_bp = Blueprint('admin_lines_api', __name__)

chatroom_schema = ChatroomSchema()
chatrooms_schema = ChatroomSchema(many=True)
create_chatroom_schema = CreateChatroomSchema()
update_chatroom_schema = UpdateChatroomSchema()
assign_users_schema = AssignUsersSchema()
users_schema = UserSchema(many=True)
line_schema = LineSchema()
lines_schema = LineSchema(many=True)
create_line_schema = CreateLineSchema()
update_line_schema = UpdateLineSchema()


def _json_body():
    json_data = request.get_json(silent=True)
    if not json_data:
        abort(400, description="No input data provided.")
    return json_data


# --- Chatrooms ---

@admin_chatrooms_bp.route('', methods=['GET'])
@admin_required
def list_chatrooms():
    return jsonify(chatrooms_schema.dump(ChatroomService.list_chatrooms())), 200


@admin_chatrooms_bp.route('', methods=['POST'])
@admin_required
def create_chatroom():
    try:
        data = create_chatroom_schema.load(_json_body())
    except ValidationError as err:
        return jsonify({"errors": err.messages}), 400

    try:
        chatroom = ChatroomService.create_chatroom(**data)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        current_app.logger.warning(f"Admin create chatroom refused: {e}")
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error creating chatroom: {e}")
        abort(500, description="Database error during chatroom creation.")

    current_app.logger.info(f"Admin {current_user.id} created chatroom {chatroom.id} ('{chatroom.name}')")
    return jsonify(chatroom_schema.dump(chatroom)), 201


@admin_chatrooms_bp.route('/<int:chatroom_id>', methods=['GET'])
@admin_required
def get_chatroom(chatroom_id):
    try:
        chatroom = ChatroomService.get_chatroom(chatroom_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(chatroom_schema.dump(chatroom)), 200


@admin_chatrooms_bp.route('/<int:chatroom_id>', methods=['PATCH'])
@admin_required
def update_chatroom(chatroom_id):
    try:
        data = update_chatroom_schema.load(_json_body())
    except ValidationError as err:
        return jsonify({"errors": err.messages}), 400

    try:
        chatroom = ChatroomService.update_chatroom(chatroom_id, **data)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error updating chatroom {chatroom_id}: {e}")
        abort(500, description="Database error during chatroom update.")

    return jsonify(chatroom_schema.dump(chatroom)), 200


@admin_chatrooms_bp.route('/<int:chatroom_id>', methods=['DELETE'])
@admin_required
def delete_chatroom(chatroom_id):
    try:
        ChatroomService.delete_chatroom(chatroom_id)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error deleting chatroom {chatroom_id}: {e}")
        abort(500, description="Database error during chatroom deletion.")

    current_app.logger.info(f"Admin {current_user.id} deleted chatroom {chatroom_id}")
    return '', 204


@admin_chatrooms_bp.route('/<int:chatroom_id>/users', methods=['GET'])
@admin_required
def chatroom_users(chatroom_id):
    try:
        users = ChatroomService.chatroom_users(chatroom_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(users_schema.dump(users)), 200


@admin_chatrooms_bp.route('/<int:chatroom_id>/users', methods=['POST'])
@admin_required
def assign_users(chatroom_id):
    try:
        data = assign_users_schema.load(_json_body())
    except ValidationError as err:
        return jsonify({"errors": err.messages}), 400

    try:
        created = ChatroomService.assign_users(chatroom_id, data['user_ids'])
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error assigning users to chatroom {chatroom_id}: {e}")
        abort(500, description="Database error during user assignment.")

    return jsonify({"assigned": created, "message": f"Assigned {created} users to chatroom"}), 200


@admin_chatrooms_bp.route('/<int:chatroom_id>/users/<int:user_id>', methods=['DELETE'])
@admin_required
def unassign_user(chatroom_id, user_id):
    try:
        ChatroomService.unassign_user(chatroom_id, user_id)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error removing user {user_id} from chatroom {chatroom_id}: {e}")
        abort(500, description="Database error during user removal.")

    return '', 204


# --- Lines ---

@admin_lines_bp.route('', methods=['GET'])
@admin_required
def list_lines():
    user_id = request.args.get('userId', type=int)
    return jsonify(lines_schema.dump(LineService.list_all_lines(user_id=user_id))), 200


@admin_lines_bp.route('', methods=['POST'])
@admin_required
def create_line():
    try:
        data = create_line_schema.load(_json_body())
    except ValidationError as err:
        return jsonify({"errors": err.messages}), 400

    try:
        line = LineService.create_line(**data)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error creating line: {e}")
        abort(500, description="Database error during line creation.")

    current_app.logger.info(f"Admin {current_user.id} created line {line.id} for user {line.user_id}")
    return jsonify(line_schema.dump(line)), 201


@admin_lines_bp.route('/<int:line_id>', methods=['PATCH'])
@admin_required
def update_line(line_id):
    try:
        data = update_line_schema.load(_json_body())
    except ValidationError as err:
        return jsonify({"errors": err.messages}), 400

    try:
        line = LineService.update_line(line_id, **data)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error updating line {line_id}: {e}")
        abort(500, description="Database error during line update.")

    return jsonify(line_schema.dump(line)), 200


@admin_lines_bp.route('/<int:line_id>', methods=['DELETE'])
@admin_required
def delete_line(line_id):
    try:
        LineService.delete_line(line_id)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error deleting line {line_id}: {e}")
        abort(500, description="Database error during line deletion.")

    return '', 204
