# chatdesk/api/routes/admin_users.py
# -*- coding: utf-8 -*-
"""
Admin API Routes for User Management and credit top-ups.
"""
from flask import Blueprint, request, jsonify, current_app, abort
from flask_login import current_user
from marshmallow import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from chatdesk.extensions import db
from chatdesk.services.user_service import UserService
from chatdesk.services.token_ledger import TokenLedger
from chatdesk.utils.decorators import admin_required
from chatdesk.utils.exceptions import ServiceError
from chatdesk.api.schemas.user_schemas import (
    UserSchema, CreateUserSchema, UpdateUserSchema, CreditTopUpSchema, UserListSchema
)

admin_users_bp = Blueprint('admin_users_api', __name__)

user_schema = UserSchema()
create_user_schema = CreateUserSchema()
update_user_schema = UpdateUserSchema()
credit_top_up_schema = CreditTopUpSchema()
user_list_schema = UserListSchema()


@admin_users_bp.route('', methods=['POST'])
@admin_required
def admin_create_user():
    """Admin: Create a new user with an optional starting credit."""
    json_data = request.get_json(silent=True)
    if not json_data:
        abort(400, description="No input data provided.")

    try:
        data = create_user_schema.load(json_data)
    except ValidationError as err:
        current_app.logger.warning(f"Admin create user validation error: {err.messages}")
        return jsonify({"errors": err.messages}), 400

    try:
        new_user = UserService.create_user(**data)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        current_app.logger.warning(f"Admin create user refused: {e}")
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database commit error creating user: {e}")
        abort(500, description="Database error during user creation.")

    current_app.logger.info(f"Admin {current_user.id} created user {new_user.id} ('{new_user.username}')")
    return jsonify(user_schema.dump(new_user)), 201


@admin_users_bp.route('', methods=['GET'])
@admin_required
def admin_get_users():
    """Admin: Get list of users (paginated)."""
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 20, type=int)

    paginated_users = UserService.get_all_users(page=page, per_page=per_page)
    result_data = {
        'items': paginated_users.items,
        'page': paginated_users.page,
        'per_page': paginated_users.per_page,
        'total': paginated_users.total,
        'pages': paginated_users.pages
    }
    return jsonify(user_list_schema.dump(result_data)), 200


@admin_users_bp.route('/<int:user_id>', methods=['GET'])
@admin_required
def admin_get_user(user_id):
    """Admin: Get details for a specific user."""
    user = UserService.get_user_by_id(user_id)
    if not user:
        abort(404, description=f"User with ID {user_id} not found.")
    return jsonify(user_schema.dump(user)), 200


@admin_users_bp.route('/<int:user_id>', methods=['PUT'])
@admin_required
def admin_update_user(user_id):
    """Admin: Update user details (email, role, status, name, password)."""
    json_data = request.get_json(silent=True)
    if not json_data:
        abort(400, description="No input data provided.")

    try:
        data_to_update = update_user_schema.load(json_data)
    except ValidationError as err:
        current_app.logger.warning(f"Admin update user validation error for ID {user_id}: {err.messages}")
        return jsonify({"errors": err.messages}), 400

    if not data_to_update:
        abort(400, description="No valid fields provided for update.")

    try:
        updated_user = UserService.update_user(user_id, **data_to_update)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        current_app.logger.warning(f"Admin update user {user_id} refused: {e}")
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database commit error updating user {user_id}: {e}")
        abort(500, description="Database error during user update.")

    current_app.logger.info(f"Admin {current_user.id} updated user {user_id}")
    return jsonify(user_schema.dump(updated_user)), 200


@admin_users_bp.route('/<int:user_id>/credits', methods=['POST'])
@admin_required
def admin_top_up_credits(user_id):
    """Admin: Grant send credits to a user."""
    json_data = request.get_json(silent=True)
    if not json_data:
        abort(400, description="No input data provided.")

    try:
        data = credit_top_up_schema.load(json_data)
    except ValidationError as err:
        return jsonify({"errors": err.messages}), 400

    try:
        standing = TokenLedger.top_up(user_id, data['amount'])
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database commit error topping up user {user_id}: {e}")
        abort(500, description="Database error during credit top-up.")

    current_app.logger.info(f"Admin {current_user.id} granted {data['amount']} credits to user {user_id}")
    return jsonify({"userId": user_id, "balance": standing.remaining}), 200
