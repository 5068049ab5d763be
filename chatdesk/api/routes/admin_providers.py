# chatdesk/api/routes/admin_providers.py
# -*- coding: utf-8 -*-
"""
Admin API Routes for Provider Accounts and Sender Numbers.
Credentials are accepted on input and only ever returned masked.
"""
from flask import Blueprint, request, jsonify, current_app, abort
from flask_login import current_user
from marshmallow import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from chatdesk.extensions import db
from chatdesk.services.provider_account_service import ProviderAccountService
from chatdesk.services.sender_number_service import SenderNumberService
from chatdesk.utils.decorators import admin_required
from chatdesk.utils.exceptions import ServiceError
from chatdesk.api.schemas.provider_schemas import (
    ProviderAccountSchema, CreateProviderAccountSchema, UpdateProviderAccountSchema, ConnectionResultSchema,
    SenderNumberSchema, CreateSenderNumberSchema, UpdateSenderNumberSchema,
)

admin_providers_bp = Blueprint('admin_providers_api', __name__)
admin_sender_numbers_bp = Blueprint('admin_sender_numbers_api', __name__)

provider_schema = ProviderAccountSchema()
providers_schema = ProviderAccountSchema(many=True)
create_provider_schema = CreateProviderAccountSchema()
update_provider_schema = UpdateProviderAccountSchema()
connection_result_schema = ConnectionResultSchema()
sender_number_schema = SenderNumberSchema()
sender_numbers_schema = SenderNumberSchema(many=True)
create_sender_number_schema = CreateSenderNumberSchema()
update_sender_number_schema = UpdateSenderNumberSchema()


def _json_body():
    json_data = request.get_json(silent=True)
    if not json_data:
        abort(400, description="No input data provided.")
    return json_data


# --- Provider Accounts ---

@admin_providers_bp.route('', methods=['GET'])
@admin_required
def list_providers():
    return jsonify(providers_schema.dump(ProviderAccountService.list_accounts())), 200


@admin_providers_bp.route('', methods=['POST'])
@admin_required
def create_provider():
    try:
        data = create_provider_schema.load(_json_body())
    except ValidationError as err:
        return jsonify({"errors": err.messages}), 400

    try:
        account = ProviderAccountService.create_account(created_by=current_user.id, **data)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error creating provider account: {e}")
        abort(500, description="Database error during provider creation.")

    current_app.logger.info(f"Admin {current_user.id} created provider account {account.id} ({account.provider_kind})")
    return jsonify(provider_schema.dump(account)), 201


@admin_providers_bp.route('/<int:account_id>', methods=['GET'])
@admin_required
def get_provider(account_id):
    try:
        account = ProviderAccountService.get_account(account_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(provider_schema.dump(account)), 200


@admin_providers_bp.route('/<int:account_id>', methods=['PATCH'])
@admin_required
def update_provider(account_id):
    try:
        data = update_provider_schema.load(_json_body())
    except ValidationError as err:
        return jsonify({"errors": err.messages}), 400

    try:
        account = ProviderAccountService.update_account(account_id, **data)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error updating provider account {account_id}: {e}")
        abort(500, description="Database error during provider update.")

    return jsonify(provider_schema.dump(account)), 200


@admin_providers_bp.route('/<int:account_id>', methods=['DELETE'])
@admin_required
def delete_provider(account_id):
    try:
        ProviderAccountService.delete_account(account_id)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        current_app.logger.warning(f"Delete provider account {account_id} refused: {e}")
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error deleting provider account {account_id}: {e}")
        abort(500, description="Database error during provider deletion.")

    current_app.logger.info(f"Admin {current_user.id} deleted provider account {account_id}")
    return '', 204


@admin_providers_bp.route('/<int:account_id>/test', methods=['POST'])
@admin_required
def test_provider(account_id):
    """Check the stored credentials against the provider without sending anything."""
    try:
        result = ProviderAccountService.test_connection(account_id)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(connection_result_schema.dump(result)), 200


# --- Sender Numbers ---

@admin_sender_numbers_bp.route('', methods=['GET'])
@admin_required
def list_sender_numbers():
    active_only = request.args.get('active', 'false').lower() in ('true', '1')
    return jsonify(sender_numbers_schema.dump(SenderNumberService.list_numbers(active_only=active_only))), 200


@admin_sender_numbers_bp.route('', methods=['POST'])
@admin_required
def create_sender_number():
    try:
        data = create_sender_number_schema.load(_json_body())
    except ValidationError as err:
        return jsonify({"errors": err.messages}), 400

    try:
        sender = SenderNumberService.create_number(**data)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error creating sender number: {e}")
        abort(500, description="Database error during sender number creation.")

    return jsonify(sender_number_schema.dump(sender)), 201


@admin_sender_numbers_bp.route('/<int:sender_number_id>', methods=['PATCH'])
@admin_required
def update_sender_number(sender_number_id):
    try:
        data = update_sender_number_schema.load(_json_body())
    except ValidationError as err:
        return jsonify({"errors": err.messages}), 400

    try:
        sender = SenderNumberService.update_number(sender_number_id, **data)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error updating sender number {sender_number_id}: {e}")
        abort(500, description="Database error during sender number update.")

    return jsonify(sender_number_schema.dump(sender)), 200


@admin_sender_numbers_bp.route('/<int:sender_number_id>', methods=['DELETE'])
@admin_required
def delete_sender_number(sender_number_id):
    try:
        SenderNumberService.delete_number(sender_number_id)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error deleting sender number {sender_number_id}: {e}")
        abort(500, description="Database error during sender number deletion.")

    return '', 204
