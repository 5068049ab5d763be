# chatdesk/api/routes/resources.py
# -*- coding: utf-8 -*-
"""
Resource Pool API Routes (members)
The caller's assigned resources and their import into chatrooms and lines.
"""
from flask import Blueprint, request, jsonify, current_app, abort
from flask_login import current_user
from marshmallow import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from chatdesk.extensions import db
from chatdesk.services.resource_pool_service import ResourcePoolService
from chatdesk.utils.decorators import member_required
from chatdesk.utils.exceptions import ServiceError
from chatdesk.api.schemas.resource_schemas import (
    ResourceSchema, ResourceInputSchema, ImportToChatroomSchema, ImportToLineSchema, ImportSummarySchema
)

resources_bp = Blueprint('resources_api', __name__)

resource_schema = ResourceSchema()
resources_schema = ResourceSchema(many=True)
resource_input_schema = ResourceInputSchema()
import_to_chatroom_schema = ImportToChatroomSchema()
import_to_line_schema = ImportToLineSchema()
import_summary_schema = ImportSummarySchema()


def _load(schema):
    json_data = request.get_json(silent=True)
    if not json_data:
        abort(400, description="No input data provided.")
    return schema.load(json_data)


@resources_bp.route('', methods=['GET'])
@member_required
def my_resources():
    """Resources assigned to the caller. Optional ?status=assigned|imported."""
    status = request.args.get('status')
    return jsonify(resources_schema.dump(ResourcePoolService.my_resources(current_user, import_status=status))), 200


@resources_bp.route('', methods=['POST'])
@member_required
def add_resource():
    """Add a resource straight into the caller's pool."""
    try:
        data = _load(resource_input_schema)
    except ValidationError as err:
        return jsonify({"errors": err.messages}), 400

    data.pop('company', None)
    try:
        resource = ResourcePoolService.add_own_resource(current_user, **data)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error adding resource for user {current_user.id}: {e}")
        abort(500, description="Could not add resource.")

    return jsonify(resource_schema.dump(resource)), 201


@resources_bp.route('/import-to-chatroom', methods=['POST'])
@member_required
def import_to_chatroom():
    try:
        data = _load(import_to_chatroom_schema)
    except ValidationError as err:
        return jsonify({"errors": err.messages}), 400

    try:
        summary = ResourcePoolService.import_to_chatroom(current_user, data['resource_ids'], data['chatroom_id'])
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        current_app.logger.warning(f"Resource import to chatroom refused for user {current_user.id}: {e}")
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error importing resources for user {current_user.id}: {e}")
        abort(500, description="Could not import resources.")

    return jsonify(import_summary_schema.dump(summary)), 200


@resources_bp.route('/import-to-line', methods=['POST'])
@member_required
def import_to_line():
    try:
        data = _load(import_to_line_schema)
    except ValidationError as err:
        return jsonify({"errors": err.messages}), 400

    try:
        summary = ResourcePoolService.import_to_line(current_user, data['resource_ids'], data['line_id'])
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        current_app.logger.warning(f"Resource import to line refused for user {current_user.id}: {e}")
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error importing resources for user {current_user.id}: {e}")
        abort(500, description="Could not import resources.")

    return jsonify(import_summary_schema.dump(summary)), 200
