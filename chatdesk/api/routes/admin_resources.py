# chatdesk/api/routes/admin_resources.py
# -*- coding: utf-8 -*-
"""
Admin API Routes for the Resource Pool: loading entries and assigning them to users.
"""
from flask import Blueprint, request, jsonify, current_app, abort
from flask_login import current_user
from marshmallow import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from chatdesk.extensions import db
from chatdesk.services.resource_pool_service import ResourcePoolService
from chatdesk.utils.decorators import admin_required
from chatdesk.utils.exceptions import ServiceError
from chatdesk.api.schemas.resource_schemas import (
    ResourceSchema, CreateResourcesSchema, AssignResourcesSchema, ResourceListSchema
)

admin_resources_bp = Blueprint('admin_resources_api', __name__)

resources_schema = ResourceSchema(many=True)
create_resources_schema = CreateResourcesSchema()
assign_resources_schema = AssignResourcesSchema()
resource_list_schema = ResourceListSchema()


@admin_resources_bp.route('', methods=['GET'])
@admin_required
def list_pool():
    """Admin: Pool entries (paginated). Optional ?status= and ?assignedTo=."""
    pagination = ResourcePoolService.list_pool(
        import_status=request.args.get('status'),
        assigned_to_user_id=request.args.get('assignedTo', type=int),
        page=request.args.get('page', 1, type=int),
        per_page=request.args.get('per_page', 50, type=int),
    )
    return jsonify(resource_list_schema.dump({
        'items': pagination.items,
        'page': pagination.page,
        'per_page': pagination.per_page,
        'total': pagination.total,
        'pages': pagination.pages,
    })), 200


@admin_resources_bp.route('', methods=['POST'])
@admin_required
def add_entries():
    """Admin: Load already-parsed entries into the pool."""
    json_data = request.get_json(silent=True)
    if not json_data:
        abort(400, description="No input data provided.")
    try:
        data = create_resources_schema.load(json_data)
    except ValidationError as err:
        return jsonify({"errors": err.messages}), 400

    try:
        created = ResourcePoolService.add_entries(data['resources'])
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error loading resource pool entries: {e}")
        abort(500, description="Database error while loading resources.")

    current_app.logger.info(f"Admin {current_user.id} loaded {len(created)} resource pool entries")
    return jsonify(resources_schema.dump(created)), 201


@admin_resources_bp.route('/assign', methods=['POST'])
@admin_required
def assign_entries():
    """Admin: Assign entries to a user, or return them to the pool when userId is null."""
    json_data = request.get_json(silent=True)
    if not json_data:
        abort(400, description="No input data provided.")
    try:
        data = assign_resources_schema.load(json_data)
    except ValidationError as err:
        return jsonify({"errors": err.messages}), 400

    try:
        if data['user_id'] is None:
            count = ResourcePoolService.unassign(data['resource_ids'])
        else:
            count = ResourcePoolService.assign(data['resource_ids'], data['user_id'])
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error assigning resource pool entries: {e}")
        abort(500, description="Database error while assigning resources.")

    return jsonify({"updated": count, "userId": data['user_id']}), 200
