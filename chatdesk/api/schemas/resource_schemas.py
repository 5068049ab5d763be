# chatdesk/api/schemas/resource_schemas.py
# -*- coding: utf-8 -*-
"""
Schemas for Resource Pool API requests and responses.
"""
from marshmallow import Schema, fields, validate


class ResourceSchema(Schema):
    id = fields.Int(dump_only=True)
    phone_number = fields.Str(data_key="phoneNumber")
    first_name = fields.Str(allow_none=True, data_key="firstName")
    last_name = fields.Str(allow_none=True, data_key="lastName")
    email = fields.Str(allow_none=True)
    company = fields.Str(allow_none=True)
    tags = fields.List(fields.Str())
    assigned_to_user_id = fields.Int(dump_only=True, allow_none=True, data_key="assignedToUserId")
    assigned_at = fields.DateTime(dump_only=True, allow_none=True, data_key="assignedAt")
    import_status = fields.Str(dump_only=True, data_key="importStatus")
    imported_at = fields.DateTime(dump_only=True, allow_none=True, data_key="importedAt")
    created_at = fields.DateTime(dump_only=True, data_key="createdAt")


class ResourceInputSchema(Schema):
    phone_number = fields.Str(required=True, validate=validate.Length(min=1, max=50), data_key="phoneNumber")
    first_name = fields.Str(allow_none=True, load_default=None, data_key="firstName")
    last_name = fields.Str(allow_none=True, load_default=None, data_key="lastName")
    email = fields.Email(allow_none=True, load_default=None)
    company = fields.Str(allow_none=True, load_default=None)
    tags = fields.List(fields.Str(), load_default=list)


class CreateResourcesSchema(Schema):
    resources = fields.List(fields.Nested(ResourceInputSchema), required=True, validate=validate.Length(min=1))


class AssignResourcesSchema(Schema):
    resource_ids = fields.List(fields.Int(), required=True, validate=validate.Length(min=1), data_key="resourceIds")
    user_id = fields.Int(allow_none=True, load_default=None, data_key="userId") # None returns entries to the pool


class ImportToChatroomSchema(Schema):
    resource_ids = fields.List(fields.Int(), required=True, validate=validate.Length(min=1), data_key="resourceIds")
    chatroom_id = fields.Int(required=True, data_key="chatroomId")


class ImportToLineSchema(Schema):
    resource_ids = fields.List(fields.Int(), required=True, validate=validate.Length(min=1), data_key="resourceIds")
    line_id = fields.Int(required=True, data_key="lineId")


class ImportSummarySchema(Schema):
    imported = fields.Int(dump_only=True)
    skipped = fields.Int(dump_only=True)
    message = fields.Str(dump_only=True)


class ResourceListSchema(Schema):
    items = fields.List(fields.Nested(ResourceSchema()), required=True)
    page = fields.Int(required=True)
    perPage = fields.Int(required=True, attribute="per_page")
    total = fields.Int(required=True)
    pages = fields.Int(required=True)
