# chatdesk/api/routes/webhooks.py
# -*- coding: utf-8 -*-
"""
Provider Webhook Routes
Inbound messages and delivery status callbacks, one pair per provider kind:

    POST /api/webhooks/<kind>/inbound
    POST /api/webhooks/<kind>/status

`kind` is a ProviderKind value (decoded by that provider's adapter) or
'generic' (plain JSON: from, to, body, providerMessageId).

Answers: 200 once stored (Twilio gets an empty TwiML document), 4xx for
payloads we will never accept, 5xx when the store fails so the provider
redelivers.
"""
from flask import Blueprint, request, jsonify, current_app, abort, Response
from marshmallow import ValidationError as SchemaValidationError
from sqlalchemy.exc import SQLAlchemyError

from chatdesk.extensions import db
from chatdesk.providers import get_registry
from chatdesk.providers.base import InboundEnvelope, StatusUpdate, ProviderKind
from chatdesk.services.inbound_service import InboundService
from chatdesk.services.outbound_service import OutboundService
from chatdesk.utils.decorators import webhook_token_required
from chatdesk.utils.exceptions import ServiceError, ValidationError
from chatdesk.api.schemas.message_schemas import GenericInboundSchema, GenericStatusSchema

webhooks_bp = Blueprint('webhooks_api', __name__)

generic_inbound_schema = GenericInboundSchema()
generic_status_schema = GenericStatusSchema()

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'
GENERIC = 'generic'


def _payload() -> dict:
    """Webhook body as a dict: JSON when sent as JSON, otherwise the form fields."""
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def _adapter_for(kind: str):
    adapter = get_registry().get(kind)
    if adapter is None:
        current_app.logger.warning(f"Webhook for unknown provider kind '{kind}' rejected.")
        abort(404, description=f"Unknown provider kind '{kind}'.")
    return adapter


def _decode_inbound(kind: str) -> list[InboundEnvelope]:
    payload = _payload()
    if kind == GENERIC:
        try:
            data = generic_inbound_schema.load(payload)
        except SchemaValidationError as err:
            raise ValidationError(f"Invalid inbound payload: {err.messages}")
        return [InboundEnvelope(**data)]
    return _adapter_for(kind).parse_inbound(payload)


def _decode_status(kind: str) -> list[StatusUpdate]:
    payload = _payload()
    if kind == GENERIC:
        try:
            data = generic_status_schema.load(payload)
        except SchemaValidationError as err:
            raise ValidationError(f"Invalid status payload: {err.messages}")
        return [StatusUpdate(provider_message_id=data['provider_message_id'], status=data['status'],
                             provider_status=data['status'], error_detail=data['error_detail'])]
    return _adapter_for(kind).parse_status(payload)


def _acknowledge(kind: str, body: dict):
    if kind == ProviderKind.TWILIO.value:
        return Response(EMPTY_TWIML, status=200, mimetype='text/xml')
    return jsonify(body), 200


def _commit_or_500(context: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database commit error storing {context}: {e}")
        abort(500, description=f"Could not store {context}.")


@webhooks_bp.route('/<kind>/inbound', methods=['POST'])
@webhook_token_required
def inbound_webhook(kind):
    """
    Store inbound messages. A batch (Infobip) skips entries that can never be
    routed and stores the rest; it fails only when nothing could be stored.
    """
    try:
        envelopes = _decode_inbound(kind)
    except ServiceError as e:
        current_app.logger.warning(f"Rejected {kind} inbound webhook: {e}")
        return jsonify(e.to_dict()), e.status_code
    if not envelopes:
        current_app.logger.warning(f"Rejected {kind} inbound webhook: no messages in payload.")
        return jsonify(ValidationError("No inbound messages in payload.").to_dict()), 400

    stored, duplicates, rejected = [], 0, []
    for envelope in envelopes:
        try:
            result = InboundService.resolve_inbound(
                envelope.from_address, envelope.to_address, envelope.body, envelope.provider_message_id,
            )
        except ServiceError as e:
            current_app.logger.warning(
                f"Rejected {kind} inbound from '{envelope.from_address}' to '{envelope.to_address}' "
                f"(provider id {envelope.provider_message_id}): {e}"
            )
            rejected.append(e)
            continue
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.exception(f"Database error storing {kind} inbound {envelope.provider_message_id}: {e}")
            abort(500, description="Could not store inbound message.")

        if result.duplicate:
            duplicates += 1
        stored.append(result.inbound_message)

    if not stored:
        db.session.rollback()
        first = rejected[0]
        return jsonify(first.to_dict()), first.status_code

    _commit_or_500("inbound message")
    return _acknowledge(kind, {
        "received": len(stored),
        "duplicates": duplicates,
        "rejected": len(rejected),
        "inboundMessageIds": [inbound.id for inbound in stored],
    })


@webhooks_bp.route('/<kind>/status', methods=['POST'])
@webhook_token_required
def status_webhook(kind):
    """Apply delivery reports. Reports that would move a message backwards are ignored."""
    try:
        updates = _decode_status(kind)
    except ServiceError as e:
        current_app.logger.warning(f"Rejected {kind} status webhook: {e}")
        return jsonify(e.to_dict()), e.status_code
    if not updates:
        current_app.logger.warning(f"Rejected {kind} status webhook: no delivery reports in payload.")
        return jsonify(ValidationError("No delivery reports in payload.").to_dict()), 400

    applied, ignored, unknown = 0, 0, []
    for update in updates:
        try:
            _, changed = OutboundService.apply_status_update(update)
        except ServiceError as e:
            unknown.append(e)
            continue
        if changed:
            applied += 1
        else:
            ignored += 1

    if unknown and len(unknown) == len(updates):
        db.session.rollback()
        return jsonify(unknown[0].to_dict()), unknown[0].status_code

    _commit_or_500("delivery status")
    return _acknowledge(kind, {"applied": applied, "ignored": ignored, "unknown": len(unknown)})
