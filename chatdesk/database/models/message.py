# chatdesk/database/models/message.py
# -*- coding: utf-8 -*-
"""Unified message timeline and raw inbound event models."""

from sqlalchemy.sql import func

from chatdesk.extensions import db

# BIGINT ids on PostgreSQL; SQLite only autoincrements INTEGER primary keys
BigIntId = db.BigInteger().with_variant(db.Integer(), 'sqlite')

MESSAGE_STATUSES = ('pending', 'sent', 'delivered', 'read', 'failed')

# Forward-only delivery state machine. 'failed' and 'read' are terminal.
STATUS_TRANSITIONS = {
    'pending': ('sent', 'failed'),
    'sent': ('delivered', 'read'),
    'delivered': ('read',),
    'read': (),
    'failed': (),
}


def can_transition(current: str | None, new: str) -> bool:
    """True if a message in status `current` may move to `new`."""
    return new in STATUS_TRANSITIONS.get(current, ())


class MessageModel(db.Model):
    """
    One entry of the unified timeline: an outbound send attempt or the
    mirrored copy of an inbound event. Append-only except for the status
    fields, which only the outbound router and status callbacks move.
    """
    __tablename__ = 'messages'

    id = db.Column(BigIntId, primary_key=True)

    direction = db.Column(db.String(10), nullable=False, index=True) # 'inbound', 'outbound'
    from_address = db.Column(db.String(120), nullable=False)
    to_address = db.Column(db.String(120), nullable=False, index=True)
    body = db.Column(db.Text, nullable=False)
    channel_type = db.Column(db.String(20), nullable=False, default='sms')

    # --- Ownership / thread links ---
    chatroom_id = db.Column(db.Integer, db.ForeignKey('chatrooms.id', ondelete='SET NULL'), nullable=True, index=True)
    contact_id = db.Column(db.Integer, db.ForeignKey('contacts.id', ondelete='SET NULL'), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)
    line_id = db.Column(db.Integer, db.ForeignKey('user_real_numbers.id', ondelete='SET NULL'), nullable=True, index=True)
    client_assignment_id = db.Column(db.Integer, db.ForeignKey('client_assignments.id', ondelete='SET NULL'), nullable=True, index=True)
    inbound_message_id = db.Column(BigIntId, db.ForeignKey('inbound_messages.id', ondelete='SET NULL'), nullable=True)

    # --- Delivery state (outbound only; NULL for mirrored inbound) ---
    status = db.Column(db.String(20), nullable=True, index=True)
    provider_kind = db.Column(db.String(20), nullable=True)
    provider_message_id = db.Column(db.String(100), nullable=True, index=True)
    provider_status = db.Column(db.String(50), nullable=True) # Raw status string reported by the provider
    error_detail = db.Column(db.Text, nullable=True) # Provider detail kept verbatim
    is_read = db.Column(db.Boolean, nullable=False, default=False)

    # --- Timestamps ---
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), index=True)
    sent_at = db.Column(db.TIMESTAMP(timezone=True), nullable=True)
    delivered_at = db.Column(db.TIMESTAMP(timezone=True), nullable=True)
    updated_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    chatroom = db.relationship('ChatroomModel')
    contact = db.relationship('ContactModel')
    line = db.relationship('UserRealNumberModel')
    client_assignment = db.relationship('ClientAssignmentModel')

    def __repr__(self):
        return f"<Message(id={self.id}, direction='{self.direction}', status='{self.status}', chatroom_id={self.chatroom_id})>"


class InboundMessageModel(db.Model):
    """
    Raw inbound event keyed by originating address and destination chatroom.
    This is the authoritative record of a delivery from a provider.
    """
    __tablename__ = 'inbound_messages'

    id = db.Column(BigIntId, primary_key=True)
    from_address = db.Column(db.String(120), nullable=False, index=True)
    to_address = db.Column(db.String(120), nullable=False)
    chatroom_id = db.Column(db.Integer, db.ForeignKey('chatrooms.id', ondelete='CASCADE'), nullable=False, index=True)
    body = db.Column(db.Text, nullable=False)
    # Provider-assigned id, unique when present; redeliveries are detected on it
    provider_message_id = db.Column(db.String(100), nullable=True, unique=True)
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), index=True)

    chatroom = db.relationship('ChatroomModel')

    def __repr__(self):
        return f"<InboundMessage(id={self.id}, from='{self.from_address}', chatroom_id={self.chatroom_id})>"
