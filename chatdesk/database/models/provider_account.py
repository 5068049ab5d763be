# chatdesk/database/models/provider_account.py
# -*- coding: utf-8 -*-
"""Provider account and sender number models."""

from sqlalchemy.sql import func
from sqlalchemy.orm import validates

from chatdesk.extensions import db
from chatdesk.providers.base import ProviderKind

PROVIDER_TYPES = ('sms', 'email', 'viber', 'whatsapp')


class ProviderAccountModel(db.Model):
    """
    A configured external messaging provider credential set.
    Created by an admin; never mutated by message flow.
    """
    __tablename__ = 'provider_accounts'

    id = db.Column(db.Integer, primary_key=True)
    provider_type = db.Column(db.String(20), nullable=False, default='sms') # channel: sms/email/viber/whatsapp
    # Which adapter handles this account; fixed at configuration time
    provider_kind = db.Column(db.String(20), nullable=False, index=True)
    provider_name = db.Column(db.String(100), nullable=False) # Display name only
    credentials = db.Column(db.JSON, nullable=False, default=dict)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    sender_numbers = db.relationship('SenderNumberModel', back_populates='provider_account', lazy='dynamic')

    @validates('provider_kind')
    def validate_provider_kind(self, key, value):
        """Accept a ProviderKind or its string value; store the string."""
        return ProviderKind(value).value

    @validates('provider_type')
    def validate_provider_type(self, key, value):
        if value not in PROVIDER_TYPES:
            raise ValueError(f"provider_type must be one of {PROVIDER_TYPES}")
        return value

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind(self.provider_kind)

    def __repr__(self):
        return f"<ProviderAccount(id={self.id}, kind='{self.provider_kind}', name='{self.provider_name}')>"


class SenderNumberModel(db.Model):
    """
    A phone number or alphanumeric sender ID owned by the platform, usable as a 'from'.
    Many-to-one with ProviderAccountModel.
    """
    __tablename__ = 'sender_numbers'

    id = db.Column(db.Integer, primary_key=True)
    label = db.Column(db.String(100), nullable=True)
    number = db.Column(db.String(50), unique=True, nullable=False, index=True) # E.164 number or sender ID
    channel_type = db.Column(db.String(20), nullable=False, default='sms')
    provider_account_id = db.Column(db.Integer, db.ForeignKey('provider_accounts.id', ondelete='RESTRICT'), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    region = db.Column(db.String(50), nullable=True)
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    provider_account = db.relationship('ProviderAccountModel', back_populates='sender_numbers')
    chatrooms = db.relationship('ChatroomModel', back_populates='sender_number', lazy='dynamic')

    def __repr__(self):
        return f"<SenderNumber(id={self.id}, number='{self.number}')>"
