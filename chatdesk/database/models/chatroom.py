# chatdesk/database/models/chatroom.py
# -*- coding: utf-8 -*-
"""Chatroom, user-chatroom assignment and contact models."""

from sqlalchemy.sql import func

from chatdesk.extensions import db


class ChatroomModel(db.Model):
    """
    A logical inbox bound to one sender number and one channel.
    Inbound routing matches the destination address against the bound sender
    number string; a sender number should back at most one active chatroom.
    """
    __tablename__ = 'chatrooms'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    provider_type = db.Column(db.String(20), nullable=False, default='sms')
    sender_number_id = db.Column(db.Integer, db.ForeignKey('sender_numbers.id', ondelete='SET NULL'), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # --- Relationships ---
    sender_number = db.relationship('SenderNumberModel', back_populates='chatrooms')
    user_links = db.relationship('UserChatroomModel', back_populates='chatroom', cascade="all, delete-orphan", lazy='dynamic')
    contacts = db.relationship('ContactModel', back_populates='chatroom', cascade="all, delete-orphan", lazy='dynamic')
    lines = db.relationship('UserRealNumberModel', back_populates='chatroom', lazy='dynamic')

    def __repr__(self):
        return f"<Chatroom(id={self.id}, name='{self.name}', sender_number_id={self.sender_number_id})>"


class UserChatroomModel(db.Model):
    """Association table granting a user read/write access to a chatroom."""
    __tablename__ = 'user_chatrooms'

    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
    chatroom_id = db.Column(db.Integer, db.ForeignKey('chatrooms.id', ondelete='CASCADE'), primary_key=True)
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    user = db.relationship('UserModel', back_populates='chatroom_links')
    chatroom = db.relationship('ChatroomModel', back_populates='user_links')

    def __repr__(self):
        return f"<UserChatroom(User={self.user_id}, Chatroom={self.chatroom_id})>"


class ContactModel(db.Model):
    """
    An external party reachable at a phone number/email, scoped to one chatroom.
    Created implicitly by inbound resolution or explicitly by resource import.
    """
    __tablename__ = 'contacts'

    id = db.Column(db.Integer, primary_key=True)
    chatroom_id = db.Column(db.Integer, db.ForeignKey('chatrooms.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True) # Owning user, optional
    name = db.Column(db.String(150), nullable=False, default='Unknown')
    phone_number = db.Column(db.String(50), nullable=False, index=True)
    email = db.Column(db.String(120), nullable=True)
    tags = db.Column(db.JSON, nullable=False, default=list)
    is_favorite = db.Column(db.Boolean, nullable=False, default=False)
    added_via = db.Column(db.String(10), nullable=False, default='manual') # 'manual', 'import'
    last_message_at = db.Column(db.TIMESTAMP(timezone=True), nullable=True)
    last_message_preview = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    # One contact per address per chatroom; makes inbound contact creation idempotent
    __table_args__ = (db.UniqueConstraint('chatroom_id', 'phone_number', name='uq_contact_chatroom_phone'),)

    chatroom = db.relationship('ChatroomModel', back_populates='contacts')
    client_assignments = db.relationship('ClientAssignmentModel', back_populates='contact', cascade="all, delete-orphan", lazy='dynamic')

    def __repr__(self):
        return f"<Contact(id={self.id}, phone='{self.phone_number}', chatroom_id={self.chatroom_id})>"
