# chatdesk/database/models/line.py
# -*- coding: utf-8 -*-
"""Lines (mini-chatrooms / user real numbers) and their client assignments."""

from sqlalchemy.sql import func
from sqlalchemy.orm import validates

from chatdesk.extensions import db


class UserRealNumberModel(db.Model):
    """
    A dedicated line a user operates inside a shared chatroom's provider capacity.
    Sends through a line go out via the chatroom's sender number.
    """
    __tablename__ = 'user_real_numbers'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    real_number = db.Column(db.String(50), nullable=False, index=True)
    label = db.Column(db.String(100), nullable=True)
    assigned_chatroom_id = db.Column(db.Integer, db.ForeignKey('chatrooms.id', ondelete='SET NULL'), nullable=True, index=True)
    daily_message_limit = db.Column(db.Integer, nullable=False, default=500)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    owner = db.relationship('UserModel', back_populates='lines')
    chatroom = db.relationship('ChatroomModel', back_populates='lines')
    client_assignments = db.relationship('ClientAssignmentModel', back_populates='line', cascade="all, delete-orphan", lazy='dynamic')

    @validates('daily_message_limit')
    def validate_daily_message_limit(self, key, limit):
        if not isinstance(limit, int) or limit < 1:
            raise ValueError("Daily message limit must be a positive integer")
        return limit

    def __repr__(self):
        return f"<Line(id={self.id}, number='{self.real_number}', user_id={self.user_id})>"


class ClientAssignmentModel(db.Model):
    """
    Binds a contact to a line: one ongoing conversation thread.
    Carries the summary list views render without re-reading messages.
    """
    __tablename__ = 'client_assignments'

    id = db.Column(db.Integer, primary_key=True)
    line_id = db.Column(db.Integer, db.ForeignKey('user_real_numbers.id', ondelete='CASCADE'), nullable=False, index=True)
    contact_id = db.Column(db.Integer, db.ForeignKey('contacts.id', ondelete='CASCADE'), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default='active') # 'active', 'archived'
    label = db.Column(db.String(150), nullable=True)
    last_message_at = db.Column(db.TIMESTAMP(timezone=True), nullable=True)
    last_message_content = db.Column(db.String(200), nullable=True)
    unread_count = db.Column(db.Integer, nullable=False, default=0)
    last_read_at = db.Column(db.TIMESTAMP(timezone=True), nullable=True)
    source_resource_id = db.Column(db.Integer, db.ForeignKey('resource_pool.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (db.UniqueConstraint('line_id', 'contact_id', name='uq_client_assignment_line_contact'),)

    line = db.relationship('UserRealNumberModel', back_populates='client_assignments')
    contact = db.relationship('ContactModel', back_populates='client_assignments')

    def __repr__(self):
        return f"<ClientAssignment(id={self.id}, line_id={self.line_id}, contact_id={self.contact_id})>"
