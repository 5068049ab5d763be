# chatdesk/database/models/resource_pool.py
# -*- coding: utf-8 -*-
"""Resource pool: pre-provisioned contact inventory assignable to users."""

from sqlalchemy.sql import func

from chatdesk.extensions import db


class ResourcePoolModel(db.Model):
    """
    A pre-provisioned phone/contact record. An admin assigns it to a user, who
    later imports it into a chatroom (as a contact) or a line (as a client).
    """
    __tablename__ = 'resource_pool'

    id = db.Column(db.Integer, primary_key=True)
    phone_number = db.Column(db.String(50), nullable=False, index=True)
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)
    email = db.Column(db.String(120), nullable=True)
    company = db.Column(db.String(150), nullable=True)
    tags = db.Column(db.JSON, nullable=False, default=list)
    assigned_to_user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)
    assigned_at = db.Column(db.TIMESTAMP(timezone=True), nullable=True)
    import_status = db.Column(db.String(20), nullable=False, default='available', index=True) # 'available', 'assigned', 'imported'
    imported_at = db.Column(db.TIMESTAMP(timezone=True), nullable=True)
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    assignee = db.relationship('UserModel')

    @property
    def display_name(self):
        return self.first_name or self.phone_number

    def __repr__(self):
        return f"<ResourcePoolEntry(id={self.id}, phone='{self.phone_number}', status='{self.import_status}')>"
