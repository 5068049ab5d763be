# chatdesk/database/models/user.py
# -*- coding: utf-8 -*-
"""User model representing console users (Admin, User) and their credit balance."""

from flask_login import UserMixin
from sqlalchemy.sql import func

from chatdesk.extensions import db, bcrypt


class UserModel(UserMixin, db.Model):
    """
    User Model: Represents an Admin or a regular console User.
    Includes Flask-Login integration properties and password hashing.
    """
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(128), nullable=False)
    role = db.Column(db.String(10), nullable=False, index=True) # 'admin', 'user'
    status = db.Column(db.String(20), nullable=False, default='active', index=True) # 'active', 'inactive', 'suspended'
    full_name = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # --- Relationships ---
    token_balance = db.relationship('TokenBalanceModel', back_populates='user', uselist=False, cascade="all, delete-orphan")
    chatroom_links = db.relationship('UserChatroomModel', back_populates='user', lazy='dynamic', cascade="all, delete-orphan")
    lines = db.relationship('UserRealNumberModel', back_populates='owner', lazy='dynamic', cascade="all, delete-orphan")

    def __init__(self, username, email, password, role='user', **kwargs):
        """Create instance and hash password."""
        self.username = username
        self.email = email
        self.role = role
        for key, value in kwargs.items():
             if hasattr(self, key):
                  setattr(self, key, value)
        self.set_password(password)

    def set_password(self, password):
        """Set password hash from plaintext password."""
        if not password:
            raise ValueError("Password cannot be empty")
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        """Check plaintext password against the stored hash."""
        if not self.password_hash or not password:
            return False
        return bcrypt.check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == 'admin'

    # --- Flask-Login Properties ---
    @property
    def is_active(self):
        """Required by Flask-Login. Checks if the user's status is 'active'."""
        return self.status == 'active'

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role='{self.role}')>"


class TokenBalanceModel(db.Model):
    """
    Per-user send credit. Decremented by one per non-admin outbound send.
    The check constraint backs the conditional decrement in TokenLedger.
    """
    __tablename__ = 'token_balances'

    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
    balance = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (db.CheckConstraint('balance >= 0', name='ck_token_balance_non_negative'),)

    user = db.relationship('UserModel', back_populates='token_balance')

    def __repr__(self):
        return f"<TokenBalance(user_id={self.user_id}, balance={self.balance})>"
