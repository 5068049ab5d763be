# chatdesk/extensions.py
# -*- coding: utf-8 -*-
"""
Flask extensions instances and configuration.
Central place to initialize extensions to avoid circular imports.
"""

import os

from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_bcrypt import Bcrypt
from flask_login import LoginManager

# Database ORM: Provides SQLAlchemy integration
db = SQLAlchemy()

# Database Migrations: Alembic environment lives in <project root>/migrations
migrations_dir = os.path.join(os.path.dirname(__file__), '..', 'migrations')

migrate = Migrate(directory=migrations_dir)

# Password Hashing
bcrypt = Bcrypt()

# User Session / Bearer Token Management
login_manager = LoginManager()

# The API has no login page; unauthorized access is answered with JSON (see create_app).
login_manager.login_view = None


@login_manager.user_loader
def load_user(user_id):
    """Load user by ID for Flask-Login session management."""
    # Lazy import to avoid circular imports during initialization
    from .database.models.user import UserModel
    try:
        user_id_int = int(user_id)
        return db.session.get(UserModel, user_id_int)
    except (ValueError, TypeError):
        return None


@login_manager.request_loader
def load_user_from_request(request):
    """
    Load the user from an 'Authorization: Bearer <token>' header.

    Tokens are issued by AuthService.issue_token on login and carry the
    user id and role. Returns None when the header is absent or invalid so
    Flask-Login falls through to its unauthorized handler.
    """
    header = request.headers.get('Authorization', '')
    if not header.startswith('Bearer '):
        return None
    token = header[len('Bearer '):].strip()
    if not token:
        return None

    from .services.auth_service import AuthService
    from .database.models.user import UserModel
    from .utils.exceptions import AuthenticationError

    try:
        identity = AuthService.verify_token(token)
    except AuthenticationError as e:
        current_app.logger.info(f"Rejected bearer token: {e}")
        return None

    user = db.session.get(UserModel, identity.user_id)
    if user is None or not user.is_active:
        return None
    return user
