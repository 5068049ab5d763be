# chatdesk/services/user_service.py
# -*- coding: utf-8 -*-
"""
User Service
Handles business logic related to console user management.
Every user gets a token balance row on creation so the ledger can debit it.
Service methods modify the session but DO NOT COMMIT.
"""
from sqlalchemy import func as sql_func
from sqlalchemy.exc import IntegrityError
from flask import current_app
from flask_sqlalchemy.pagination import Pagination

from chatdesk.database.models.user import UserModel
from chatdesk.extensions import db
from chatdesk.services.token_ledger import TokenLedger
from chatdesk.utils.exceptions import (
    ResourceNotFound,
    ConflictError,
    ServiceError,
    ValidationError,
    AuthorizationError
)


class UserService:

    @staticmethod
    def create_user(username: str, email: str, password: str, role: str = 'user',
                    status: str = 'active', full_name: str | None = None,
                    initial_credits: int = 0) -> UserModel:
        """
        Adds a new user and its token balance to the session (DOES NOT COMMIT).

        Args:
            username (str): User's username.
            email (str): User's email.
            password (str): User's plaintext password.
            role (str): 'admin' or 'user'. Schema validates value.
            status (str): Initial user status. Schema validates value.
            full_name (str, optional): User's full name.
            initial_credits (int): Starting send credit (ignored for admins, who are unmetered).

        Returns:
            UserModel: The newly created user instance, added to the session.

        Raises:
            ConflictError: If username or email already exists.
            ValidationError: If username, email or password is empty, or credits are negative.
            ServiceError: If a database error occurs during flush.
        """
        if not username: raise ValidationError("Username cannot be empty.")
        if not email: raise ValidationError("Email cannot be empty.")
        if not password: raise ValidationError("Password cannot be empty.")
        if initial_credits is None or initial_credits < 0:
            raise ValidationError("Initial credits cannot be negative.")

        if db.session.query(UserModel.id).filter_by(username=username).first():
            raise ConflictError(f"Username '{username}' already exists.")
        if db.session.query(UserModel.id).filter_by(email=email).first():
            raise ConflictError(f"Email '{email}' already exists.")

        new_user = UserModel(
            username=username,
            email=email,
            password=password,
            role=role,
            status=status,
            full_name=full_name
        )
        try:
            db.session.add(new_user)
            db.session.flush()
            TokenLedger.ensure_account(new_user.id, initial_balance=initial_credits)
            current_app.logger.info(f"User '{username}' added to session with ID {new_user.id} ({initial_credits} credits).")
            return new_user
        except IntegrityError as e:
            db.session.rollback()
            current_app.logger.error(f"Database integrity error creating user '{username}': {e}", exc_info=True)
            raise ConflictError(f"Database integrity error creating user: {e.orig}")


    @staticmethod
    def get_user_by_id(user_id: int) -> UserModel | None:
        """Fetches a user by their ID using the current session."""
        return db.session.get(UserModel, user_id)


    @staticmethod
    def get_all_users(page: int = 1, per_page: int = 20) -> Pagination:
        """Fetches a paginated list of all users using the current session."""
        query = db.session.query(UserModel).order_by(UserModel.username)
        return query.paginate(page=page, per_page=per_page, error_out=False, count=True)


    @staticmethod
    def update_user(user_id: int, **kwargs) -> UserModel:
        """
        Updates a user's details in the session (DOES NOT COMMIT).

        Args:
            user_id (int): The ID of the user to update.
            **kwargs: Fields to update (email, role, status, full_name, password).

        Returns:
            UserModel: The updated user instance present in the session.

        Raises:
            ResourceNotFound: If the user is not found.
            ConflictError: If the new email belongs to another user.
            ValidationError: If email is set to empty.
            AuthorizationError: If the last active administrator would be demoted or deactivated.
        """
        user = db.session.get(UserModel, user_id)
        if not user:
            raise ResourceNotFound(f"User with ID {user_id} not found.")

        if 'email' in kwargs and kwargs['email'] != user.email:
            if not kwargs['email']:
                raise ValidationError("Email cannot be empty.")
            existing = db.session.query(UserModel.id).filter(
                UserModel.id != user_id, UserModel.email == kwargs['email']
            ).first()
            if existing:
                raise ConflictError(f"Email '{kwargs['email']}' is already in use.")

        losing_admin = user.is_admin and (
            kwargs.get('role', 'admin') != 'admin' or kwargs.get('status', 'active') != 'active'
        )
        if losing_admin and UserService._active_admin_count() <= 1:
            raise AuthorizationError("Cannot demote or deactivate the last active administrator.")

        for key in ('email', 'role', 'status', 'full_name'):
            if key in kwargs:
                setattr(user, key, kwargs[key])
        if kwargs.get('password'):
            user.set_password(kwargs['password'])

        try:
            db.session.flush()
        except IntegrityError as e:
            db.session.rollback()
            current_app.logger.error(f"Database integrity error updating user {user_id}: {e}", exc_info=True)
            raise ServiceError(f"Database integrity error updating user: {e.orig}")

        if user.is_admin:
            # Admins are unmetered; keep the row so a later demotion starts from a known balance
            TokenLedger.ensure_account(user.id)
        current_app.logger.info(f"User ID {user_id} updated in session.")
        return user


    @staticmethod
    def _active_admin_count() -> int:
        return db.session.query(sql_func.count(UserModel.id))\
                         .filter_by(role='admin', status='active')\
                         .scalar() or 0
