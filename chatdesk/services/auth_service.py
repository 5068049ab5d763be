# chatdesk/services/auth_service.py
# -*- coding: utf-8 -*-
"""
Auth Service
Handles user authentication and bearer token issue/verification.
"""
from dataclasses import dataclass

from flask import current_app
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired

from chatdesk.database.models.user import UserModel
from chatdesk.utils.exceptions import AuthenticationError

TOKEN_SALT = 'chatdesk-bearer'


@dataclass(frozen=True)
class Identity:
    """What a verified bearer token tells us about the caller."""
    user_id: int
    role: str


class AuthService:
    @staticmethod
    def authenticate_user(username, password):
        """
        Authenticates a user based on username and password.

        Args:
            username (str): The user's username.
            password (str): The user's password.

        Returns:
            UserModel: The authenticated and active UserModel instance.

        Raises:
            AuthenticationError: If authentication fails due to invalid credentials,
                                 non-existent user, or inactive account status.
        """
        user = UserModel.query.filter_by(username=username).one_or_none()

        if not user:
            current_app.logger.warning(f"Authentication attempt failed: User '{username}' not found.")
            raise AuthenticationError("Invalid username or password.")

        if not user.check_password(password):
            current_app.logger.warning(f"Authentication attempt failed: Invalid password for user '{username}'.")
            raise AuthenticationError("Invalid username or password.")

        if not user.is_active:
            current_app.logger.warning(f"Authentication attempt failed: User '{username}' is inactive (status: {user.status}).")
            raise AuthenticationError("User account is inactive.")

        current_app.logger.info(f"User '{username}' authenticated successfully.")
        return user

    @staticmethod
    def _serializer():
        return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=TOKEN_SALT)

    @staticmethod
    def issue_token(user: UserModel) -> str:
        """Issue a signed bearer token carrying the user's id and role."""
        return AuthService._serializer().dumps({'uid': user.id, 'role': user.role})

    @staticmethod
    def verify_token(token: str) -> Identity:
        """
        Verify a bearer token.

        Returns:
            Identity: user id and role encoded at issue time.

        Raises:
            AuthenticationError: If the token is expired, tampered with or malformed.
        """
        max_age = current_app.config.get('AUTH_TOKEN_MAX_AGE', 86400)
        try:
            data = AuthService._serializer().loads(token, max_age=max_age)
        except SignatureExpired:
            raise AuthenticationError("Token has expired.")
        except BadSignature:
            raise AuthenticationError("Invalid token.")

        try:
            return Identity(user_id=int(data['uid']), role=str(data['role']))
        except (KeyError, TypeError, ValueError):
            raise AuthenticationError("Invalid token payload.")
