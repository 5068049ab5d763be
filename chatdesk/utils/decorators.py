# chatdesk/utils/decorators.py
# -*- coding: utf-8 -*-
"""Custom helper decorators for Flask routes."""

import hmac
from functools import wraps
from flask import current_app, request, abort
from flask_login import current_user

# --- Role-Based Access Control ---

def role_required(role_name):
    """
    Decorator factory to ensure the authenticated user has the required role(s).

    Checks for authentication (session cookie or bearer token), required role,
    and active user status. Uses abort() to trigger standard HTTP error responses.

    Args:
        role_name (str or list/tuple): The required role name (e.g., 'admin')
                                       or a list/tuple of allowed role names.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                current_app.logger.info(f"Permission denied for {request.endpoint}: User not authenticated.")
                abort(401, description="Authentication required.")

            allowed_roles = role_name if isinstance(role_name, (list, tuple)) else [role_name]
            user_role = getattr(current_user, 'role', None)

            if user_role not in allowed_roles:
                 current_app.logger.warning(
                     f"Forbidden access attempt to {request.endpoint}: User '{current_user.username}' "
                     f"(Role: {user_role}) does not have required role(s): {allowed_roles}"
                 )
                 abort(403, description=f"Access forbidden: Required role(s) {allowed_roles} not met.")

            if not current_user.is_active:
                 current_app.logger.warning(f"Forbidden access attempt to {request.endpoint}: User '{current_user.username}' is inactive.")
                 abort(403, description="Access forbidden: User account is inactive.")

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def admin_required(f):
    """Decorator requires 'admin' role."""
    return role_required('admin')(f)


def member_required(f):
    """Decorator requires any console role ('admin' or 'user')."""
    return role_required(['admin', 'user'])(f)


# --- Provider Webhook Security ---

def webhook_token_required(f):
    """
    Decorator to verify the shared secret on provider webhook calls.

    Providers cannot always send custom headers (Twilio posts plain forms), so
    the token is accepted from the 'X-Webhook-Token' header or the 'token'
    query parameter of the configured callback URL.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected_token = current_app.config.get('WEBHOOK_TOKEN')
        provided_token = request.headers.get('X-Webhook-Token') or request.args.get('token')

        if not expected_token:
             current_app.logger.critical(f"Webhook token not configured for endpoint {request.endpoint}. Denying access.")
             abort(500, description="Internal server configuration error: webhook token missing.")

        if not provided_token or not hmac.compare_digest(provided_token, expected_token):
            current_app.logger.warning(f"Unauthorized webhook call to {request.endpoint}: Invalid or missing token.")
            abort(401, description="Invalid or missing webhook token.")

        return f(*args, **kwargs)
    return decorated_function
