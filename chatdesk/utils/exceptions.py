# chatdesk/utils/exceptions.py
# -*- coding: utf-8 -*-
"""
Custom Exception Classes for the Application.

These exceptions signal specific error conditions from the service layer
to the API layer (routes). Each carries the HTTP status code it maps to and
a stable `error_kind` the UI can branch on, so credit, access, routing and
provider failures never collapse into one generic error.
"""


class ServiceError(Exception):
    """Base class for service layer exceptions."""
    status_code = 500  # Default to Internal Server Error
    error_kind = "ServiceError"
    message = "An unexpected service error occurred."

    def __init__(self, message=None, status_code=None):
        super().__init__(message or self.message)
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"error": self.error_kind, "message": str(self)}


class ResourceNotFound(ServiceError):
    """Raised when a requested resource is not found."""
    status_code = 404
    error_kind = "ResourceNotFound"
    message = "The requested resource was not found."


class ValidationError(ServiceError):
    """Raised for malformed or missing required fields (beyond schema validation)."""
    status_code = 400
    error_kind = "ValidationError"
    message = "Validation failed."


class ConflictError(ServiceError):
    """Raised when an operation conflicts with the current state (e.g., duplicate)."""
    status_code = 409
    error_kind = "Conflict"
    message = "A conflict occurred with the current state of the resource."


class AuthorizationError(ServiceError):
    """Raised when a user is not authorized to perform an action."""
    status_code = 403
    error_kind = "AuthorizationError"
    message = "You are not authorized to perform this action."


class AccessDenied(AuthorizationError):
    """Raised when the caller holds no grant on the target chatroom or line."""
    error_kind = "AccessDenied"
    message = "You do not have access to this chatroom or line."


class AuthenticationError(ServiceError):
    """Raised for authentication failures (e.g., invalid credentials, inactive user, bad token)."""
    status_code = 401
    error_kind = "AuthenticationError"
    message = "Authentication failed."


class InsufficientCredit(ServiceError):
    """Raised when a non-admin sender has no credit left."""
    status_code = 402
    error_kind = "InsufficientCredit"
    message = "You do not have enough credits to send this message. Please contact your administrator."


class IncompleteRouting(ServiceError):
    """
    Raised when the chatroom -> sender number -> provider account chain has a gap.

    `missing_link` names the broken link so an admin can fix the configuration.
    """
    status_code = 422
    error_kind = "IncompleteRouting"
    message = "Routing is not fully configured for this chatroom."

    def __init__(self, message=None, missing_link=None):
        super().__init__(message)
        self.missing_link = missing_link

    def to_dict(self):
        data = super().to_dict()
        data["missingLink"] = self.missing_link
        return data


class UnroutableDestination(ServiceError):
    """Raised when an inbound destination address matches no chatroom."""
    status_code = 404
    error_kind = "UnroutableDestination"
    message = "Destination is not a known platform endpoint."


class DailyLimitReached(ServiceError):
    """Raised when a line has used up its daily outbound message allowance."""
    status_code = 429
    error_kind = "DailyLimitReached"
    message = "Daily message limit reached for this line."


class ProviderError(ServiceError):
    """
    Raised by provider adapters when the provider refuses or fails a request.

    `detail` keeps the provider-supplied text verbatim for the audit trail.
    """
    status_code = 502
    error_kind = "ProviderError"
    message = "The messaging provider rejected the request."

    def __init__(self, message=None, detail=None, provider_code=None):
        super().__init__(message)
        self.detail = detail if detail is not None else str(self)
        self.provider_code = provider_code


class ProviderTimeout(ProviderError):
    """Raised when a provider call exceeds its configured timeout."""
    status_code = 504
    error_kind = "ProviderTimeout"
    message = "The messaging provider did not answer in time."
