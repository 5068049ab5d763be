# chatdesk/services/provider_account_service.py
# -*- coding: utf-8 -*-
"""
Provider Account Service
Admin management of provider credential sets and connection tests.
Service methods modify the session but DO NOT COMMIT.
"""
from typing import Any, Mapping

from flask import current_app

from chatdesk.database.models.provider_account import ProviderAccountModel, SenderNumberModel, PROVIDER_TYPES
from chatdesk.extensions import db
from chatdesk.providers import get_registry
from chatdesk.providers.base import ConnectionResult, ProviderKind
from chatdesk.utils.exceptions import ResourceNotFound, ValidationError, ConflictError

MASK = '****'


def mask_credentials(credentials: Mapping[str, Any] | None) -> dict:
    """
    Replace every credential value with a masked form that keeps at most the
    last four characters, so an admin can tell keys apart without reading them.
    """
    masked = {}
    for key, value in (credentials or {}).items():
        text = '' if value is None else str(value)
        masked[key] = f"{MASK}{text[-4:]}" if len(text) > 8 else MASK
    return masked


class ProviderAccountService:

    @staticmethod
    def _validate(provider_type: str | None = None, provider_kind: str | None = None) -> None:
        if provider_type is not None and provider_type not in PROVIDER_TYPES:
            raise ValidationError(f"provider_type must be one of {', '.join(PROVIDER_TYPES)}.")
        if provider_kind is not None:
            try:
                ProviderKind(provider_kind)
            except ValueError:
                allowed = ', '.join(kind.value for kind in ProviderKind)
                raise ValidationError(f"provider_kind must be one of {allowed}.")

    @staticmethod
    def create_account(provider_kind: str, provider_name: str, credentials: dict | None = None,
                       provider_type: str = 'sms', is_active: bool = True,
                       created_by: int | None = None) -> ProviderAccountModel:
        """
        Adds a provider account to the session (DOES NOT COMMIT).

        Args:
            provider_kind (str): Adapter that serves the account ('twilio', 'infobip').
            provider_name (str): Display name.
            credentials (dict): Opaque credential map handed to the adapter.
            provider_type (str): Channel ('sms', 'email', 'viber', 'whatsapp').
            is_active (bool): Whether routing may use the account.
            created_by (int, optional): Admin user id.

        Returns:
            ProviderAccountModel: The new account.

        Raises:
            ValidationError: If the name is empty or kind/type is unknown.
        """
        if not provider_name:
            raise ValidationError("provider_name is required.")
        ProviderAccountService._validate(provider_type, provider_kind)

        account = ProviderAccountModel(
            provider_kind=provider_kind,
            provider_type=provider_type,
            provider_name=provider_name,
            credentials=credentials or {},
            is_active=is_active,
            created_by=created_by,
        )
        db.session.add(account)
        db.session.flush()
        current_app.logger.info(f"Provider account {account.id} ('{provider_name}', {provider_kind}) added to session.")
        return account

    @staticmethod
    def get_account(account_id: int) -> ProviderAccountModel:
        account = db.session.get(ProviderAccountModel, account_id)
        if not account:
            raise ResourceNotFound(f"Provider account with ID {account_id} not found.")
        return account

    @staticmethod
    def list_accounts() -> list[ProviderAccountModel]:
        return db.session.query(ProviderAccountModel)\
                         .order_by(ProviderAccountModel.created_at.desc(), ProviderAccountModel.id.desc())\
                         .all()

    @staticmethod
    def update_account(account_id: int, **kwargs) -> ProviderAccountModel:
        """
        Updates a provider account in the session (DOES NOT COMMIT).
        Credentials passed here are merged over the stored ones, so an admin can
        rotate a single key without re-entering the others.
        """
        account = ProviderAccountService.get_account(account_id)
        ProviderAccountService._validate(kwargs.get('provider_type'), kwargs.get('provider_kind'))

        for key in ('provider_kind', 'provider_type', 'provider_name', 'is_active'):
            if key in kwargs and kwargs[key] is not None:
                setattr(account, key, kwargs[key])
        if kwargs.get('credentials'):
            merged = dict(account.credentials or {})
            merged.update(kwargs['credentials'])
            account.credentials = merged

        db.session.flush()
        current_app.logger.info(f"Provider account {account_id} updated in session.")
        return account

    @staticmethod
    def delete_account(account_id: int) -> None:
        """
        Marks a provider account for deletion (DOES NOT COMMIT).

        Raises:
            ResourceNotFound: If the account does not exist.
            ConflictError: If any sender number still references it.
        """
        account = ProviderAccountService.get_account(account_id)
        in_use = db.session.query(SenderNumberModel.number)\
                           .filter_by(provider_account_id=account_id)\
                           .first()
        if in_use:
            raise ConflictError(f"Cannot delete provider account in use by sender number {in_use.number}.")
        db.session.delete(account)
        db.session.flush()
        current_app.logger.info(f"Provider account {account_id} marked for deletion in session.")

    @staticmethod
    def test_connection(account_id: int) -> ConnectionResult:
        """Ask the account's adapter to verify the stored credentials. Read-only."""
        account = ProviderAccountService.get_account(account_id)
        adapter = get_registry().get(account.provider_kind)
        if adapter is None:
            return ConnectionResult(False, f"No adapter registered for provider kind '{account.provider_kind}'.")

        result = adapter.test_connection(account.credentials or {})
        log_fn = current_app.logger.info if result.ok else current_app.logger.warning
        log_fn(f"Connection test for provider account {account_id} ({account.provider_kind}): {result.message}")
        return result
