# chatdesk/services/sender_number_service.py
# -*- coding: utf-8 -*-
"""
Sender Number Service
Admin management of platform sender numbers (phone numbers / sender IDs).
Service methods modify the session but DO NOT COMMIT.
"""
from flask import current_app

from chatdesk.database.models.provider_account import ProviderAccountModel, SenderNumberModel
from chatdesk.database.models.chatroom import ChatroomModel
from chatdesk.extensions import db
from chatdesk.utils.exceptions import ResourceNotFound, ValidationError, ConflictError


class SenderNumberService:

    @staticmethod
    def create_number(number: str, provider_account_id: int | None = None, label: str | None = None,
                      channel_type: str = 'sms', region: str | None = None,
                      is_active: bool = True) -> SenderNumberModel:
        """
        Adds a sender number to the session (DOES NOT COMMIT).

        The number string is stored trimmed; inbound routing compares it by
        exact equality with the destination address the provider reports.

        Raises:
            ValidationError: If the number is empty.
            ConflictError: If the number already exists.
            ResourceNotFound: If the provider account does not exist.
        """
        number = (number or '').strip()
        if not number:
            raise ValidationError("Sender number cannot be empty.")
        if db.session.query(SenderNumberModel.id).filter_by(number=number).first():
            raise ConflictError(f"Sender number '{number}' already exists.")
        if provider_account_id is not None and db.session.get(ProviderAccountModel, provider_account_id) is None:
            raise ResourceNotFound(f"Provider account with ID {provider_account_id} not found.")

        sender = SenderNumberModel(
            number=number,
            provider_account_id=provider_account_id,
            label=label,
            channel_type=channel_type,
            region=region,
            is_active=is_active,
        )
        db.session.add(sender)
        db.session.flush()
        current_app.logger.info(f"Sender number {sender.id} ('{number}') added to session.")
        return sender

    @staticmethod
    def get_number(sender_number_id: int) -> SenderNumberModel:
        sender = db.session.get(SenderNumberModel, sender_number_id)
        if not sender:
            raise ResourceNotFound(f"Sender number with ID {sender_number_id} not found.")
        return sender

    @staticmethod
    def list_numbers(active_only: bool = False) -> list[SenderNumberModel]:
        query = db.session.query(SenderNumberModel)
        if active_only:
            query = query.filter(SenderNumberModel.is_active.is_(True))
        return query.order_by(SenderNumberModel.number).all()

    @staticmethod
    def update_number(sender_number_id: int, **kwargs) -> SenderNumberModel:
        """Updates label, provider link, channel, region or active flag (DOES NOT COMMIT)."""
        sender = SenderNumberService.get_number(sender_number_id)

        if 'provider_account_id' in kwargs:
            account_id = kwargs['provider_account_id']
            if account_id is not None and db.session.get(ProviderAccountModel, account_id) is None:
                raise ResourceNotFound(f"Provider account with ID {account_id} not found.")

        for key in ('label', 'provider_account_id', 'channel_type', 'region', 'is_active'):
            if key in kwargs:
                setattr(sender, key, kwargs[key])
        db.session.flush()
        current_app.logger.info(f"Sender number {sender_number_id} updated in session.")
        return sender

    @staticmethod
    def delete_number(sender_number_id: int) -> None:
        """
        Marks a sender number for deletion (DOES NOT COMMIT).

        Raises:
            ConflictError: If a chatroom is still bound to it.
        """
        sender = SenderNumberService.get_number(sender_number_id)
        bound = db.session.query(ChatroomModel.name).filter_by(sender_number_id=sender_number_id).first()
        if bound:
            raise ConflictError(f"Cannot delete sender number bound to chatroom '{bound.name}'.")
        db.session.delete(sender)
        db.session.flush()
        current_app.logger.info(f"Sender number {sender_number_id} marked for deletion in session.")
