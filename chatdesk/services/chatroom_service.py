# chatdesk/services/chatroom_service.py
# -*- coding: utf-8 -*-
"""
Chatroom Service
Chatroom provisioning, user assignment and contact management.
Service methods modify the session but DO NOT COMMIT.
"""
from sqlalchemy import func as sql_func
from sqlalchemy.exc import IntegrityError
from flask import current_app

from chatdesk.database.models.chatroom import ChatroomModel, UserChatroomModel, ContactModel
from chatdesk.database.models.provider_account import SenderNumberModel, PROVIDER_TYPES
from chatdesk.database.models.user import UserModel
from chatdesk.extensions import db
from chatdesk.services.access_service import AccessService
from chatdesk.utils.exceptions import ResourceNotFound, ValidationError, ConflictError


class ChatroomService:

    @staticmethod
    def _check_sender_number(sender_number_id: int | None, exclude_chatroom_id: int | None = None) -> None:
        """
        A sender number may back only one active chatroom, otherwise inbound
        routing for it becomes ambiguous.
        """
        if sender_number_id is None:
            return
        if db.session.get(SenderNumberModel, sender_number_id) is None:
            raise ResourceNotFound(f"Sender number with ID {sender_number_id} not found.")
        query = db.session.query(ChatroomModel.name)\
                          .filter(ChatroomModel.sender_number_id == sender_number_id,
                                  ChatroomModel.is_active.is_(True))
        if exclude_chatroom_id is not None:
            query = query.filter(ChatroomModel.id != exclude_chatroom_id)
        bound = query.first()
        if bound:
            raise ConflictError(f"Sender number {sender_number_id} is already bound to active chatroom '{bound.name}'.")

    @staticmethod
    def create_chatroom(name: str, sender_number_id: int | None = None, provider_type: str = 'sms',
                        description: str | None = None, is_active: bool = True) -> ChatroomModel:
        """
        Adds a chatroom to the session (DOES NOT COMMIT).

        Args:
            name (str): Display name.
            sender_number_id (int, optional): Sender number that backs sends and receives inbound.
            provider_type (str): Channel of the chatroom.
            description (str, optional): Free text.
            is_active (bool): Inactive chatrooms cannot send.

        Returns:
            ChatroomModel: The new chatroom.

        Raises:
            ValidationError: If the name is empty or the channel is unknown.
            ResourceNotFound: If the sender number does not exist.
            ConflictError: If the sender number already backs another active chatroom.
        """
        if not name:
            raise ValidationError("Chatroom name cannot be empty.")
        if provider_type not in PROVIDER_TYPES:
            raise ValidationError(f"provider_type must be one of {', '.join(PROVIDER_TYPES)}.")
        if is_active:
            ChatroomService._check_sender_number(sender_number_id)
        elif sender_number_id is not None and db.session.get(SenderNumberModel, sender_number_id) is None:
            raise ResourceNotFound(f"Sender number with ID {sender_number_id} not found.")

        chatroom = ChatroomModel(
            name=name,
            sender_number_id=sender_number_id,
            provider_type=provider_type,
            description=description,
            is_active=is_active,
        )
        db.session.add(chatroom)
        db.session.flush()
        current_app.logger.info(f"Chatroom {chatroom.id} ('{name}') added to session (sender number {sender_number_id}).")
        return chatroom

    @staticmethod
    def get_chatroom(chatroom_id: int) -> ChatroomModel:
        chatroom = db.session.get(ChatroomModel, chatroom_id)
        if not chatroom:
            raise ResourceNotFound(f"Chatroom with ID {chatroom_id} not found.")
        return chatroom

    @staticmethod
    def list_chatrooms() -> list[ChatroomModel]:
        return db.session.query(ChatroomModel).order_by(ChatroomModel.name).all()

    @staticmethod
    def update_chatroom(chatroom_id: int, **kwargs) -> ChatroomModel:
        """Updates name, sender number, channel, description or active flag (DOES NOT COMMIT)."""
        chatroom = ChatroomService.get_chatroom(chatroom_id)

        if 'provider_type' in kwargs and kwargs['provider_type'] not in PROVIDER_TYPES:
            raise ValidationError(f"provider_type must be one of {', '.join(PROVIDER_TYPES)}.")
        sender_number_id = kwargs.get('sender_number_id', chatroom.sender_number_id)
        will_be_active = kwargs.get('is_active', chatroom.is_active)
        if will_be_active:
            ChatroomService._check_sender_number(sender_number_id, exclude_chatroom_id=chatroom_id)

        for key in ('name', 'sender_number_id', 'provider_type', 'description', 'is_active'):
            if key in kwargs:
                setattr(chatroom, key, kwargs[key])
        db.session.flush()
        current_app.logger.info(f"Chatroom {chatroom_id} updated in session.")
        return chatroom

    @staticmethod
    def delete_chatroom(chatroom_id: int) -> None:
        chatroom = ChatroomService.get_chatroom(chatroom_id)
        db.session.delete(chatroom)
        db.session.flush()
        current_app.logger.info(f"Chatroom {chatroom_id} marked for deletion in session.")

    # --- Assignments ---

    @staticmethod
    def assign_users(chatroom_id: int, user_ids: list[int]) -> int:
        """
        Grants users access to a chatroom (DOES NOT COMMIT). Existing grants are kept.

        Returns:
            int: Number of new assignments created.

        Raises:
            ValidationError: If user_ids is empty.
            ResourceNotFound: If the chatroom or any user does not exist.
        """
        if not user_ids:
            raise ValidationError("user_ids must not be empty.")
        ChatroomService.get_chatroom(chatroom_id)

        wanted = set(user_ids)
        found = {row.id for row in db.session.query(UserModel.id).filter(UserModel.id.in_(wanted)).all()}
        missing = wanted - found
        if missing:
            raise ResourceNotFound(f"Users not found: {sorted(missing)}")

        existing = {
            row.user_id for row in db.session.query(UserChatroomModel.user_id)
                                             .filter_by(chatroom_id=chatroom_id)
                                             .all()
        }
        created = 0
        for user_id in sorted(wanted - existing):
            db.session.add(UserChatroomModel(user_id=user_id, chatroom_id=chatroom_id))
            created += 1
        db.session.flush()
        current_app.logger.info(f"Assigned {created} new users to chatroom {chatroom_id}.")
        return created

    @staticmethod
    def unassign_user(chatroom_id: int, user_id: int) -> None:
        link = db.session.get(UserChatroomModel, (user_id, chatroom_id))
        if not link:
            raise ResourceNotFound(f"User {user_id} is not assigned to chatroom {chatroom_id}.")
        db.session.delete(link)
        db.session.flush()
        current_app.logger.info(f"User {user_id} removed from chatroom {chatroom_id}.")

    @staticmethod
    def chatroom_users(chatroom_id: int) -> list[UserModel]:
        ChatroomService.get_chatroom(chatroom_id)
        return db.session.query(UserModel)\
                         .join(UserChatroomModel, UserChatroomModel.user_id == UserModel.id)\
                         .filter(UserChatroomModel.chatroom_id == chatroom_id)\
                         .order_by(UserModel.username)\
                         .all()

    @staticmethod
    def my_chatrooms(user: UserModel) -> list[dict]:
        """
        Chatrooms the user may read, each with its contact count.
        Admins see every chatroom.
        """
        contact_count = sql_func.count(ContactModel.id).label('contact_count')
        query = db.session.query(ChatroomModel, contact_count)\
                          .outerjoin(ContactModel, ContactModel.chatroom_id == ChatroomModel.id)\
                          .group_by(ChatroomModel.id)
        query = AccessService.scope_to_accessible(query, user, ChatroomModel.id)
        rows = query.order_by(ChatroomModel.name).all()
        return [{'chatroom': chatroom, 'contact_count': count} for chatroom, count in rows]

    # --- Contacts ---

    @staticmethod
    def list_contacts(user: UserModel, chatroom_id: int) -> list[ContactModel]:
        """
        Contacts of a chatroom, newest first. Every member sees every contact,
        including the ones auto-created from inbound messages.
        """
        ChatroomService.get_chatroom(chatroom_id)
        AccessService.require_chatroom(user, chatroom_id)
        return db.session.query(ContactModel)\
                         .filter_by(chatroom_id=chatroom_id)\
                         .order_by(ContactModel.created_at.desc(), ContactModel.id.desc())\
                         .all()

    @staticmethod
    def add_contact(user: UserModel, chatroom_id: int, phone_number: str, name: str | None = None,
                    email: str | None = None, tags: list | None = None) -> ContactModel:
        """
        Adds a manual contact to a chatroom (DOES NOT COMMIT).

        Raises:
            AccessDenied: If the user holds no grant on the chatroom.
            ValidationError: If the phone number is empty.
            ConflictError: If the chatroom already has a contact for the number.
        """
        ChatroomService.get_chatroom(chatroom_id)
        AccessService.require_chatroom(user, chatroom_id)
        phone_number = (phone_number or '').strip()
        if not phone_number:
            raise ValidationError("Contact phone number cannot be empty.")
        if db.session.query(ContactModel.id).filter_by(chatroom_id=chatroom_id, phone_number=phone_number).first():
            raise ConflictError(f"Chatroom {chatroom_id} already has a contact for {phone_number}.")

        contact = ContactModel(
            chatroom_id=chatroom_id,
            user_id=user.id,
            phone_number=phone_number,
            name=name or phone_number,
            email=email,
            tags=tags or [],
            added_via='manual',
        )
        try:
            db.session.add(contact)
            db.session.flush()
        except IntegrityError as e:
            db.session.rollback()
            raise ConflictError(f"Chatroom {chatroom_id} already has a contact for {phone_number}.") from e
        current_app.logger.info(f"User {user.id} added contact {contact.id} to chatroom {chatroom_id}.")
        return contact
