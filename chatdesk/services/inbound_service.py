# chatdesk/services/inbound_service.py
# -*- coding: utf-8 -*-
"""
Inbound Service
Turns a provider delivery callback into a stored, correctly attributed message.

Resolution order for one inbound event:
    1. validate the (from, to, body) triple
    2. short-circuit redeliveries of a provider message id already stored
    3. resolve the chatroom whose sender number equals the destination address
    4. find or auto-create the contact for (from, chatroom)
    5. write the raw inbound record (authoritative) and mirror it into the
       unified timeline (best-effort, in a savepoint)
    6. bump unread counters on every line thread of that contact

Service methods modify the session but DO NOT COMMIT; the webhook route owns
the transaction so a failed primary write answers 5xx and the provider retries.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from chatdesk.database.models.chatroom import ChatroomModel, ContactModel
from chatdesk.database.models.provider_account import SenderNumberModel
from chatdesk.database.models.line import UserRealNumberModel, ClientAssignmentModel
from chatdesk.database.models.message import MessageModel, InboundMessageModel
from chatdesk.database.models.user import UserModel
from chatdesk.extensions import db
from chatdesk.services.access_service import AccessService
from chatdesk.utils.exceptions import ValidationError, UnroutableDestination

log = logging.getLogger(__name__)

PREVIEW_LENGTH = 200


@dataclass
class InboundResult:
    """What resolve_inbound stored (or found already stored, when duplicate)."""
    inbound_message: InboundMessageModel
    message: MessageModel | None
    chatroom_id: int
    contact: ContactModel | None
    duplicate: bool = False
    contact_created: bool = False


def _clean(value) -> str:
    return '' if value is None else str(value).strip()


class InboundService:

    @staticmethod
    def resolve_chatroom(to_address: str) -> ChatroomModel:
        """
        Find the chatroom bound to the sender number `to_address` (exact match).

        Several matches is a configuration defect. Losing the message would be
        worse than misrouting it, so one is picked deterministically (active
        first, then newest, then highest id) and a warning is logged.

        Raises:
            UnroutableDestination: If no chatroom is bound to the address.
        """
        candidates = db.session.query(ChatroomModel)\
                               .join(SenderNumberModel, ChatroomModel.sender_number_id == SenderNumberModel.id)\
                               .filter(SenderNumberModel.number == to_address)\
                               .order_by(ChatroomModel.is_active.desc(),
                                         ChatroomModel.created_at.desc(),
                                         ChatroomModel.id.desc())\
                               .all()
        if not candidates:
            log.warning(f"Unroutable inbound: no chatroom is bound to destination '{to_address}'.")
            raise UnroutableDestination(f"Destination '{to_address}' is not bound to any chatroom.")
        if len(candidates) > 1:
            log.warning(
                f"Ambiguous inbound routing: destination '{to_address}' is bound to chatrooms "
                f"{[c.id for c in candidates]}; routing to chatroom {candidates[0].id}."
            )
        return candidates[0]

    @staticmethod
    def find_or_create_contact(chatroom_id: int, phone_number: str, name: str | None = None,
                               user_id: int | None = None) -> tuple[ContactModel, bool]:
        """
        Return the contact for (phone_number, chatroom), creating it if missing.

        Creation runs in a savepoint; if a concurrent request inserted the same
        contact first, the unique constraint fires and the winner's row is
        returned instead.

        Returns:
            tuple[ContactModel, bool]: The contact and whether this call created it.
        """
        existing = db.session.query(ContactModel)\
                             .filter_by(chatroom_id=chatroom_id, phone_number=phone_number)\
                             .one_or_none()
        if existing:
            return existing, False

        contact = ContactModel(
            chatroom_id=chatroom_id,
            user_id=user_id,
            phone_number=phone_number,
            name=name or 'Unknown',
            tags=[],
            added_via='import',
        )
        try:
            with db.session.begin_nested():
                db.session.add(contact)
        except IntegrityError:
            log.info(f"Contact {phone_number} in chatroom {chatroom_id} was created concurrently; reusing it.")
            winner = db.session.query(ContactModel)\
                               .filter_by(chatroom_id=chatroom_id, phone_number=phone_number)\
                               .one()
            return winner, False
        return contact, True

    @staticmethod
    def _duplicate_result(inbound: InboundMessageModel) -> InboundResult:
        mirror = db.session.query(MessageModel).filter_by(inbound_message_id=inbound.id).first()
        contact = db.session.query(ContactModel)\
                            .filter_by(chatroom_id=inbound.chatroom_id, phone_number=inbound.from_address)\
                            .one_or_none()
        return InboundResult(inbound_message=inbound, message=mirror, chatroom_id=inbound.chatroom_id,
                             contact=contact, duplicate=True)

    @staticmethod
    def resolve_inbound(from_address: str, to_address: str, body: str,
                        provider_message_id: str | None = None) -> InboundResult:
        """
        Store one inbound message (DOES NOT COMMIT).

        Args:
            from_address (str): Originating address (the contact).
            to_address (str): Destination address (a platform sender number).
            body (str): Message text.
            provider_message_id (str, optional): Provider-assigned id used to detect redelivery.

        Returns:
            InboundResult: The stored records. `duplicate` is True when the provider
                           message id had already been stored; nothing is written then.

        Raises:
            ValidationError: If from, to or body is missing or blank.
            UnroutableDestination: If the destination matches no chatroom.
            SQLAlchemyError: If the authoritative inbound write fails.
        """
        from_address = _clean(from_address)
        to_address = _clean(to_address)
        body = _clean(body)
        provider_message_id = _clean(provider_message_id) or None

        missing = [name for name, value in (('from', from_address), ('to', to_address), ('body', body)) if not value]
        if missing:
            log.warning(f"Rejected inbound message: missing {', '.join(missing)} (provider id {provider_message_id}).")
            raise ValidationError(f"Inbound message is missing required field(s): {', '.join(missing)}.")

        if provider_message_id:
            already = db.session.query(InboundMessageModel)\
                                .filter_by(provider_message_id=provider_message_id)\
                                .one_or_none()
            if already:
                log.info(f"Duplicate inbound delivery {provider_message_id} ignored (stored as {already.id}).")
                return InboundService._duplicate_result(already)

        chatroom = InboundService.resolve_chatroom(to_address)
        contact, contact_created = InboundService.find_or_create_contact(chatroom.id, from_address)
        if contact_created:
            log.info(f"Auto-created contact {contact.id} for {from_address} in chatroom {chatroom.id}.")

        inbound = InboundMessageModel(
            from_address=from_address,
            to_address=to_address,
            chatroom_id=chatroom.id,
            body=body,
            provider_message_id=provider_message_id,
        )
        try:
            with db.session.begin_nested():
                db.session.add(inbound)
        except IntegrityError:
            # Lost a race with a concurrent redelivery of the same provider id
            if provider_message_id:
                winner = db.session.query(InboundMessageModel)\
                                   .filter_by(provider_message_id=provider_message_id)\
                                   .one_or_none()
                if winner:
                    log.info(f"Duplicate inbound delivery {provider_message_id} detected at insert; ignored.")
                    return InboundService._duplicate_result(winner)
            raise

        mirror = InboundService._mirror(inbound, chatroom, contact)
        InboundService._fan_out(chatroom.id, contact, body)

        log.info(
            f"Inbound message {inbound.id} from {from_address} to {to_address} stored in chatroom "
            f"{chatroom.id} (contact {contact.id}, provider id {provider_message_id})."
        )
        return InboundResult(inbound_message=inbound, message=mirror, chatroom_id=chatroom.id,
                             contact=contact, contact_created=contact_created)

    @staticmethod
    def _mirror(inbound: InboundMessageModel, chatroom: ChatroomModel, contact: ContactModel) -> MessageModel | None:
        """Copy the inbound record into the unified timeline. Failure is logged, not raised."""
        message = MessageModel(
            direction='inbound',
            from_address=inbound.from_address,
            to_address=inbound.to_address,
            body=inbound.body,
            channel_type=chatroom.provider_type,
            chatroom_id=chatroom.id,
            contact_id=contact.id,
            inbound_message_id=inbound.id,
            status=None,
            is_read=False,
        )
        try:
            with db.session.begin_nested():
                db.session.add(message)
        except SQLAlchemyError as e:
            log.error(f"Could not mirror inbound message {inbound.id} into the timeline: {e}", exc_info=True)
            return None
        return message

    @staticmethod
    def _fan_out(chatroom_id: int, contact: ContactModel, body: str) -> None:
        """Refresh the contact summary and bump unread on the contact's line threads in this chatroom."""
        now = datetime.now(timezone.utc)
        preview = body[:PREVIEW_LENGTH]
        contact.last_message_at = now
        contact.last_message_preview = preview

        thread_ids = [
            row.id for row in db.session.query(ClientAssignmentModel.id)
                                        .join(UserRealNumberModel, ClientAssignmentModel.line_id == UserRealNumberModel.id)
                                        .filter(ClientAssignmentModel.contact_id == contact.id,
                                                UserRealNumberModel.assigned_chatroom_id == chatroom_id)
                                        .all()
        ]
        if thread_ids:
            db.session.query(ClientAssignmentModel)\
                      .filter(ClientAssignmentModel.id.in_(thread_ids))\
                      .update({
                          ClientAssignmentModel.unread_count: ClientAssignmentModel.unread_count + 1,
                          ClientAssignmentModel.last_message_at: now,
                          ClientAssignmentModel.last_message_content: preview,
                      }, synchronize_session='fetch')
        db.session.flush()

    # --- Read side ---

    @staticmethod
    def list_inbound(user: UserModel, chatroom_id: int | None = None, limit: int = 100) -> list[InboundMessageModel]:
        """Raw inbound events the user may read, newest first."""
        query = db.session.query(InboundMessageModel)
        if chatroom_id is not None:
            AccessService.require_chatroom(user, chatroom_id)
            query = query.filter(InboundMessageModel.chatroom_id == chatroom_id)
        query = AccessService.scope_to_accessible(query, user, InboundMessageModel.chatroom_id)
        return query.order_by(InboundMessageModel.created_at.desc(), InboundMessageModel.id.desc())\
                    .limit(limit)\
                    .all()
