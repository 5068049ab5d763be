# chatdesk/services/outbound_service.py
# -*- coding: utf-8 -*-
"""
Outbound Service
Resolves "send this text to contact X through chatroom/line Y" into one
provider call and records the outcome.

The chain fails closed at the first broken link:
    access -> routing chain -> line daily limit -> credit debit
    -> pending record (committed) -> provider dispatch -> sent/failed (committed)

Routing completeness is checked before the debit, so a send that can never
reach a provider is never charged. Once debited, a send that the provider
refuses keeps its debit.

Unlike the other services this one COMMITS: the pending record must be durable
before the provider is called, so a crash mid-dispatch leaves an auditable row.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func as sql_func

from chatdesk.database.models.chatroom import ChatroomModel, ContactModel
from chatdesk.database.models.provider_account import ProviderAccountModel, SenderNumberModel
from chatdesk.database.models.line import UserRealNumberModel, ClientAssignmentModel
from chatdesk.database.models.message import MessageModel, can_transition
from chatdesk.database.models.user import UserModel
from chatdesk.extensions import db
from chatdesk.providers import get_registry
from chatdesk.providers.base import ProviderAdapter, StatusUpdate
from chatdesk.services.access_service import AccessService
from chatdesk.services.token_ledger import TokenLedger, CreditStanding
from chatdesk.utils.exceptions import (
    ValidationError, ResourceNotFound, IncompleteRouting, DailyLimitReached, ProviderError,
)

log = logging.getLogger(__name__)

PREVIEW_LENGTH = 200


@dataclass(frozen=True)
class ChatroomTarget:
    """Send to a contact directly through a chatroom."""
    chatroom_id: int
    contact_id: int


@dataclass(frozen=True)
class LineTarget:
    """Send to the contact of a client assignment, through its line."""
    client_assignment_id: int


@dataclass(frozen=True)
class Route:
    """A fully resolved routing chain, ready for dispatch."""
    chatroom: ChatroomModel
    sender_number: SenderNumberModel
    provider_account: ProviderAccountModel
    adapter: ProviderAdapter
    contact: ContactModel
    line: UserRealNumberModel | None = None
    assignment: ClientAssignmentModel | None = None


@dataclass
class SendOutcome:
    """
    Result of one send. `error` is set when the provider refused or timed out;
    the message is then persisted as failed and the credit stays debited.
    """
    message: MessageModel
    credit: CreditStanding
    error: ProviderError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def remaining_credit(self):
        return self.credit.as_response()


class OutboundService:

    # --- Chain resolution ---

    @staticmethod
    def _resolve_target(sender: UserModel, target) -> tuple[ChatroomModel | None, ContactModel,
                                                             UserRealNumberModel | None,
                                                             ClientAssignmentModel | None]:
        if isinstance(target, ChatroomTarget):
            AccessService.require_chatroom(sender, target.chatroom_id)
            chatroom = db.session.get(ChatroomModel, target.chatroom_id)
            if chatroom is None:
                raise ResourceNotFound(f"Chatroom with ID {target.chatroom_id} not found.")
            contact = db.session.get(ContactModel, target.contact_id)
            if contact is None or contact.chatroom_id != chatroom.id:
                raise ResourceNotFound(f"Contact {target.contact_id} not found in chatroom {chatroom.id}.")
            return chatroom, contact, None, None

        if isinstance(target, LineTarget):
            assignment = db.session.get(ClientAssignmentModel, target.client_assignment_id)
            if assignment is None:
                raise ResourceNotFound(f"Client assignment with ID {target.client_assignment_id} not found.")
            line = assignment.line
            AccessService.require_line(sender, line)
            if not line.is_active:
                raise IncompleteRouting(f"Line {line.id} is inactive.", missing_link='line')
            contact = assignment.contact
            if line.assigned_chatroom_id is not None and contact.chatroom_id != line.assigned_chatroom_id:
                log.warning(
                    f"Line {line.id} routes through chatroom {line.assigned_chatroom_id} but client assignment "
                    f"{assignment.id} holds contact {contact.id} of chatroom {contact.chatroom_id}."
                )
                raise IncompleteRouting(
                    f"Line {line.id} is no longer assigned to the chatroom of contact {contact.id}.",
                    missing_link='chatroom',
                )
            return line.chatroom, contact, line, assignment

        raise ValidationError("Send target must be a chatroom contact or a client assignment.")

    @staticmethod
    def resolve_route(sender: UserModel, target) -> Route:
        """
        Authorize the sender and walk target -> chatroom -> sender number ->
        provider account -> adapter. Read-only.

        Raises:
            AccessDenied: If the sender has no grant on the chatroom or does not own the line.
            ResourceNotFound: If the target does not exist.
            IncompleteRouting: At the first missing or inactive link, named in `missing_link`.
        """
        chatroom, contact, line, assignment = OutboundService._resolve_target(sender, target)

        if chatroom is None:
            raise IncompleteRouting(f"Line {line.id} is not assigned to a chatroom.", missing_link='chatroom')
        if not chatroom.is_active:
            raise IncompleteRouting(f"Chatroom '{chatroom.name}' is inactive.", missing_link='chatroom')

        sender_number = chatroom.sender_number
        if sender_number is None:
            raise IncompleteRouting(f"Chatroom '{chatroom.name}' has no sender number.", missing_link='sender_number')
        if not sender_number.is_active:
            raise IncompleteRouting(f"Sender number {sender_number.number} is inactive.", missing_link='sender_number')

        account = sender_number.provider_account
        if account is None:
            raise IncompleteRouting(f"Sender number {sender_number.number} has no provider account.",
                                    missing_link='provider_account')
        if not account.is_active:
            raise IncompleteRouting(f"Provider account '{account.provider_name}' is inactive.",
                                    missing_link='provider_account')

        adapter = get_registry().get(account.provider_kind)
        if adapter is None:
            raise IncompleteRouting(f"No adapter registered for provider kind '{account.provider_kind}'.",
                                    missing_link='adapter')
        missing = adapter.missing_credentials(account.credentials)
        if missing:
            raise IncompleteRouting(
                f"Provider account '{account.provider_name}' is missing credentials: {', '.join(missing)}.",
                missing_link='credentials',
            )

        return Route(chatroom=chatroom, sender_number=sender_number, provider_account=account,
                     adapter=adapter, contact=contact, line=line, assignment=assignment)

    @staticmethod
    def sent_today(line_id: int) -> int:
        """Outbound messages recorded for a line since UTC midnight."""
        midnight = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        return db.session.query(sql_func.count(MessageModel.id))\
                         .filter(MessageModel.line_id == line_id,
                                 MessageModel.direction == 'outbound',
                                 MessageModel.created_at >= midnight)\
                         .scalar() or 0

    # --- Send ---

    @staticmethod
    def send_message(sender: UserModel, target, body: str) -> SendOutcome:
        """
        Send one message and record its delivery state. COMMITS.

        Args:
            sender (UserModel): The authenticated sending user.
            target (ChatroomTarget | LineTarget): Where the message goes.
            body (str): Message text.

        Returns:
            SendOutcome: The persisted message (sent or failed) and the sender's credit standing.

        Raises:
            ValidationError: If the body is blank.
            AccessDenied, ResourceNotFound, IncompleteRouting: From chain resolution; nothing is written.
            DailyLimitReached: If the line has used its daily allowance; nothing is written.
            InsufficientCredit: If a non-admin sender has no credit; nothing is written.
        """
        body = (body or '').strip()
        if not body:
            raise ValidationError("Message body cannot be empty.")

        route = OutboundService.resolve_route(sender, target)

        if route.line is not None:
            # Row lock on the line serializes concurrent sends until the pending record commits
            db.session.query(UserRealNumberModel)\
                      .filter(UserRealNumberModel.id == route.line.id)\
                      .with_for_update()\
                      .one()
            used = OutboundService.sent_today(route.line.id)
            if used >= route.line.daily_message_limit:
                log.warning(f"Line {route.line.id} reached its daily limit ({route.line.daily_message_limit}).")
                raise DailyLimitReached(
                    f"Line {route.line.real_number} has reached its daily limit of "
                    f"{route.line.daily_message_limit} messages."
                )

        credit = TokenLedger.debit(sender)

        message = MessageModel(
            direction='outbound',
            from_address=route.sender_number.number,
            to_address=route.contact.phone_number,
            body=body,
            channel_type=route.chatroom.provider_type,
            chatroom_id=route.chatroom.id,
            contact_id=route.contact.id,
            user_id=sender.id,
            line_id=route.line.id if route.line else None,
            client_assignment_id=route.assignment.id if route.assignment else None,
            status='pending',
            provider_kind=route.provider_account.provider_kind,
            is_read=True,
        )
        db.session.add(message)
        # The debit and the pending record become durable together
        db.session.commit()
        log.info(
            f"Message {message.id} pending: user {sender.id} -> {message.to_address} via "
            f"{message.from_address} ({message.provider_kind}, chatroom {message.chatroom_id})."
        )

        error = None
        try:
            result = route.adapter.send(route.provider_account.credentials or {},
                                        message.from_address, message.to_address, body)
        except ProviderError as e:
            error = e
        except Exception as e:
            log.exception(f"Unexpected adapter failure sending message {message.id}: {e}")
            error = ProviderError(f"Unexpected provider adapter failure: {e}", detail=str(e))

        now = datetime.now(timezone.utc)
        if error is not None:
            message.status = 'failed'
            message.error_detail = error.detail
            log.error(f"Message {message.id} failed ({error.error_kind}): {error.detail}")
        else:
            message.status = 'sent'
            message.provider_message_id = result.provider_message_id
            message.provider_status = result.provider_status
            message.sent_at = now
            OutboundService._refresh_thread(route, body, now)
            log.info(f"Message {message.id} sent; provider id {result.provider_message_id}.")
        db.session.commit()

        return SendOutcome(message=message, credit=credit, error=error)

    @staticmethod
    def _refresh_thread(route: Route, body: str, now: datetime) -> None:
        preview = body[:PREVIEW_LENGTH]
        if route.assignment is not None:
            route.assignment.last_message_at = now
            route.assignment.last_message_content = preview
            route.assignment.unread_count = 0
        else:
            route.contact.last_message_at = now
            route.contact.last_message_preview = preview

    # --- Delivery reports ---

    @staticmethod
    def apply_status_update(update: StatusUpdate) -> tuple[MessageModel, bool]:
        """
        Apply a provider delivery report (DOES NOT COMMIT).

        Only forward moves along pending -> sent -> delivered -> read (or
        pending -> failed) are applied; anything else is logged and ignored.

        Returns:
            tuple[MessageModel, bool]: The message and whether its status changed.

        Raises:
            ResourceNotFound: If no outbound message carries the provider message id.
        """
        message = db.session.query(MessageModel)\
                            .filter_by(provider_message_id=update.provider_message_id, direction='outbound')\
                            .order_by(MessageModel.id.desc())\
                            .first()
        if message is None:
            log.warning(f"Status callback for unknown provider message id {update.provider_message_id}.")
            raise ResourceNotFound(f"No message with provider id {update.provider_message_id}.")

        if update.status is None or not can_transition(message.status, update.status):
            log.info(
                f"Ignored status callback for message {message.id}: {message.status} -> "
                f"{update.status} (provider status {update.provider_status})."
            )
            return message, False

        previous = message.status
        message.status = update.status
        if update.provider_status:
            message.provider_status = update.provider_status
        if update.status == 'failed' and update.error_detail:
            message.error_detail = update.error_detail
        if update.status in ('delivered', 'read') and message.delivered_at is None:
            message.delivered_at = datetime.now(timezone.utc)
        db.session.flush()
        log.info(f"Message {message.id} moved {previous} -> {update.status} by provider callback.")
        return message, True

    # --- Read side ---

    @staticmethod
    def timeline(user: UserModel, chatroom_id: int | None = None, limit: int = 100) -> list[MessageModel]:
        """Unified timeline (both directions) the user may read, newest first."""
        query = db.session.query(MessageModel)
        if chatroom_id is not None:
            AccessService.require_chatroom(user, chatroom_id)
            query = query.filter(MessageModel.chatroom_id == chatroom_id)
        query = AccessService.scope_to_accessible(query, user, MessageModel.chatroom_id)
        return query.order_by(MessageModel.created_at.desc(), MessageModel.id.desc())\
                    .limit(limit)\
                    .all()

    @staticmethod
    def contact_thread(user: UserModel, contact_id: int) -> list[MessageModel]:
        """All timeline entries with one contact, oldest first."""
        contact = db.session.get(ContactModel, contact_id)
        if contact is None:
            raise ResourceNotFound(f"Contact with ID {contact_id} not found.")
        AccessService.require_chatroom(user, contact.chatroom_id)
        return db.session.query(MessageModel)\
                         .filter_by(contact_id=contact_id)\
                         .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())\
                         .all()

    @staticmethod
    def unread_by_chatroom(user: UserModel) -> list[dict]:
        """Unread inbound count per chatroom the user may read."""
        query = db.session.query(MessageModel.chatroom_id, sql_func.count(MessageModel.id).label('unread'))\
                          .filter(MessageModel.direction == 'inbound',
                                  MessageModel.is_read.is_(False),
                                  MessageModel.chatroom_id.isnot(None))
        query = AccessService.scope_to_accessible(query, user, MessageModel.chatroom_id)
        rows = query.group_by(MessageModel.chatroom_id).order_by(MessageModel.chatroom_id).all()
        return [{'chatroom_id': row.chatroom_id, 'unread': row.unread} for row in rows]
