# chatdesk/services/line_service.py
# -*- coding: utf-8 -*-
"""
Line Service
Lines (mini-chatrooms) are per-user identities operating inside a chatroom's
provider capacity. Each line carries client assignments: one conversation
thread per contact, with the unread counter and last-message summary the
inbox list renders.
Service methods modify the session but DO NOT COMMIT.
"""
from datetime import datetime, timezone

from sqlalchemy import func as sql_func, case, or_, and_
from flask import current_app

from chatdesk.database.models.chatroom import ChatroomModel, ContactModel
from chatdesk.database.models.line import UserRealNumberModel, ClientAssignmentModel
from chatdesk.database.models.message import MessageModel
from chatdesk.database.models.user import UserModel
from chatdesk.extensions import db
from chatdesk.services.access_service import AccessService
from chatdesk.utils.exceptions import ResourceNotFound, ValidationError, ConflictError


class LineService:

    # --- Admin provisioning ---

    @staticmethod
    def create_line(user_id: int, real_number: str, assigned_chatroom_id: int | None = None,
                    label: str | None = None, daily_message_limit: int | None = None,
                    is_active: bool = True) -> UserRealNumberModel:
        """
        Adds a line for a user (DOES NOT COMMIT).

        Args:
            user_id (int): Owner of the line.
            real_number (str): The number the line presents to clients.
            assigned_chatroom_id (int, optional): Chatroom whose sender number the line sends through.
            label (str, optional): Display label.
            daily_message_limit (int, optional): Outbound sends allowed per UTC day.
                                                 Defaults to DEFAULT_DAILY_MESSAGE_LIMIT.
            is_active (bool): Inactive lines are hidden from the inbox.

        Returns:
            UserRealNumberModel: The new line.

        Raises:
            ValidationError: If the number is empty or the limit is not positive.
            ResourceNotFound: If the user or chatroom does not exist.
        """
        real_number = (real_number or '').strip()
        if not real_number:
            raise ValidationError("Line number cannot be empty.")
        if db.session.get(UserModel, user_id) is None:
            raise ResourceNotFound(f"User with ID {user_id} not found.")
        if assigned_chatroom_id is not None and db.session.get(ChatroomModel, assigned_chatroom_id) is None:
            raise ResourceNotFound(f"Chatroom with ID {assigned_chatroom_id} not found.")
        if daily_message_limit is None:
            daily_message_limit = current_app.config.get('DEFAULT_DAILY_MESSAGE_LIMIT', 500)

        try:
            line = UserRealNumberModel(
                user_id=user_id,
                real_number=real_number,
                assigned_chatroom_id=assigned_chatroom_id,
                label=label,
                daily_message_limit=daily_message_limit,
                is_active=is_active,
            )
        except ValueError as e:
            raise ValidationError(str(e))
        db.session.add(line)
        db.session.flush()
        current_app.logger.info(f"Line {line.id} ('{real_number}') created for user {user_id} in chatroom {assigned_chatroom_id}.")
        return line

    @staticmethod
    def get_line(line_id: int) -> UserRealNumberModel:
        line = db.session.get(UserRealNumberModel, line_id)
        if not line:
            raise ResourceNotFound(f"Line with ID {line_id} not found.")
        return line

    @staticmethod
    def list_all_lines(user_id: int | None = None) -> list[UserRealNumberModel]:
        query = db.session.query(UserRealNumberModel)
        if user_id is not None:
            query = query.filter_by(user_id=user_id)
        return query.order_by(UserRealNumberModel.created_at.desc(), UserRealNumberModel.id.desc()).all()

    @staticmethod
    def update_line(line_id: int, **kwargs) -> UserRealNumberModel:
        """
        Updates label, chatroom, daily limit or active flag (DOES NOT COMMIT).

        Raises:
            ConflictError: If the chatroom changes while the line still has
                client threads, whose contacts belong to the current chatroom.
        """
        line = LineService.get_line(line_id)
        chatroom_id = kwargs.get('assigned_chatroom_id')
        if chatroom_id is not None and db.session.get(ChatroomModel, chatroom_id) is None:
            raise ResourceNotFound(f"Chatroom with ID {chatroom_id} not found.")
        if 'assigned_chatroom_id' in kwargs and chatroom_id != line.assigned_chatroom_id:
            threads = db.session.query(ClientAssignmentModel).filter_by(line_id=line.id).count()
            if threads:
                raise ConflictError(
                    f"Line {line_id} has {threads} client threads in chatroom {line.assigned_chatroom_id}; "
                    f"it cannot move to another chatroom."
                )
        try:
            for key in ('label', 'assigned_chatroom_id', 'daily_message_limit', 'is_active'):
                if key in kwargs:
                    setattr(line, key, kwargs[key])
        except ValueError as e:
            raise ValidationError(str(e))
        db.session.flush()
        current_app.logger.info(f"Line {line_id} updated in session.")
        return line

    @staticmethod
    def delete_line(line_id: int) -> None:
        line = LineService.get_line(line_id)
        db.session.delete(line)
        db.session.flush()
        current_app.logger.info(f"Line {line_id} marked for deletion in session.")

    # --- Inbox views ---

    @staticmethod
    def my_lines(user: UserModel) -> list[dict]:
        """
        The caller's active lines with client counts, unread total and the
        time of the most recent message across their threads.
        """
        stats = db.session.query(
            ClientAssignmentModel.line_id.label('line_id'),
            sql_func.count(ClientAssignmentModel.id).label('total_clients'),
            sql_func.sum(case((ClientAssignmentModel.status == 'active', 1), else_=0)).label('active_clients'),
            sql_func.coalesce(sql_func.sum(ClientAssignmentModel.unread_count), 0).label('unread_count'),
            sql_func.max(ClientAssignmentModel.last_message_at).label('last_message_at'),
        ).group_by(ClientAssignmentModel.line_id).subquery()

        rows = db.session.query(UserRealNumberModel, stats)\
                         .outerjoin(stats, stats.c.line_id == UserRealNumberModel.id)\
                         .filter(UserRealNumberModel.user_id == user.id,
                                 UserRealNumberModel.is_active.is_(True))\
                         .order_by(UserRealNumberModel.created_at.desc(), UserRealNumberModel.id.desc())\
                         .all()
        return [
            {
                'line': row[0],
                'total_clients': row.total_clients or 0,
                'active_clients': row.active_clients or 0,
                'unread_count': row.unread_count or 0,
                'last_message_at': row.last_message_at,
            }
            for row in rows
        ]

    @staticmethod
    def list_clients(user: UserModel, line_id: int) -> list[ClientAssignmentModel]:
        """Threads of a line, most recently active first."""
        line = LineService.get_line(line_id)
        AccessService.require_line(user, line)
        return db.session.query(ClientAssignmentModel)\
                         .filter_by(line_id=line_id)\
                         .order_by(ClientAssignmentModel.last_message_at.is_(None),
                                   ClientAssignmentModel.last_message_at.desc(),
                                   ClientAssignmentModel.id.desc())\
                         .all()

    @staticmethod
    def get_assignment(user: UserModel, client_assignment_id: int) -> ClientAssignmentModel:
        """
        Raises:
            ResourceNotFound: If the client assignment does not exist.
            AccessDenied: If the caller does not own the line.
        """
        assignment = db.session.get(ClientAssignmentModel, client_assignment_id)
        if not assignment:
            raise ResourceNotFound(f"Client assignment with ID {client_assignment_id} not found.")
        AccessService.require_line(user, assignment.line)
        return assignment

    @staticmethod
    def conversation(user: UserModel, client_assignment_id: int) -> list[MessageModel]:
        """
        Messages of one thread, oldest first: sends made through this thread
        plus everything the contact sent into the line's chatroom.
        """
        assignment = LineService.get_assignment(user, client_assignment_id)
        chatroom_id = assignment.line.assigned_chatroom_id
        return db.session.query(MessageModel)\
                         .filter(or_(
                             MessageModel.client_assignment_id == assignment.id,
                             and_(MessageModel.direction == 'inbound',
                                  MessageModel.contact_id == assignment.contact_id,
                                  MessageModel.chatroom_id == chatroom_id),
                         ))\
                         .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())\
                         .all()

    @staticmethod
    def mark_read(user: UserModel, client_assignment_id: int) -> ClientAssignmentModel:
        """Resets the thread's unread counter and marks its inbound messages read (DOES NOT COMMIT)."""
        assignment = LineService.get_assignment(user, client_assignment_id)
        assignment.unread_count = 0
        assignment.last_read_at = datetime.now(timezone.utc)

        db.session.query(MessageModel)\
                  .filter(MessageModel.direction == 'inbound',
                          MessageModel.contact_id == assignment.contact_id,
                          MessageModel.chatroom_id == assignment.line.assigned_chatroom_id,
                          MessageModel.is_read.is_(False))\
                  .update({MessageModel.is_read: True}, synchronize_session=False)
        db.session.flush()
        current_app.logger.debug(f"User {user.id} marked client assignment {client_assignment_id} read.")
        return assignment

    @staticmethod
    def find_or_create_assignment(line: UserRealNumberModel, contact: ContactModel,
                                  label: str | None = None,
                                  source_resource_id: int | None = None) -> tuple[ClientAssignmentModel, bool]:
        """
        Returns the thread binding `contact` to `line`, creating it if missing
        (DOES NOT COMMIT). The boolean tells whether it was created.
        """
        existing = db.session.query(ClientAssignmentModel)\
                             .filter_by(line_id=line.id, contact_id=contact.id)\
                             .one_or_none()
        if existing:
            return existing, False
        assignment = ClientAssignmentModel(
            line_id=line.id,
            contact_id=contact.id,
            status='active',
            label=label or contact.name,
            source_resource_id=source_resource_id,
        )
        db.session.add(assignment)
        db.session.flush()
        return assignment, True
