# chatdesk/services/access_service.py
# -*- coding: utf-8 -*-
"""
Access Service
Answers "may this user read/write this chatroom or line". Admins bypass all
chatroom-level checks; everyone else needs a direct assignment (chatrooms)
or ownership (lines). No inherited permissions.
Read-only; never modifies the session.
"""
import logging

from sqlalchemy import select

from chatdesk.database.models.user import UserModel
from chatdesk.database.models.chatroom import UserChatroomModel
from chatdesk.database.models.line import UserRealNumberModel
from chatdesk.extensions import db
from chatdesk.utils.exceptions import AccessDenied

log = logging.getLogger(__name__)


class AccessService:

    @staticmethod
    def can_access_chatroom(user: UserModel, chatroom_id: int) -> bool:
        if user.is_admin:
            return True
        link = db.session.query(UserChatroomModel.chatroom_id)\
                         .filter_by(user_id=user.id, chatroom_id=chatroom_id)\
                         .first()
        return link is not None

    @staticmethod
    def can_use_line(user: UserModel, line: UserRealNumberModel) -> bool:
        return user.is_admin or line.user_id == user.id

    @staticmethod
    def require_chatroom(user: UserModel, chatroom_id: int) -> None:
        """Raise AccessDenied unless the user may read/write the chatroom."""
        if not AccessService.can_access_chatroom(user, chatroom_id):
            log.warning(f"Access denied: User {user.id} has no grant on chatroom {chatroom_id}.")
            raise AccessDenied(f"You do not have access to chatroom {chatroom_id}.")

    @staticmethod
    def require_line(user: UserModel, line: UserRealNumberModel) -> None:
        """Raise AccessDenied unless the user owns the line."""
        if not AccessService.can_use_line(user, line):
            log.warning(f"Access denied: User {user.id} does not own line {line.id}.")
            raise AccessDenied(f"You do not have access to line {line.id}.")

    @staticmethod
    def accessible_chatroom_ids(user: UserModel) -> list[int]:
        """Chatroom ids a non-admin user is assigned to."""
        rows = db.session.query(UserChatroomModel.chatroom_id).filter_by(user_id=user.id).all()
        return [row.chatroom_id for row in rows]

    @staticmethod
    def scope_to_accessible(query, user: UserModel, chatroom_column):
        """
        Restrict a query to rows in chatrooms the user may read.
        Admins get the query back unchanged.
        """
        if user.is_admin:
            return query
        allowed = select(UserChatroomModel.chatroom_id).where(UserChatroomModel.user_id == user.id)
        return query.filter(chatroom_column.in_(allowed))
