# chatdesk/database/models/__init__.py
# -*- coding: utf-8 -*-
"""
Models Package Initialization.

Exposes model classes for easier importing throughout the application,
e.g., `from chatdesk.database.models import ChatroomModel`.
"""

from .user import UserModel, TokenBalanceModel
from .provider_account import ProviderAccountModel, SenderNumberModel
from .chatroom import ChatroomModel, UserChatroomModel, ContactModel
from .line import UserRealNumberModel, ClientAssignmentModel
from .message import MessageModel, InboundMessageModel
from .resource_pool import ResourcePoolModel

__all__ = [
    'UserModel',
    'TokenBalanceModel',
    'ProviderAccountModel',
    'SenderNumberModel',
    'ChatroomModel',
    'UserChatroomModel',
    'ContactModel',
    'UserRealNumberModel',
    'ClientAssignmentModel',
    'MessageModel',
    'InboundMessageModel',
    'ResourcePoolModel',
]
