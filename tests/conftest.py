# tests/conftest.py
# -*- coding: utf-8 -*-
"""
Pytest fixtures for chatdesk tests.

Sets up the Flask application in testing mode, gives every test a fresh
database (the send path commits, so per-test transactions cannot be rolled
back), provides users with bearer-token headers, a fake provider adapter
registered in place of Twilio, and a fully routed "Support" chatroom.
"""

import itertools
import logging
import os
import sys
from types import SimpleNamespace

import pytest

project_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_dir not in sys.path:
    sys.path.insert(0, project_dir)

from chatdesk import create_app
from chatdesk.extensions import db as _db
from chatdesk.database import models  # noqa: F401 registers every table on the metadata
from chatdesk.providers.base import ProviderKind, SendResult, ConnectionResult
from chatdesk.providers.twilio import TwilioAdapter
from chatdesk.services.auth_service import AuthService
from chatdesk.services.user_service import UserService
from chatdesk.services.provider_account_service import ProviderAccountService
from chatdesk.services.sender_number_service import SenderNumberService
from chatdesk.services.chatroom_service import ChatroomService
from chatdesk.services.inbound_service import InboundService

log = logging.getLogger(__name__)

TEST_PASSWORD = "PytestPass123!"
WEBHOOK_TOKEN = "testing-webhook-token"

SUPPORT_NUMBER = "+15550001"
CUSTOMER_NUMBER = "+15552222"
TWILIO_CREDENTIALS = {"accountSid": "AC00000000000000000000000000000001", "authToken": "twilio-secret-token-9876"}


# ---- Application Fixtures ----

@pytest.fixture(scope='session')
def app():
    """Session-wide Flask app in 'testing' config with an app context pushed."""
    _app = create_app(config_name='testing')
    ctx = _app.app_context()
    ctx.push()
    yield _app
    ctx.pop()


@pytest.fixture(scope='function')
def client(app):
    return app.test_client()


# ---- Database Fixtures ----

@pytest.fixture(scope='function')
def db(app):
    """Fresh schema for every test."""
    _db.create_all()
    yield _db
    _db.session.remove()
    _db.drop_all()


@pytest.fixture(scope='function')
def session(db):
    return db.session


# ---- Users & Authentication ----

@pytest.fixture(scope='function')
def make_user(session):
    """Factory creating committed users. Credits apply to non-admins only."""
    counter = itertools.count(1)

    def _make(role='user', credits=0, status='active', username=None):
        username = username or f"{role}_{next(counter)}"
        user = UserService.create_user(
            username=username,
            email=f"{username}@chatdesk.test",
            password=TEST_PASSWORD,
            role=role,
            status=status,
            initial_credits=credits,
        )
        session.commit()
        return user

    return _make


@pytest.fixture(scope='function')
def admin_user(make_user):
    return make_user(role='admin', username='pytest_admin')


@pytest.fixture(scope='function')
def member(make_user):
    """A regular console user holding five credits."""
    return make_user(role='user', credits=5, username='pytest_member')


def auth_headers(user):
    """Bearer-token headers for `user`."""
    return {'Authorization': f"Bearer {AuthService.issue_token(user)}"}


@pytest.fixture(scope='function')
def headers_for():
    return auth_headers


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture(scope='function')
def member_headers(member):
    return auth_headers(member)


@pytest.fixture(scope='function')
def webhook_params():
    return {'token': WEBHOOK_TOKEN}


# ---- Provider Fakes ----

class FakeTwilioAdapter(TwilioAdapter):
    """
    Twilio adapter that never touches the network. Webhook parsing is the
    real Twilio code; sends are recorded and answered from `fail_with` or a
    generated SID.
    """

    def __init__(self, settings):
        super().__init__(settings)
        self.sent = []
        self.fail_with = None
        self._sids = itertools.count(1)

    def send(self, credentials, from_address, to_address, body):
        self.sent.append({'from': from_address, 'to': to_address, 'body': body})
        if self.fail_with is not None:
            raise self.fail_with
        return SendResult(provider_message_id=f"SM{next(self._sids):032d}", provider_status='queued')

    def test_connection(self, credentials):
        missing = self.missing_credentials(credentials)
        if missing:
            return ConnectionResult(False, f"Missing {', '.join(missing)}")
        return ConnectionResult(True, "Connected to Twilio account: fake")


@pytest.fixture(scope='function')
def fake_provider(app):
    """Swap the registry's Twilio adapter for FakeTwilioAdapter for one test."""
    registry = app.extensions['provider_registry']
    original = registry.get(ProviderKind.TWILIO)
    fake = FakeTwilioAdapter(registry.settings)
    registry.register(ProviderKind.TWILIO, fake)
    yield fake
    registry.register(ProviderKind.TWILIO, original)


# ---- Routing Fixtures ----

@pytest.fixture(scope='function')
def support(session, fake_provider, member):
    """
    Chatroom "Support" fully routed through a Twilio account, with one
    contact, and `member` assigned to it.
    """
    account = ProviderAccountService.create_account(
        provider_kind='twilio', provider_name='Twilio Main', credentials=dict(TWILIO_CREDENTIALS),
    )
    sender = SenderNumberService.create_number(SUPPORT_NUMBER, provider_account_id=account.id, label='Support line')
    chatroom = ChatroomService.create_chatroom('Support', sender_number_id=sender.id)
    ChatroomService.assign_users(chatroom.id, [member.id])
    contact, _ = InboundService.find_or_create_contact(chatroom.id, CUSTOMER_NUMBER, name='Customer')
    session.commit()
    return SimpleNamespace(account=account, sender=sender, chatroom=chatroom, contact=contact, provider=fake_provider)


@pytest.fixture(scope='function')
def sales(session, member):
    """Chatroom "Sales" with no sender number, one contact, `member` assigned."""
    chatroom = ChatroomService.create_chatroom('Sales')
    ChatroomService.assign_users(chatroom.id, [member.id])
    contact, _ = InboundService.find_or_create_contact(chatroom.id, "+15558888", name='Prospect')
    session.commit()
    return SimpleNamespace(chatroom=chatroom, contact=contact)
