# tests/unit/providers/test_twilio_adapter.py
# -*- coding: utf-8 -*-
"""Unit tests for the Twilio adapter. The HTTP session is mocked; nothing leaves the process."""
from unittest import mock

import pytest
import requests

from chatdesk.providers.base import ProviderSettings
from chatdesk.providers.twilio import TwilioAdapter
from chatdesk.utils.exceptions import ProviderError, ProviderTimeout

CREDENTIALS = {'accountSid': 'AC123', 'authToken': 'secret'}


def _response(status_code, payload=None, reason='OK'):
    response = mock.Mock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    response.reason = reason
    response.json.return_value = payload or {}
    return response


@pytest.fixture
def http():
    return mock.Mock(spec=requests.Session)


@pytest.fixture
def adapter(http):
    return TwilioAdapter(ProviderSettings(connect_timeout=2, read_timeout=7), session=http)


def test_send_posts_form_with_basic_auth(adapter, http):
    http.post.return_value = _response(201, {'sid': 'SM42', 'status': 'queued'})

    result = adapter.send(CREDENTIALS, '+15550001', '+15552222', 'Hello')

    assert result.provider_message_id == 'SM42'
    assert result.provider_status == 'queued'
    http.post.assert_called_once_with(
        'https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json',
        data={'From': '+15550001', 'To': '+15552222', 'Body': 'Hello'},
        auth=('AC123', 'secret'),
        timeout=(2.0, 7.0),
    )


def test_send_rejection_keeps_provider_text(adapter, http):
    http.post.return_value = _response(400, {'code': 21211, 'message': "The 'To' number is not valid."}, 'Bad Request')

    with pytest.raises(ProviderError) as excinfo:
        adapter.send(CREDENTIALS, '+15550001', 'nope', 'Hello')

    assert excinfo.value.detail == "The 'To' number is not valid."
    assert excinfo.value.provider_code == 21211


def test_send_timeout_is_provider_timeout(adapter, http):
    http.post.side_effect = requests.ReadTimeout("read timed out")

    with pytest.raises(ProviderTimeout):
        adapter.send(CREDENTIALS, '+15550001', '+15552222', 'Hello')


def test_send_transport_error_is_provider_error(adapter, http):
    http.post.side_effect = requests.ConnectionError("refused")

    with pytest.raises(ProviderError) as excinfo:
        adapter.send(CREDENTIALS, '+15550001', '+15552222', 'Hello')
    assert not isinstance(excinfo.value, ProviderTimeout)


def test_send_without_credentials_never_calls_out(adapter, http):
    with pytest.raises(ProviderError):
        adapter.send({'accountSid': 'AC123'}, '+15550001', '+15552222', 'Hello')
    http.post.assert_not_called()


def test_connection_reports_friendly_name(adapter, http):
    http.get.return_value = _response(200, {'friendly_name': 'Main account'})
    result = adapter.test_connection(CREDENTIALS)
    assert result.ok is True
    assert 'Main account' in result.message


def test_connection_failure(adapter, http):
    http.get.return_value = _response(401, {}, 'Unauthorized')
    result = adapter.test_connection(CREDENTIALS)
    assert result.ok is False
    assert 'Unauthorized' in result.message


def test_parse_inbound_form(adapter):
    envelopes = adapter.parse_inbound({'From': ' +15557777', 'To': '+15550001', 'Body': 'Hi', 'MessageSid': 'SM1'})
    assert len(envelopes) == 1
    assert envelopes[0].from_address == '+15557777'
    assert envelopes[0].provider_message_id == 'SM1'


@pytest.mark.parametrize("raw, mapped", [
    ('delivered', 'delivered'),
    ('undelivered', 'failed'),
    ('failed', 'failed'),
    ('sent', 'sent'),
    ('queued', None),
])
def test_parse_status_maps_twilio_states(adapter, raw, mapped):
    updates = adapter.parse_status({'MessageSid': 'SM1', 'MessageStatus': raw})
    assert updates[0].status == mapped
    assert updates[0].provider_status == raw


def test_parse_status_carries_error_code(adapter):
    updates = adapter.parse_status({'MessageSid': 'SM1', 'MessageStatus': 'undelivered',
                                    'ErrorCode': '30003', 'ErrorMessage': 'Unreachable handset'})
    assert updates[0].error_detail == '30003: Unreachable handset'


def test_parse_status_without_sid_is_empty(adapter):
    assert adapter.parse_status({'MessageStatus': 'delivered'}) == []
