# tests/unit/providers/test_infobip_adapter.py
# -*- coding: utf-8 -*-
"""Unit tests for the Infobip adapter with a mocked HTTP session."""
from unittest import mock

import pytest
import requests

from chatdesk.providers.base import ProviderSettings
from chatdesk.providers.infobip import InfobipAdapter
from chatdesk.utils.exceptions import ProviderError, ProviderTimeout, ValidationError

CREDENTIALS = {'apiKey': 'abc123', 'baseUrl': 'xyz.api.infobip.com/'}


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
    return InfobipAdapter(ProviderSettings(), session=http)


def test_send_uses_app_key_and_advanced_endpoint(adapter, http):
    http.post.return_value = _response(200, {'messages': [
        {'messageId': 'IB-1', 'status': {'groupName': 'PENDING', 'name': 'PENDING_ACCEPTED'}},
    ]})

    result = adapter.send(CREDENTIALS, '+15550001', '+15552222', 'Hello')

    assert result.provider_message_id == 'IB-1'
    assert result.provider_status == 'PENDING_ACCEPTED'
    args, kwargs = http.post.call_args
    assert args[0] == 'https://xyz.api.infobip.com/sms/2/text/advanced'
    assert kwargs['headers']['Authorization'] == 'App abc123'
    assert kwargs['json']['messages'][0]['destinations'] == [{'to': '+15552222'}]


def test_send_rejected_group_is_provider_error(adapter, http):
    http.post.return_value = _response(200, {'messages': [
        {'messageId': 'IB-2', 'status': {'groupName': 'REJECTED', 'id': 6, 'description': 'Destination not registered'}},
    ]})

    with pytest.raises(ProviderError) as excinfo:
        adapter.send(CREDENTIALS, '+15550001', '+15552222', 'Hello')
    assert excinfo.value.detail == 'Destination not registered'


def test_send_http_error_uses_service_exception_text(adapter, http):
    http.post.return_value = _response(401, {'requestError': {'serviceException': {'text': 'Invalid login details'}}},
                                       'Unauthorized')

    with pytest.raises(ProviderError) as excinfo:
        adapter.send(CREDENTIALS, '+15550001', '+15552222', 'Hello')
    assert excinfo.value.detail == 'Invalid login details'


def test_send_timeout(adapter, http):
    http.post.side_effect = requests.ConnectTimeout("connect timed out")
    with pytest.raises(ProviderTimeout):
        adapter.send(CREDENTIALS, '+15550001', '+15552222', 'Hello')


def test_connection_empty_batch_validation_means_authenticated(adapter, http):
    http.post.return_value = _response(400, {'requestError': {'serviceException': {
        'text': 'Bad request', 'validationErrors': {'messages': ['must not be empty']},
    }}}, 'Bad Request')

    assert adapter.test_connection(CREDENTIALS).ok is True


def test_connection_bad_key(adapter, http):
    http.post.return_value = _response(401, {}, 'Unauthorized')
    result = adapter.test_connection(CREDENTIALS)
    assert result.ok is False
    assert result.message.startswith('Authentication failed')


def test_connection_missing_credentials(adapter, http):
    result = adapter.test_connection({'apiKey': 'abc123'})
    assert result.ok is False
    assert 'baseUrl' in result.message
    http.post.assert_not_called()


def test_parse_inbound_batch(adapter):
    envelopes = adapter.parse_inbound({'results': [
        {'from': '+15557777', 'to': '+15550001', 'text': 'One', 'messageId': 'in-1'},
        {'from': '+15557778', 'to': '+15550001', 'cleanText': 'Two', 'messageId': 'in-2'},
    ]})
    assert [(e.from_address, e.body, e.provider_message_id) for e in envelopes] == [
        ('+15557777', 'One', 'in-1'),
        ('+15557778', 'Two', 'in-2'),
    ]


def test_parse_status_maps_groups(adapter):
    updates = adapter.parse_status({'results': [
        {'messageId': 'IB-1', 'status': {'groupName': 'DELIVERED', 'name': 'DELIVERED_TO_HANDSET'}},
        {'messageId': 'IB-2', 'status': {'groupName': 'UNDELIVERABLE'},
         'error': {'groupName': 'HANDSET_ERRORS', 'description': 'Absent subscriber'}},
        {'messageId': 'IB-3', 'status': {'groupName': 'PENDING'}},
        {'status': {'groupName': 'DELIVERED'}},
    ]})
    assert [(u.provider_message_id, u.status) for u in updates] == [
        ('IB-1', 'delivered'), ('IB-2', 'failed'), ('IB-3', None),
    ]
    assert updates[1].error_detail == 'Absent subscriber'


def test_parse_drops_entries_that_are_not_objects(adapter):
    envelopes = adapter.parse_inbound({'results': [
        'junk',
        {'from': '+15557777', 'to': '+15550001', 'text': 'Kept', 'messageId': 'in-3'},
        None,
    ]})
    assert [e.provider_message_id for e in envelopes] == ['in-3']

    updates = adapter.parse_status({'results': [17, {'messageId': 'IB-4', 'status': 'DELIVERED', 'error': 'x'}]})
    assert [(u.provider_message_id, u.status, u.error_detail) for u in updates] == [('IB-4', None, None)]


@pytest.mark.parametrize("results", ['abc', {'messageId': 'IB-1'}, 7])
def test_parse_rejects_batch_that_is_not_a_list(adapter, results):
    with pytest.raises(ValidationError):
        adapter.parse_inbound({'results': results})
    with pytest.raises(ValidationError):
        adapter.parse_status({'results': results})
