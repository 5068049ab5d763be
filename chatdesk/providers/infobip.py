# chatdesk/providers/infobip.py
# -*- coding: utf-8 -*-
"""Infobip adapter: REST API with 'App <apiKey>' authorization (apiKey / baseUrl)."""
import logging
from typing import Any, Mapping

import requests

from chatdesk.providers.base import (
    ProviderAdapter, ProviderKind, SendResult, ConnectionResult,
    InboundEnvelope, StatusUpdate, as_text,
)
from chatdesk.utils.exceptions import ProviderError, ProviderTimeout, ValidationError

log = logging.getLogger(__name__)

# Infobip status groups that mean the message will never be delivered
REJECTED_GROUPS = ('REJECTED', 'UNDELIVERABLE', 'EXPIRED')

# Infobip status.groupName -> our message status
STATUS_MAP = {
    'DELIVERED': 'delivered',
    'UNDELIVERABLE': 'failed',
    'REJECTED': 'failed',
    'EXPIRED': 'failed',
}


def _base_url(raw: str) -> str:
    url = as_text(raw).rstrip('/')
    return url if url.startswith('http') else f"https://{url}"


def _auth_header(api_key: str) -> str:
    return api_key if api_key.startswith('App ') else f"App {api_key}"


def _service_exception_text(data: Mapping[str, Any]) -> str | None:
    request_error = data.get('requestError') or {}
    return (request_error.get('serviceException') or {}).get('text')


def _result_entries(payload: Mapping[str, Any], *keys: str) -> list[Mapping[str, Any]]:
    """
    Entries of an Infobip webhook batch. Entries that are not objects are
    logged and dropped.

    Raises:
        ValidationError: If the batch is present but not a list.
    """
    results = None
    for key in keys:
        results = payload.get(key)
        if results:
            break
    if not results:
        return []
    if not isinstance(results, list):
        raise ValidationError(f"Infobip webhook '{key}' must be a list, got {type(results).__name__}.")
    entries = [item for item in results if isinstance(item, Mapping)]
    if len(entries) != len(results):
        log.warning(f"Dropped {len(results) - len(entries)} malformed Infobip webhook entries.")
    return entries


class InfobipAdapter(ProviderAdapter):
    kind = ProviderKind.INFOBIP
    required_credentials = ('apiKey', 'baseUrl')

    def _headers(self, credentials: Mapping[str, Any]) -> dict:
        return {
            'Authorization': _auth_header(as_text(credentials['apiKey'])),
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }

    def send(self, credentials: Mapping[str, Any], from_address: str, to_address: str, body: str) -> SendResult:
        missing = self.missing_credentials(credentials)
        if missing:
            raise ProviderError(f"Missing Infobip credentials: {', '.join(missing)}")

        url = f"{_base_url(credentials['baseUrl'])}/sms/2/text/advanced"
        payload = {
            'messages': [{
                'from': from_address,
                'destinations': [{'to': to_address}],
                'text': body,
            }]
        }
        try:
            response = self.session.post(url, json=payload, headers=self._headers(credentials), timeout=self.settings.timeout)
        except requests.Timeout as e:
            log.warning(f"Infobip send to {to_address} timed out: {e}")
            raise ProviderTimeout(f"Infobip did not answer within {self.settings.read_timeout}s.", detail=str(e))
        except requests.RequestException as e:
            log.error(f"Infobip send to {to_address} failed at transport level: {e}")
            raise ProviderError(f"Could not reach Infobip: {e}", detail=str(e))

        data = self._json(response)
        if not response.ok:
            detail = _service_exception_text(data) or data.get('_raw') or response.reason
            log.error(f"Infobip rejected send to {to_address} ({response.status_code}): {detail}")
            raise ProviderError(f"Infobip rejected the message: {detail}", detail=str(detail))

        messages = data.get('messages') or []
        if not messages:
            raise ProviderError("Infobip accepted the request but returned no message.", detail=str(data))

        first = messages[0]
        status = first.get('status') or {}
        if status.get('groupName') in REJECTED_GROUPS:
            detail = status.get('description') or status.get('name') or status.get('groupName')
            log.error(f"Infobip refused message to {to_address}: {detail}")
            raise ProviderError(f"Infobip refused the message: {detail}", detail=str(detail), provider_code=status.get('id'))

        message_id = first.get('messageId')
        if not message_id:
            raise ProviderError("Infobip accepted the request but returned no message id.", detail=str(data))
        return SendResult(provider_message_id=str(message_id), provider_status=status.get('name') or status.get('groupName'))

    def test_connection(self, credentials: Mapping[str, Any]) -> ConnectionResult:
        """
        Probe the SMS endpoint with an empty batch. Infobip authenticates
        before validating, so a 400 about the empty batch proves the key works
        without sending anything.
        """
        missing = self.missing_credentials(credentials)
        if missing:
            return ConnectionResult(False, f"Missing {', '.join(missing)}")

        url = f"{_base_url(credentials['baseUrl'])}/sms/2/text/advanced"
        try:
            response = self.session.post(url, json={'messages': []}, headers=self._headers(credentials), timeout=self.settings.timeout)
        except requests.RequestException as e:
            return ConnectionResult(False, f"Connection error: {e}")

        data = self._json(response)
        error_text = _service_exception_text(data) or ''

        if response.status_code in (401, 403):
            return ConnectionResult(False, f"Authentication failed: {error_text or 'Invalid API key or insufficient permissions'}")
        if response.status_code == 400:
            validation_errors = ((data.get('requestError') or {}).get('serviceException') or {}).get('validationErrors') or {}
            lowered = error_text.lower()
            if 'messages' in validation_errors or 'empty' in lowered or 'required' in lowered:
                return ConnectionResult(True, "Connected to Infobip. API key authenticated and SMS API is accessible.")
            return ConnectionResult(False, f"Validation error: {error_text}")
        if response.ok:
            return ConnectionResult(True, "Connected to Infobip. API key is valid.")
        return ConnectionResult(False, f"Connection test failed: {error_text or response.reason}")

    def parse_inbound(self, payload: Mapping[str, Any]) -> list[InboundEnvelope]:
        envelopes = []
        for item in _result_entries(payload, 'results', 'messages'):
            envelopes.append(InboundEnvelope(
                from_address=as_text(item.get('from') or item.get('sender')),
                to_address=as_text(item.get('to') or item.get('destination')),
                body=as_text(item.get('text') or item.get('cleanText') or item.get('message')),
                provider_message_id=as_text(item.get('messageId')) or None,
            ))
        return envelopes

    def parse_status(self, payload: Mapping[str, Any]) -> list[StatusUpdate]:
        updates = []
        for item in _result_entries(payload, 'results'):
            message_id = as_text(item.get('messageId'))
            if not message_id:
                continue
            status = item.get('status')
            status = status if isinstance(status, Mapping) else {}
            group = as_text(status.get('groupName')).upper()
            error = item.get('error')
            error = error if isinstance(error, Mapping) else {}
            error_detail = None
            if error.get('groupName') not in (None, 'OK'):
                error_detail = error.get('description') or error.get('name')
            updates.append(StatusUpdate(
                provider_message_id=message_id,
                status=STATUS_MAP.get(group),
                provider_status=status.get('name') or group or None,
                error_detail=error_detail,
            ))
        return updates
