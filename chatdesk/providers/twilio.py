# chatdesk/providers/twilio.py
# -*- coding: utf-8 -*-
"""Twilio adapter: REST API with HTTP basic auth (accountSid / authToken)."""
import logging
from typing import Any, Mapping

import requests

from chatdesk.providers.base import (
    ProviderAdapter, ProviderKind, SendResult, ConnectionResult,
    InboundEnvelope, StatusUpdate, as_text,
)
from chatdesk.utils.exceptions import ProviderError, ProviderTimeout

log = logging.getLogger(__name__)

# Twilio MessageStatus -> our message status. Unlisted states are ignored.
STATUS_MAP = {
    'sent': 'sent',
    'delivered': 'delivered',
    'read': 'read',
    'undelivered': 'failed',
    'failed': 'failed',
}


class TwilioAdapter(ProviderAdapter):
    kind = ProviderKind.TWILIO
    required_credentials = ('accountSid', 'authToken')

    def _account_url(self, account_sid: str, suffix: str = '') -> str:
        return f"{self.settings.twilio_api_base}/2010-04-01/Accounts/{account_sid}{suffix}.json"

    def send(self, credentials: Mapping[str, Any], from_address: str, to_address: str, body: str) -> SendResult:
        missing = self.missing_credentials(credentials)
        if missing:
            raise ProviderError(f"Missing Twilio credentials: {', '.join(missing)}")

        account_sid = as_text(credentials['accountSid'])
        auth_token = as_text(credentials['authToken'])
        url = self._account_url(account_sid, '/Messages')

        try:
            response = self.session.post(
                url,
                data={'From': from_address, 'To': to_address, 'Body': body},
                auth=(account_sid, auth_token),
                timeout=self.settings.timeout,
            )
        except requests.Timeout as e:
            log.warning(f"Twilio send to {to_address} timed out: {e}")
            raise ProviderTimeout(f"Twilio did not answer within {self.settings.read_timeout}s.", detail=str(e))
        except requests.RequestException as e:
            log.error(f"Twilio send to {to_address} failed at transport level: {e}")
            raise ProviderError(f"Could not reach Twilio: {e}", detail=str(e))

        data = self._json(response)
        if response.status_code >= 400:
            detail = data.get('message') or data.get('_raw') or response.reason
            log.error(f"Twilio rejected send to {to_address} ({response.status_code}): {detail}")
            raise ProviderError(f"Twilio rejected the message: {detail}", detail=str(detail), provider_code=data.get('code'))

        sid = data.get('sid')
        if not sid:
            raise ProviderError("Twilio accepted the request but returned no message SID.", detail=str(data))
        return SendResult(provider_message_id=sid, provider_status=data.get('status'))

    def test_connection(self, credentials: Mapping[str, Any]) -> ConnectionResult:
        missing = self.missing_credentials(credentials)
        if missing:
            return ConnectionResult(False, f"Missing {', '.join(missing)}")

        account_sid = as_text(credentials['accountSid'])
        try:
            response = self.session.get(
                self._account_url(account_sid),
                auth=(account_sid, as_text(credentials['authToken'])),
                timeout=self.settings.timeout,
            )
        except requests.RequestException as e:
            return ConnectionResult(False, f"Twilio connection error: {e}")

        if response.ok:
            data = self._json(response)
            return ConnectionResult(True, f"Connected to Twilio account: {data.get('friendly_name', account_sid)}")
        return ConnectionResult(False, f"Twilio authentication failed: {response.reason}")

    def parse_inbound(self, payload: Mapping[str, Any]) -> list[InboundEnvelope]:
        # Twilio posts a single message per form-encoded request
        return [InboundEnvelope(
            from_address=as_text(payload.get('From')),
            to_address=as_text(payload.get('To')),
            body=as_text(payload.get('Body')),
            provider_message_id=as_text(payload.get('MessageSid') or payload.get('SmsSid')) or None,
        )]

    def parse_status(self, payload: Mapping[str, Any]) -> list[StatusUpdate]:
        sid = as_text(payload.get('MessageSid') or payload.get('SmsSid'))
        if not sid:
            return []
        raw_status = as_text(payload.get('MessageStatus') or payload.get('SmsStatus')).lower()
        error_detail = None
        if payload.get('ErrorCode'):
            error_detail = f"{as_text(payload.get('ErrorCode'))}: {as_text(payload.get('ErrorMessage'))}".rstrip(': ')
        return [StatusUpdate(
            provider_message_id=sid,
            status=STATUS_MAP.get(raw_status),
            provider_status=raw_status or None,
            error_detail=error_detail,
        )]
