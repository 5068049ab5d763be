# tests/integration/api/test_admin_provisioning_api.py
# -*- coding: utf-8 -*-
"""
Integration tests for admin provisioning: provider accounts, sender numbers,
chatrooms with their user assignments, and lines.
"""
import logging

import pytest

from chatdesk.services.line_service import LineService

from conftest import TWILIO_CREDENTIALS, SUPPORT_NUMBER

log = logging.getLogger(__name__)


# --- /api/admin/providers ---

def test_create_provider_masks_credentials(client, admin_headers, admin_user):
    """
    GIVEN an admin
    WHEN a Twilio account is created with full credentials
    THEN the response never echoes a credential in clear text.
    """
    response = client.post('/api/admin/providers', headers=admin_headers, json={
        'providerKind': 'twilio', 'providerName': 'Twilio Main', 'credentials': TWILIO_CREDENTIALS,
    })

    assert response.status_code == 201, response.data.decode()
    data = response.get_json()
    assert data['credentials'] == {'accountSid': '****0001', 'authToken': '****9876'}
    assert data['createdBy'] == admin_user.id
    assert data['providerType'] == 'sms'
    assert TWILIO_CREDENTIALS['authToken'] not in response.data.decode()


def test_provider_validation(client, admin_headers):
    response = client.post('/api/admin/providers', headers=admin_headers,
                           json={'providerKind': 'carrier-pigeon', 'providerName': ''})

    assert response.status_code == 400
    assert set(response.get_json()['errors']) == {'providerKind', 'providerName'}


def test_patch_provider_merges_credentials(client, support, admin_headers):
    response = client.patch(f'/api/admin/providers/{support.account.id}', headers=admin_headers,
                            json={'credentials': {'authToken': 'rotated-token-4321'}, 'providerName': 'Renamed'})

    assert response.status_code == 200
    data = response.get_json()
    assert data['providerName'] == 'Renamed'
    assert data['credentials'] == {'accountSid': '****0001', 'authToken': '****4321'}


def test_provider_connection_test(client, support, admin_headers):
    response = client.post(f'/api/admin/providers/{support.account.id}/test', headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json()['ok'] is True


def test_delete_provider_in_use_conflicts(client, support, admin_headers):
    response = client.delete(f'/api/admin/providers/{support.account.id}', headers=admin_headers)

    assert response.status_code == 409


def test_provider_routes_are_admin_only(client, member_headers):
    assert client.get('/api/admin/providers', headers=member_headers).status_code == 403


# --- /api/admin/sender-numbers ---

def test_sender_number_lifecycle(client, support, admin_headers):
    created = client.post('/api/admin/sender-numbers', headers=admin_headers,
                          json={'number': ' +15550002 ', 'providerAccountId': support.account.id, 'isActive': False})
    assert created.status_code == 201
    sender = created.get_json()
    assert sender['number'] == '+15550002'

    active = client.get('/api/admin/sender-numbers?active=true', headers=admin_headers).get_json()
    assert [n['number'] for n in active] == [SUPPORT_NUMBER]

    patched = client.patch(f"/api/admin/sender-numbers/{sender['id']}", headers=admin_headers, json={'label': 'Spare'})
    assert patched.get_json()['label'] == 'Spare'

    assert client.delete(f"/api/admin/sender-numbers/{sender['id']}", headers=admin_headers).status_code == 204
    assert client.delete(f"/api/admin/sender-numbers/{support.sender.id}", headers=admin_headers).status_code == 409


def test_duplicate_sender_number_conflicts(client, support, admin_headers):
    response = client.post('/api/admin/sender-numbers', headers=admin_headers, json={'number': SUPPORT_NUMBER})

    assert response.status_code == 409


# --- /api/admin/chatrooms ---

def test_chatroom_creation_and_assignment(client, support, admin_headers, make_user):
    """
    GIVEN a sender number already backing "Support"
    WHEN an admin creates another active chatroom on it
    THEN it conflicts; without a sender number it succeeds and users can be assigned.
    """
    clash = client.post('/api/admin/chatrooms', headers=admin_headers,
                        json={'name': 'Clash', 'senderNumberId': support.sender.id})
    assert clash.status_code == 409

    created = client.post('/api/admin/chatrooms', headers=admin_headers, json={'name': 'Billing'})
    assert created.status_code == 201
    chatroom_id = created.get_json()['id']

    user = make_user()
    assigned = client.post(f'/api/admin/chatrooms/{chatroom_id}/users', headers=admin_headers,
                           json={'userIds': [user.id]})
    assert assigned.get_json()['assigned'] == 1

    users = client.get(f'/api/admin/chatrooms/{chatroom_id}/users', headers=admin_headers).get_json()
    assert [u['id'] for u in users] == [user.id]

    removed = client.delete(f'/api/admin/chatrooms/{chatroom_id}/users/{user.id}', headers=admin_headers)
    assert removed.status_code == 204
    again = client.delete(f'/api/admin/chatrooms/{chatroom_id}/users/{user.id}', headers=admin_headers)
    assert again.status_code == 404


def test_chatroom_get_patch_delete(client, support, admin_headers):
    fetched = client.get(f'/api/admin/chatrooms/{support.chatroom.id}', headers=admin_headers).get_json()
    assert fetched['senderNumber'] == SUPPORT_NUMBER

    patched = client.patch(f'/api/admin/chatrooms/{support.chatroom.id}', headers=admin_headers,
                           json={'description': 'Front desk'})
    assert patched.get_json()['description'] == 'Front desk'

    created = client.post('/api/admin/chatrooms', headers=admin_headers, json={'name': 'Temp'}).get_json()
    assert client.delete(f"/api/admin/chatrooms/{created['id']}", headers=admin_headers).status_code == 204
    assert client.get(f"/api/admin/chatrooms/{created['id']}", headers=admin_headers).status_code == 404


# --- /api/admin/lines ---

def test_line_provisioning(client, support, member, admin_headers):
    created = client.post('/api/admin/lines', headers=admin_headers, json={
        'userId': member.id, 'realNumber': '+15553333', 'assignedChatroomId': support.chatroom.id,
    })
    assert created.status_code == 201
    line = created.get_json()
    assert line['dailyMessageLimit'] == 500
    assert line['chatroomName'] == 'Support'

    patched = client.patch(f"/api/admin/lines/{line['id']}", headers=admin_headers, json={'dailyMessageLimit': 20})
    assert patched.get_json()['dailyMessageLimit'] == 20

    listed = client.get(f'/api/admin/lines?userId={member.id}', headers=admin_headers).get_json()
    assert [item['id'] for item in listed] == [line['id']]

    assert client.delete(f"/api/admin/lines/{line['id']}", headers=admin_headers).status_code == 204


def test_line_with_threads_keeps_its_chatroom(client, session, support, sales, member, admin_headers):
    line = LineService.create_line(member.id, '+15553333', assigned_chatroom_id=support.chatroom.id)
    LineService.find_or_create_assignment(line, support.contact)
    session.commit()

    response = client.patch(f"/api/admin/lines/{line.id}", headers=admin_headers,
                            json={'assignedChatroomId': sales.chatroom.id})

    assert response.status_code == 409
    assert response.get_json()['error'] == 'Conflict'
    assert LineService.get_line(line.id).assigned_chatroom_id == support.chatroom.id


@pytest.mark.parametrize("payload", [
    {'realNumber': '+15553333'},
    {'userId': 1, 'realNumber': ''},
    {'userId': 1, 'realNumber': '+15553333', 'dailyMessageLimit': 0},
])
def test_line_validation(client, admin_headers, payload):
    response = client.post('/api/admin/lines', headers=admin_headers, json=payload)

    assert response.status_code == 400
