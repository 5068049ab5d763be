# tests/integration/api/test_admin_user_api.py
# -*- coding: utf-8 -*-
"""
Integration tests for the Admin User Management endpoints (/api/admin/users).
"""
import json
import logging

import pytest

from chatdesk.database.models import UserModel

log = logging.getLogger(__name__)

USER_PAYLOAD = {
    "username": "list_test_user", "email": "list_user@test.com",
    "password": "ListUserPass1!", "role": "user", "status": "active", "initialCredits": 3,
}


# --- Test POST / GET /api/admin/users ---

def test_admin_create_and_list_users(client, admin_headers):
    """
    GIVEN an admin bearer token
    WHEN a user is created and the list is requested
    THEN the user is returned with its starting credit and appears in the paginated list.
    """
    create_resp = client.post('/api/admin/users', json=USER_PAYLOAD, headers=admin_headers)
    assert create_resp.status_code == 201, f"Create failed: {create_resp.data.decode()}"
    created = json.loads(create_resp.data)
    assert created['credit'] == 3
    assert 'password' not in created

    response = client.get('/api/admin/users?page=1&per_page=50', headers=admin_headers)

    assert response.status_code == 200
    data = json.loads(response.data)
    assert data['page'] == 1
    assert data['total'] == 2
    usernames = {item['username'] for item in data['items']}
    assert usernames == {'pytest_admin', 'list_test_user'}
    admin_item = next(item for item in data['items'] if item['username'] == 'pytest_admin')
    assert admin_item['credit'] == 'unlimited'


def test_admin_users_forbidden_for_members(client, member_headers):
    """
    GIVEN a regular user's bearer token
    WHEN the admin user list is requested
    THEN check status 403 Forbidden.
    """
    response = client.get('/api/admin/users', headers=member_headers)

    assert response.status_code == 403
    assert response.get_json()['error'] == 'Forbidden'


def test_admin_users_unauthorized_without_token(client, db):
    assert client.get('/api/admin/users').status_code == 401


def test_admin_create_user_duplicate_username(client, admin_headers, member):
    payload = dict(USER_PAYLOAD, username=member.username, email="other@test.com")

    response = client.post('/api/admin/users', json=payload, headers=admin_headers)

    assert response.status_code == 409
    assert response.get_json()['error'] == 'Conflict'


@pytest.mark.parametrize("field, value", [
    ("username", "ab"),
    ("email", "not-an-email"),
    ("password", "short"),
    ("role", "superuser"),
    ("initialCredits", -1),
])
def test_admin_create_user_validation(client, admin_headers, field, value):
    payload = dict(USER_PAYLOAD, **{field: value})

    response = client.post('/api/admin/users', json=payload, headers=admin_headers)

    assert response.status_code == 400
    assert field in response.get_json()['errors']


# --- Test GET / PUT /api/admin/users/<id> ---

def test_admin_get_user(client, admin_headers, member):
    response = client.get(f'/api/admin/users/{member.id}', headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json()['username'] == member.username


def test_admin_get_user_not_found(client, admin_headers):
    response = client.get('/api/admin/users/99999', headers=admin_headers)

    assert response.status_code == 404


def test_admin_update_user(client, session, admin_headers, member):
    """
    GIVEN an existing user
    WHEN an admin PUTs a new status and full name
    THEN the user is updated in the response and in the database.
    """
    response = client.put(f'/api/admin/users/{member.id}',
                          json={'status': 'inactive', 'fullName': 'Former Member'},
                          headers=admin_headers)

    assert response.status_code == 200
    data = response.get_json()
    assert data['status'] == 'inactive'
    assert data['fullName'] == 'Former Member'
    assert session.get(UserModel, member.id).status == 'inactive'


def test_admin_update_user_empty_payload(client, admin_headers, member):
    response = client.put(f'/api/admin/users/{member.id}', json={'unknown': 'x'}, headers=admin_headers)

    assert response.status_code == 400


def test_last_admin_cannot_demote_self(client, admin_headers, admin_user):
    response = client.put(f'/api/admin/users/{admin_user.id}', json={'role': 'user'}, headers=admin_headers)

    assert response.status_code == 403
    assert response.get_json()['error'] == 'AuthorizationError'


# --- Test POST /api/admin/users/<id>/credits ---

def test_admin_top_up_credits(client, admin_headers, member):
    response = client.post(f'/api/admin/users/{member.id}/credits', json={'amount': 10}, headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json() == {'userId': member.id, 'balance': 15}
    assert client.get(f'/api/admin/users/{member.id}', headers=admin_headers).get_json()['credit'] == 15


@pytest.mark.parametrize("amount", [0, -5, "10", 1.5])
def test_admin_top_up_rejects_bad_amounts(client, admin_headers, member, amount):
    response = client.post(f'/api/admin/users/{member.id}/credits', json={'amount': amount}, headers=admin_headers)

    assert response.status_code == 400


def test_admin_top_up_unknown_user(client, admin_headers):
    response = client.post('/api/admin/users/99999/credits', json={'amount': 5}, headers=admin_headers)

    assert response.status_code == 404
    assert response.get_json()['error'] == 'ResourceNotFound'
