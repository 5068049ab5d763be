# tests/integration/services/test_token_ledger.py
# -*- coding: utf-8 -*-
"""Integration tests for the send-credit ledger."""
import pytest

from chatdesk.services.token_ledger import TokenLedger, UnlimitedCredit, MeteredCredit
from chatdesk.utils.exceptions import InsufficientCredit, ValidationError, ResourceNotFound


def test_debit_takes_exactly_one_credit(session, member):
    standing = TokenLedger.debit(member)
    session.commit()

    assert standing == MeteredCredit(4)
    assert TokenLedger.standing(member) == MeteredCredit(4)


def test_debit_until_empty_then_refuse(session, make_user):
    user = make_user(credits=2)

    TokenLedger.debit(user)
    TokenLedger.debit(user)
    with pytest.raises(InsufficientCredit):
        TokenLedger.debit(user)
    session.commit()

    assert TokenLedger._balance(user.id) == 0


def test_admin_is_never_metered(session, admin_user):
    for _ in range(3):
        assert isinstance(TokenLedger.debit(admin_user), UnlimitedCredit)
    assert TokenLedger.standing(admin_user).as_response() == 'unlimited'


def test_user_without_balance_row_is_refused(session, member):
    from chatdesk.database.models.user import TokenBalanceModel
    session.query(TokenBalanceModel).filter_by(user_id=member.id).delete()
    session.commit()

    with pytest.raises(InsufficientCredit):
        TokenLedger.debit(member)


def test_top_up_adds_to_balance(session, member):
    standing = TokenLedger.top_up(member.id, 10)
    session.commit()

    assert standing.remaining == 15
    assert TokenLedger.standing(member).as_response() == 15


@pytest.mark.parametrize("amount", [0, -3, 2.5, "10", None])
def test_top_up_rejects_non_positive_or_non_integer_amounts(session, member, amount):
    with pytest.raises(ValidationError):
        TokenLedger.top_up(member.id, amount)


def test_top_up_unknown_user_is_not_found(session):
    with pytest.raises(ResourceNotFound):
        TokenLedger.top_up(424242, 5)
