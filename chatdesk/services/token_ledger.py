# chatdesk/services/token_ledger.py
# -*- coding: utf-8 -*-
"""
Token Ledger
Per-user send credit. One credit is debited per non-admin outbound send.

The debit is a single conditional UPDATE evaluated by the database, so two
concurrent sends from a user holding one credit cannot both pass.
Admins are not metered at all: that is a role variant (UnlimitedCredit),
not a magic balance value.
Service methods modify the session but DO NOT COMMIT.
"""
import logging
from dataclasses import dataclass
from typing import Union

from sqlalchemy import update

from chatdesk.database.models.user import UserModel, TokenBalanceModel
from chatdesk.extensions import db
from chatdesk.utils.exceptions import InsufficientCredit, ValidationError, ResourceNotFound

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnlimitedCredit:
    """Standing of a privileged (admin) sender."""

    def as_response(self):
        return 'unlimited'


@dataclass(frozen=True)
class MeteredCredit:
    """Standing of a metered sender after the last ledger operation."""
    remaining: int

    def as_response(self):
        return self.remaining


CreditStanding = Union[UnlimitedCredit, MeteredCredit]


class TokenLedger:

    @staticmethod
    def _balance(user_id: int) -> int:
        balance = db.session.query(TokenBalanceModel.balance).filter_by(user_id=user_id).scalar()
        return balance or 0

    @staticmethod
    def standing(user: UserModel) -> CreditStanding:
        """Current credit standing without changing it."""
        if user.is_admin:
            return UnlimitedCredit()
        return MeteredCredit(TokenLedger._balance(user.id))

    @staticmethod
    def ensure_account(user_id: int, initial_balance: int = 0) -> TokenBalanceModel:
        """Create the balance row for a user if missing (DOES NOT COMMIT)."""
        account = db.session.get(TokenBalanceModel, user_id)
        if account is None:
            account = TokenBalanceModel(user_id=user_id, balance=initial_balance)
            db.session.add(account)
            db.session.flush()
        return account

    @staticmethod
    def debit(user: UserModel) -> CreditStanding:
        """
        Take one credit for a send.

        Returns:
            CreditStanding: UnlimitedCredit for admins, otherwise MeteredCredit
                            with the balance left after the debit.

        Raises:
            InsufficientCredit: If the user has no balance row or a balance below 1.
        """
        if user.is_admin:
            return UnlimitedCredit()

        result = db.session.execute(
            update(TokenBalanceModel)
            .where(TokenBalanceModel.user_id == user.id, TokenBalanceModel.balance >= 1)
            .values(balance=TokenBalanceModel.balance - 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            log.info(f"Credit debit refused for user {user.id}: balance exhausted.")
            raise InsufficientCredit()

        remaining = TokenLedger._balance(user.id)
        log.debug(f"Debited one credit from user {user.id}; {remaining} remaining.")
        return MeteredCredit(remaining)

    @staticmethod
    def top_up(user_id: int, amount: int) -> MeteredCredit:
        """
        Grant `amount` credits to a user (DOES NOT COMMIT).

        Raises:
            ValidationError: If amount is not a positive integer.
            ResourceNotFound: If the user does not exist.
        """
        if not isinstance(amount, int) or amount < 1:
            raise ValidationError("Top-up amount must be a positive integer.")
        if db.session.get(UserModel, user_id) is None:
            raise ResourceNotFound(f"User with ID {user_id} not found.")

        TokenLedger.ensure_account(user_id)
        db.session.execute(
            update(TokenBalanceModel)
            .where(TokenBalanceModel.user_id == user_id)
            .values(balance=TokenBalanceModel.balance + amount)
            .execution_options(synchronize_session=False)
        )
        remaining = TokenLedger._balance(user_id)
        log.info(f"Granted {amount} credits to user {user_id}; balance now {remaining}.")
        return MeteredCredit(remaining)
