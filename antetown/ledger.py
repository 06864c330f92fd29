"""
Balance ledger for antetown.

Reference in-memory balances with a transaction log. Round engines never touch
it; orchestrators move money on and off tables and apply the settlement
records the engines emit.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from .errors import InsufficientFunds
from .settlement import SettlementRecord


class Ledger:
    """Balances per account, in integer cents."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._balances: Dict[str, int] = {}
        self._transactions: List[Dict[str, Any]] = []
        # (round_id, kind) of every record already applied
        self._applied: Set[Tuple[str, str]] = set()

    def balance(self, account: str) -> int:
        return self._balances.get(account, 0)

    def _post(self, account: str, amount: int, transaction_type: str,
              description: str = '', round_id: Optional[str] = None) -> Dict[str, Any]:
        if not isinstance(amount, int):
            raise TypeError(f"Ledger amounts are integer cents, got {amount!r}")
        before = self.balance(account)
        after = before + amount
        if after < 0:
            raise InsufficientFunds(f"{account} cannot cover {-amount}", account=account,
                                    balance=before, amount=amount)
        self._balances[account] = after
        tx = {
            'account': account,
            'transaction_type': transaction_type,
            'amount': amount,
            'balance_before': before,
            'balance_after': after,
            'timestamp': self.clock(),
            'description': description,
            'round_id': round_id,
        }
        self._transactions.append(tx)
        logging.debug(f"Ledger {transaction_type} {account}: {before} -> {after}")
        return tx

    def deposit(self, account: str, amount: int, description: str = 'Deposit') -> int:
        if amount <= 0:
            raise ValueError("deposit must be positive")
        return self._post(account, amount, 'DEPOSIT', description)['balance_after']

    def buy_in(self, account: str, amount: int, table_id: str = '') -> int:
        """Move `amount` from the balance onto a table. Returns the stack to seat with."""
        if amount <= 0:
            raise ValueError("buy-in must be positive")
        self._post(account, -amount, 'BUY_IN', f"Buy-in at {table_id}".strip())
        logging.info(f"{account} bought in for {amount} at {table_id}")
        return amount

    def cash_out(self, account: str, stack: int, table_id: str = '') -> int:
        """Return a table stack to the balance."""
        if stack < 0:
            raise ValueError("cannot cash out a negative stack")
        if stack:
            self._post(account, stack, 'CASH_OUT', f"Cash-out from {table_id}".strip())
        logging.info(f"{account} cashed out {stack} from {table_id}")
        return self.balance(account)

    def apply(self, record: SettlementRecord) -> bool:
        """Apply a record's signed amounts. All-or-nothing; returns False if already applied."""
        key = (record.round_id, record.kind)
        if key in self._applied:
            logging.warning(f"Settlement {record.kind} for round {record.round_id} already applied")
            return False
        record.verify()
        changes = record.by_participant()
        for account, amount in changes.items():
            if self.balance(account) + amount < 0:
                raise InsufficientFunds(f"{account} cannot cover settlement of {amount}",
                                        account=account, balance=self.balance(account),
                                        round_id=record.round_id)
        for account, amount in changes.items():
            if amount:
                self._post(account, amount, f"SETTLEMENT_{record.kind.upper()}",
                           f"{record.kind} settlement", round_id=record.round_id)
        self._applied.add(key)
        return True

    def transactions(self, account: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        rows = [tx for tx in self._transactions if account is None or tx['account'] == account]
        if limit is not None:
            rows = rows[-limit:]
        return [dict(tx) for tx in rows]

    def accounts(self) -> Dict[str, int]:
        return dict(self._balances)
