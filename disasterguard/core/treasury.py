"""
Payout capability.

The ledger and settlement only ever call `deposit` and `transfer`; how
value actually moves is up to the implementation. InMemoryTreasury keeps a
running balance and a journal, which is enough for tests, demos and the
API process.
"""

import logging
import threading
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)


class PayoutCapability:
    def deposit(self, sender: str, amount: int) -> None:
        raise NotImplementedError

    def transfer(self, recipient: str, amount: int) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class LedgerEntry:
    kind: str           # 'deposit' | 'transfer'
    party: str
    amount: int


class InMemoryTreasury(PayoutCapability):
    """
    Protocol-held funds.

    Balance sufficiency is not enforced here; the balance may go negative if
    payouts exceed collected premiums plus `initial_balance`.
    """

    def __init__(self, initial_balance: int = 0):
        self.balance = initial_balance
        self.journal: List[LedgerEntry] = []
        self._lock = threading.Lock()

    def deposit(self, sender: str, amount: int) -> None:
        with self._lock:
            self.balance += amount
            self.journal.append(LedgerEntry('deposit', sender, amount))

    def transfer(self, recipient: str, amount: int) -> None:
        with self._lock:
            self.balance -= amount
            self.journal.append(LedgerEntry('transfer', recipient, amount))
        logger.info(f"Transferred {amount} to {recipient}")

    def paid_to(self, recipient: str) -> int:
        with self._lock:
            return sum(e.amount for e in self.journal
                       if e.kind == 'transfer' and e.party == recipient)
