"""Quota ledger collaborators.

The ledger is the system of record for caller credits. This service only
checks a balance before running a paid tool and reports consumption after
it succeeds; consumption is idempotent by the caller-supplied action id.
"""
import asyncio
import logging
from typing import Any, Protocol

from .config import LEDGER_INITIAL_BALANCE, LEDGER_MODE
from .models import BalanceCheck

logger = logging.getLogger(__name__)


class QuotaLedger(Protocol):
    async def check_balance(self, user_id: str, cost: int) -> BalanceCheck:
        ...

    async def consume(
        self,
        user_id: str,
        cost: int,
        tool_name: str,
        args: dict[str, Any],
        result: str,
        action_id: str,
    ) -> bool:
        ...


class NullLedger:
    """Ledger for the free public service: nothing is ever charged."""

    async def check_balance(self, user_id: str, cost: int) -> BalanceCheck:
        return BalanceCheck(sufficient=True, current_balance=0)

    async def consume(self, user_id, cost, tool_name, args, result, action_id) -> bool:
        return True


class InMemoryLedger:
    """Process-local ledger for development and tests.

    Balances are lost on restart. Each action id is charged at most once.
    """

    def __init__(self, initial_balance: int = LEDGER_INITIAL_BALANCE):
        self._initial_balance = initial_balance
        self._balances: dict[str, int] = {}
        self._deleted: set[str] = set()
        self._processed_actions: set[str] = set()
        self._lock = asyncio.Lock()

    def set_balance(self, user_id: str, balance: int) -> None:
        self._balances[user_id] = balance

    def get_balance(self, user_id: str) -> int:
        return self._balances.get(user_id, self._initial_balance)

    def delete_user(self, user_id: str) -> None:
        self._deleted.add(user_id)

    async def check_balance(self, user_id: str, cost: int) -> BalanceCheck:
        balance = self.get_balance(user_id)
        return BalanceCheck(
            sufficient=balance >= cost and user_id not in self._deleted,
            current_balance=balance,
            user_deleted=user_id in self._deleted,
        )

    async def consume(
        self,
        user_id: str,
        cost: int,
        tool_name: str,
        args: dict[str, Any],
        result: str,
        action_id: str,
    ) -> bool:
        async with self._lock:
            if action_id in self._processed_actions:
                logger.info(f"[Ledger] Action {action_id} already recorded, skipping")
                return True

            balance = self.get_balance(user_id)
            if balance < cost:
                logger.warning(
                    f"[Ledger] Balance for {user_id} dropped below cost of {tool_name} "
                    f"({balance} < {cost})"
                )
                return False

            self._balances[user_id] = balance - cost
            self._processed_actions.add(action_id)
            logger.info(
                f"[Ledger] {user_id} charged {cost} for {tool_name} "
                f"(action {action_id}, balance {balance - cost})"
            )
            return True


def build_ledger(mode: str = LEDGER_MODE) -> QuotaLedger:
    """Create the ledger for a configured ledger mode."""
    if mode == "none":
        return NullLedger()
    if mode == "memory":
        return InMemoryLedger()
    raise ValueError(f"Unknown LEDGER_MODE: {mode!r} (expected 'none' or 'memory')")
