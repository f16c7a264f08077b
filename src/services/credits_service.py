"""Credits gate for video generation.

The balance is read fresh once at pipeline start; a run is refused before any
paid call when the balance is below the per-generation cost. The debit
happens later, when the render is accepted (``on_submit``, the default) or
when it has succeeded (``on_complete``). A run that fails after the debit
point is not refunded.
"""

import logging
from dataclasses import dataclass

from services.project_store import ProjectStore
from utils.errors import InsufficientCredits

logger = logging.getLogger(__name__)

DEFAULT_GENERATION_COST = 10
DEBIT_ON_SUBMIT = "on_submit"
DEBIT_ON_COMPLETE = "on_complete"


@dataclass
class CreditCheck:
    """Result of a credits check."""

    allowed: bool
    balance: int
    required: int


class CreditsService:
    """Reads, checks and debits per-identity credit balances."""

    def __init__(
        self,
        store: ProjectStore,
        generation_cost: int = DEFAULT_GENERATION_COST,
        debit_policy: str = DEBIT_ON_SUBMIT,
    ):
        """Initialize the credits gate.

        Args:
            store: Project store holding the profiles table
            generation_cost: Credits charged per pipeline run
            debit_policy: ``on_submit`` or ``on_complete``
        """
        if debit_policy not in (DEBIT_ON_SUBMIT, DEBIT_ON_COMPLETE):
            raise ValueError(f"Unknown debit policy: {debit_policy}")
        self.store = store
        self.generation_cost = generation_cost
        self.debit_policy = debit_policy

    async def get_credits(self, user_id: str) -> int:
        return await self.store.get_credits(user_id)

    async def check_and_reserve(self, user_id: str, required: int | None = None) -> CreditCheck:
        """Check a freshly read balance against the required amount.

        Nothing is deducted here; see ``debit``.
        """
        required = self.generation_cost if required is None else required
        balance = await self.store.get_credits(user_id)
        allowed = balance >= required
        logger.info(
            f"Credits check for {user_id}: balance={balance}, required={required}, "
            f"allowed={allowed}"
        )
        return CreditCheck(allowed=allowed, balance=balance, required=required)

    async def require(self, user_id: str, required: int | None = None) -> CreditCheck:
        """Like ``check_and_reserve`` but raises when the balance is too low.

        Raises:
            InsufficientCredits: With the required and available amounts
        """
        check = await self.check_and_reserve(user_id, required)
        if not check.allowed:
            raise InsufficientCredits(required=check.required, available=check.balance)
        return check

    async def debit(self, user_id: str, amount: int | None = None) -> int:
        """Deduct credits and return the new balance."""
        amount = self.generation_cost if amount is None else amount
        if amount == 0:
            return await self.store.get_credits(user_id)
        balance = await self.store.debit_credits(user_id, amount)
        logger.info(f"Debited {amount} credits from {user_id}, balance now {balance}")
        return balance
