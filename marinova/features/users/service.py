"""
User account service.
- get_or_create_ledger(user_id, is_email_verified): first contact, claim sync
- set_email_verified(user_id, verified): identity-provider notification
"""

from typing import Optional
import logging

from marinova.features.credits.service import Clock, utc_now
from marinova.features.ledger.store import LedgerStore, get_ledger_store, new_ledger
from marinova.models.ledger import CreditLedger


logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, store: Optional[LedgerStore] = None, clock: Optional[Clock] = None):
        self.store = store or get_ledger_store()
        self.clock = clock or utc_now

    def get_or_create_ledger(self, user_id: str, *, is_email_verified: bool = False) -> CreditLedger:
        """
        Ledger for an authenticated caller.

        A verified identity upgrades an unverified ledger; an unverified
        identity never clears the flag.
        """
        ledger = self.store.get(user_id)
        if ledger is None:
            ledger = self.store.create(new_ledger(user_id, now=self.clock(), is_email_verified=is_email_verified))
            logger.info("user.ledger_created", extra={"user_id": user_id, "plan": ledger.subscription_status.value})
        if is_email_verified and not ledger.is_email_verified:
            ledger = self._store_verified(user_id, True)
        return ledger

    def set_email_verified(self, user_id: str, verified: bool = True) -> CreditLedger:
        """Record the identity provider's verdict, creating the ledger if needed."""
        if self.store.get(user_id) is None:
            self.store.create(new_ledger(user_id, now=self.clock(), is_email_verified=verified))
        return self._store_verified(user_id, verified)

    def _store_verified(self, user_id: str, verified: bool) -> CreditLedger:
        def _verify(ledger: CreditLedger):
            if ledger.is_email_verified == verified:
                return ledger, None
            return ledger.evolve(is_email_verified=verified), None

        ledger, _ = self.store.update(user_id, _verify)
        logger.info("user.email_verified", extra={"user_id": user_id, "verified": verified})
        return ledger
