"""QR redemption guard.

A scan is rejected, with no state change, when the code is unknown,
expired, at its use cap, or was already redeemed by the same account on
the same day. Accepted scans consume one use and are applied by the ledger
in the same commit. The code lock is taken before the account lock so two
scans of one code can never both pass the cap check.
"""

from __future__ import annotations

import logging

from academy.rewards.domain import QRCode, QRRedemption, RewardResult
from academy.rewards.errors import ConflictError, NotFoundError
from academy.rewards.ledger import RewardLedger
from academy.rewards.locks import account_key, qr_key

logger = logging.getLogger(__name__)


class RedemptionGuard:
    """Validates QR scans and hands accepted ones to the ledger."""

    def __init__(self, ledger: RewardLedger) -> None:
        self.ledger = ledger
        self.store = ledger.store
        self.clock = ledger.clock
        self.locks = ledger.locks

    async def redeem(self, account_id: str, qr_id: str) -> RewardResult:
        async with self.locks.hold(qr_key(qr_id)):
            qr = await self.store.get_qr_code(qr_id)
            if qr is None:
                raise NotFoundError(f"QR code not found: {qr_id}")
            self._check_code(qr)

            async with self.locks.hold(account_key(account_id)):
                if await self.store.get_account(account_id) is None:
                    raise NotFoundError(f"Account not found: {account_id}")

                today = self.clock.today()
                if await self.store.has_redeemed(account_id, qr.id, today):
                    logger.info("QR %s already redeemed today by account %s", qr.id, account_id)
                    raise ConflictError("You already scanned this QR code today")

                result = await self.ledger.apply_locked(
                    QRRedemption(account_id=account_id, qr_code=qr),
                    force_achievement_id=qr.achievement_id,
                )

        logger.info("QR %s redeemed by account %s (%d XP)", qr.id, account_id, result.xp_awarded)
        await self.ledger.publish(result)
        return result

    def _check_code(self, qr: QRCode) -> None:
        if qr.expires_at is not None and self.clock.localize(qr.expires_at) < self.clock.now():
            logger.info("QR %s rejected: expired at %s", qr.id, qr.expires_at.isoformat())
            raise ConflictError("QR code has expired")

        if qr.max_uses is not None and qr.uses_count >= qr.max_uses:
            logger.info("QR %s rejected: %d/%d uses", qr.id, qr.uses_count, qr.max_uses)
            raise ConflictError("QR code max uses reached")
