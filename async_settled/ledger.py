"""Settlement ledger writer.

Applies vendor callbacks (stake, payoff, cancellations, re-stake) to the
per-operator ``async_settled`` collection. Vendors redeliver callbacks and
deliver them out of order, so every settling write is guarded by
``settled_time``: a callback whose time does not move the record's clock
forward is dropped and the operation returns False. That outcome is routine
and is only logged at DEBUG.

Usage:
    writer = create_ledger_writer().set_default(
        "op01", "pg", "fortune-tiger", "P-1", "B-1",
        {"player_name": "alice", "member_code": "M001"},
    )
    await writer.payoff(100, bet_time, 150, settled_time, total=1)
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable

from .config import Settings, get_settings
from .correction import CorrectionTrigger
from .currency import DEFAULT_SCALE, RateProvider, SettingsRateProvider, exchange_rate
from .exceptions import StakeNotFoundError, StorageError
from .models import Member, SettlementRecord, SettlementStatus, StakeResult
from .storage import create_store_manager
from .storage.base import DocumentStore, StoreManager
from .timeutils import micro_timestamp, to_micro_timestamp

logger = logging.getLogger(__name__)

Timestamp = int | str


def _to_document_fields(changes: dict[str, Any]) -> dict[str, Any]:
    return {
        key: value.value if isinstance(value, SettlementStatus) else value
        for key, value in changes.items()
    }


class LedgerWriter:
    def __init__(
        self,
        stores: StoreManager,
        rates: RateProvider,
        trigger: CorrectionTrigger | None = None,
        *,
        collection: str = "async_settled",
        decimal_scale: int = DEFAULT_SCALE,
        clock: Callable[[], datetime] | None = None,
    ):
        self.stores = stores
        self.rates = rates
        self.trigger = trigger
        self.collection = collection
        self.decimal_scale = decimal_scale
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self.op_code: str | None = None
        self.vendor_code = ""
        self.game_code = ""
        self.parent_bet_id = ""
        self.bet_id = ""
        self.member: Member | None = None
        self.rate: Decimal | None = None

    def set_default(
        self,
        op_code: str,
        vendor_code: str,
        game_code: str,
        parent_bet_id: str,
        bet_id: str,
        member: Member | dict,
    ) -> "LedgerWriter":
        """Bind the writer to one bet and latch the operator/vendor rate.

        Raises ExchangeRateNotFoundError when no rate is configured.
        """
        self.rate = self.rates.get_rate(op_code, vendor_code)
        self.op_code = op_code
        self.vendor_code = vendor_code
        self.game_code = game_code
        self.parent_bet_id = parent_bet_id
        self.bet_id = bet_id
        self.member = member if isinstance(member, Member) else Member.model_validate(member)
        return self

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def store(self) -> DocumentStore:
        if self.op_code is None or self.member is None:
            raise RuntimeError("LedgerWriter is not bound to a bet. Call set_default() first.")
        return self.stores.for_operator(self.op_code)

    def _identity(self) -> dict[str, str]:
        return {
            "op_code": self.op_code,
            "vendor_code": self.vendor_code,
            "player_name": self.member.player_name,
            "parent_bet_id": self.parent_bet_id,
            "bet_id": self.bet_id,
        }

    def _normalize(self, vendor_amount: float) -> float:
        return exchange_rate(vendor_amount, self.rate, "/", self.decimal_scale)

    async def _ensure_stake(self, vendor_amount: float, bet_time: Timestamp) -> StakeResult:
        store = self.store
        existing = await store.query_one(self.collection, self._identity())
        if existing is not None:
            return StakeResult(created=False, record=SettlementRecord.from_document(existing))

        now = self._clock()
        record = SettlementRecord(
            **self._identity(),
            game_code=self.game_code,
            member_code=self.member.member_code,
            bet_amount=self._normalize(vendor_amount),
            vendor_bet_amount=float(vendor_amount),
            bet_time=to_micro_timestamp(bet_time),
            settled_time=0,
            total=1,
            status=SettlementStatus.STAKE,
            created_at=now,
            updated_at=now,
            deleted_at=None,
        )
        created = await store.insert(self.collection, record.to_document())
        if created:
            logger.info(f"Created stake {self.op_code}/{self.vendor_code}/{self.bet_id}")
        else:
            logger.debug(f"Stake {self.op_code}/{self.bet_id} was created concurrently")
        return StakeResult(created=created, record=record)

    async def _current(self, stake: StakeResult) -> SettlementRecord:
        document = await self.store.query_one(self.collection, self._identity())
        if document is None:
            logger.debug(f"Read-after-write miss for {self.bet_id}, using stake candidate")
            return stake.record
        return SettlementRecord.from_document(document)

    async def _apply(
        self,
        current: SettlementRecord,
        guard_time: int,
        changes: dict[str, Any],
    ) -> bool:
        """Write ``changes`` only if ``guard_time`` is later than the stored settled_time."""
        status = changes["status"].value
        if guard_time <= current.settled_time:
            logger.debug(
                f"Skipped stale {status} for {self.op_code}/{self.bet_id}: "
                f"{guard_time} <= {current.settled_time}"
            )
            return False

        changes = {**changes, "updated_at": self._clock()}
        match = {**self._identity(), "settled_time": {"$lt": guard_time}}
        updated = await self.store.update_conditional(
            self.collection, match, _to_document_fields(changes)
        )
        if not updated:
            logger.debug(f"Conditional {status} for {self.op_code}/{self.bet_id} matched nothing")
            return False

        logger.info(f"Applied {status} to {self.op_code}/{self.vendor_code}/{self.bet_id}")
        if self.trigger is not None:
            after = current.model_copy(update=changes)
            # The ledger row is already committed; a retry would be dropped as stale.
            try:
                await self.trigger.fire_for_write(current, after)
            except StorageError:
                logger.exception(
                    f"Failed to queue precount fix for {self.op_code}/{self.vendor_code}/"
                    f"{self.bet_id} (settled_time {current.settled_time} -> {after.settled_time}, "
                    f"hours {self.trigger.elapsed_bucket(after.settled_time)}, "
                    f"{self.trigger.elapsed_bucket(current.settled_time)})"
                )
        return True

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def stake(self, vendor_amount: float, bet_time: Timestamp) -> bool:
        """Create the stake record. False if it already exists."""
        result = await self._ensure_stake(vendor_amount, bet_time)
        return result.created

    async def payoff(
        self,
        vendor_bet_amount: float,
        bet_time: Timestamp,
        vendor_win_amount: float,
        settled_time: Timestamp,
        total: int = 1,
    ) -> bool:
        stake = await self._ensure_stake(vendor_bet_amount, bet_time)
        current = await self._current(stake)
        settled = to_micro_timestamp(settled_time)
        return await self._apply(current, settled, {
            "bet_amount": self._normalize(vendor_bet_amount),
            "vendor_bet_amount": float(vendor_bet_amount),
            "win_amount": self._normalize(vendor_win_amount),
            "vendor_win_amount": float(vendor_win_amount),
            "settled_time": settled,
            "total": total,
            "status": SettlementStatus.PAYOFF,
            "deleted_at": self._clock(),
        })

    async def payoff_skip_check(
        self,
        vendor_win_amount: float,
        settled_time: Timestamp,
        total: int = 1,
    ) -> bool:
        """Payoff for callers that guarantee the stake was recorded first.

        Raises StakeNotFoundError when it was not.
        """
        document = await self.store.query_one(self.collection, self._identity())
        if document is None:
            raise StakeNotFoundError(self._identity())
        current = SettlementRecord.from_document(document)
        settled = to_micro_timestamp(settled_time)
        return await self._apply(current, settled, {
            "win_amount": self._normalize(vendor_win_amount),
            "vendor_win_amount": float(vendor_win_amount),
            "settled_time": settled,
            "total": total,
            "status": SettlementStatus.PAYOFF,
            "deleted_at": self._clock(),
        })

    async def cancel_stake(self, bet_time: Timestamp, settled_time: Timestamp, total: int = 1) -> bool:
        stake = await self._ensure_stake(0, bet_time)
        current = await self._current(stake)
        settled = to_micro_timestamp(settled_time)
        return await self._apply(current, settled, {
            "bet_amount": 0.0,
            "vendor_bet_amount": 0.0,
            "win_amount": 0.0,
            "vendor_win_amount": 0.0,
            "settled_time": settled,
            "total": total,
            "status": SettlementStatus.CANCEL_STAKE,
        })

    async def cancel_payoff(
        self,
        vendor_bet_amount: float,
        bet_time: Timestamp,
        update_time: Timestamp,
        total: int = 1,
    ) -> bool:
        """Reverse a payoff. The record stays live (no TTL) while disputed."""
        stake = await self._ensure_stake(vendor_bet_amount, bet_time)
        current = await self._current(stake)
        updated = to_micro_timestamp(update_time)
        return await self._apply(current, updated, {
            "settled_time": updated,
            "total": total,
            "status": SettlementStatus.CANCEL_PAYOFF,
            "deleted_at": None,
        })

    async def re_stake(self, vendor_bet_amount: float, bet_time: Timestamp, total: int = 1) -> bool:
        # Operator-triggered correction: ordered against wall-clock, not an event time.
        stake = await self._ensure_stake(vendor_bet_amount, bet_time)
        current = await self._current(stake)
        now = micro_timestamp(self._clock())
        return await self._apply(current, now, {
            "bet_amount": self._normalize(vendor_bet_amount),
            "vendor_bet_amount": float(vendor_bet_amount),
            "total": total,
            "status": SettlementStatus.RESTAKE,
            "deleted_at": None,
        })


def create_ledger_writer(
    settings: Settings | None = None,
    stores: StoreManager | None = None,
    rates: RateProvider | None = None,
) -> LedgerWriter:
    settings = settings or get_settings()
    stores = stores or create_store_manager(settings)
    trigger = CorrectionTrigger(
        stores,
        collection=settings.ledger.precount_fix_collection,
        tz=settings.ledger.timezone,
    )
    return LedgerWriter(
        stores,
        rates or SettingsRateProvider.from_settings(settings),
        trigger,
        collection=settings.ledger.settled_collection,
        decimal_scale=settings.ledger.decimal_scale,
    )
