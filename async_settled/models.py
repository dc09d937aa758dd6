from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SettlementStatus(str, Enum):
    STAKE = "stake"
    PAYOFF = "payoff"
    CANCEL_STAKE = "cancel_stake"
    CANCEL_PAYOFF = "cancel_payoff"
    RESTAKE = "restake"


class Member(BaseModel):
    player_name: str
    member_code: str


IDENTITY_FIELDS = ("op_code", "vendor_code", "player_name", "parent_bet_id", "bet_id")


class SettlementRecord(BaseModel):
    """One ledger row per (operator, vendor, player, parent bet, bet)."""

    model_config = ConfigDict(extra="ignore")

    op_code: str
    vendor_code: str
    game_code: str = ""
    player_name: str
    member_code: str = ""
    parent_bet_id: str
    bet_id: str

    bet_amount: float = 0.0
    vendor_bet_amount: float = 0.0
    win_amount: float = 0.0
    vendor_win_amount: float = 0.0

    bet_time: int = 0
    settled_time: int = 0
    total: int = 1
    status: SettlementStatus = SettlementStatus.STAKE

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    deleted_at: datetime | None = None

    @property
    def is_settled(self) -> bool:
        return self.settled_time != 0

    def identity(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in IDENTITY_FIELDS}

    def to_document(self) -> dict[str, Any]:
        document = self.model_dump()
        document["status"] = self.status.value
        return document

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> SettlementRecord:
        return cls.model_validate(document)


class StakeResult(BaseModel):
    """Outcome of the ensure-stake step.

    ``record`` is the stake candidate built in memory. It stands in for the
    stored row when a read issued right after the insert does not see it yet.
    """

    created: bool
    record: SettlementRecord


class CorrectionTask(BaseModel):
    """Request for the precount job to recount one hour bucket."""

    type: Literal["settled"] = "settled"
    op_code: str
    vendor_code: str
    game_code: str
    player_name: str
    member_code: str
    parent_bet_id: str
    bet_id: str
    bet_amount: float
    vendor_bet_amount: float
    win_amount: float
    vendor_win_amount: float
    total: int
    status: SettlementStatus
    settled_time: int
    hour: str = Field(description="Hour bucket in UTC, YYYY-MM-DD HH")
    created_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_record(
        cls,
        record: SettlementRecord,
        hour: str,
        created_at: datetime | None = None,
    ) -> CorrectionTask:
        return cls(
            op_code=record.op_code,
            vendor_code=record.vendor_code,
            game_code=record.game_code,
            player_name=record.player_name,
            member_code=record.member_code,
            parent_bet_id=record.parent_bet_id,
            bet_id=record.bet_id,
            bet_amount=record.bet_amount,
            vendor_bet_amount=record.vendor_bet_amount,
            win_amount=record.win_amount,
            vendor_win_amount=record.vendor_win_amount,
            total=record.total,
            status=record.status,
            settled_time=record.settled_time,
            hour=hour,
            created_at=created_at or _utcnow(),
        )

    def to_document(self) -> dict[str, Any]:
        document = self.model_dump()
        document["status"] = self.status.value
        return document
