"""Integration test: ledger writer against a live MongoDB.

Set ASYNC_SETTLED_TEST_MONGO_URL to run, e.g.
    ASYNC_SETTLED_TEST_MONGO_URL=mongodb://localhost:27017 pytest tests/integration
"""

import asyncio
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from async_settled.config import LedgerConfig, MongoConfig, Settings
from async_settled.ledger import create_ledger_writer
from async_settled.storage import MongoStoreManager

MONGO_URL = os.getenv("ASYNC_SETTLED_TEST_MONGO_URL")

pytestmark = pytest.mark.skipif(not MONGO_URL, reason="ASYNC_SETTLED_TEST_MONGO_URL not set")


def test_payoff_round_trip_against_mongo() -> None:
    op_code = f"it{uuid4().hex[:8]}"
    settings = Settings(
        _env_file=None,
        mongo=MongoConfig(url=MONGO_URL, default_database=f"{op_code}_default"),
        ledger=LedgerConfig(timezone="UTC"),
        currency_rates={op_code: {"pg": "2"}},
    )
    bet_time = 1577836800
    settled_time = 1577840400123

    async def run() -> None:
        stores = MongoStoreManager(settings.mongo, settings.ledger)
        try:
            await stores.ensure_indexes(op_code)
            writer = create_ledger_writer(settings, stores).set_default(
                op_code, "pg", "fortune-tiger", "P-1", "B-1",
                {"player_name": "alice", "member_code": "M001"},
            )

            assert await writer.stake(100, bet_time) is True
            assert await writer.stake(100, bet_time) is False
            assert await writer.payoff(100, bet_time, 150, settled_time) is True
            assert await writer.payoff(100, bet_time, 150, settled_time) is False

            record = await stores.for_operator(op_code).query_one(
                "async_settled", {"bet_id": "B-1"}
            )
            assert record["status"] == "payoff"
            assert record["win_amount"] == 75.0
            assert record["settled_time"] == settled_time
            assert record["deleted_at"] <= datetime.now(timezone.utc)

            task = await stores.default().query_one("precount_fix", {"bet_id": "B-1"})
            assert task["hour"] == "2020-01-01 01"
        finally:
            client = stores.for_operator(op_code).database.client
            await client.drop_database(stores.operator_database_name(op_code))
            await client.drop_database(settings.mongo.default_database)
            await stores.close()

    asyncio.run(run())
