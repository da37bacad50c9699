from __future__ import annotations

from zoneinfo import ZoneInfo

import pytest

from trade_journal.config.settings import Settings

TOPSTEP_HEADER_LINE = (
    "Id,ContractName,EnteredAt,ExitedAt,EntryPrice,ExitPrice,Fees,PnL,Size,Type,"
    "TradeDay,TradeDuration,Commissions"
)


@pytest.fixture
def zone() -> ZoneInfo:
    return ZoneInfo("Europe/Budapest")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        reference_timezone="Europe/Budapest",
        day_first=True,
        delimiter_sample_lines=5,
        log_level="INFO",
    )


@pytest.fixture
def topstep_csv() -> str:
    return "\n".join(
        [
            TOPSTEP_HEADER_LINE,
            "1503937614,MESZ5,10/28/2025 00:36:30 +01:00,10/28/2025 00:41:12 +01:00,"
            "6925.25,6927.50,0.74,11.25,1,Long,10/28/2025 00:00:00 -05:00,00:04:42,0.00",
            "1503937700,MESZ5,10/28/2025 01:10:00 +01:00,10/28/2025 01:12:00 +01:00,"
            "6930.00,6928.00,0.74,10.00,1,Short,10/28/2025 00:00:00 -05:00,00:02:00,0.00",
        ]
    ) + "\n"


@pytest.fixture
def fills_csv() -> str:
    return (
        "Symbol;Side;Qty;Price;Fill Time;Open/Close\n"
        "ES;Buy;1;5000,25;2024-03-01 09:30:00;Open\n"
        "ES;Sell;1;5004,75;2024-03-01 09:45:00;Close\n"
        "NQ;Sell;2;18000;2024-03-01 10:00:00;Close\n"
    )
