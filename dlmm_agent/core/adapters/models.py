import time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _now_ms() -> int:
    return int(time.time() * 1000)


class EventBase(BaseModel):
    # Datasource columns are camelCase
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    timestamp: int = Field(default_factory=_now_ms)
    pair: str


class PositionEvent(EventBase):
    type: Literal["positions"] = "positions"
    position_address: str
    lower_bin_id: int
    upper_bin_id: int
    base_raw_amount: int
    quote_raw_amount: int
    transaction_id: str
    oracle_price: float


class WithdrawEvent(EventBase):
    type: Literal["withdrawals"] = "withdrawals"
    position_address: str
    fees_claimed: int
    base_raw_amount: int
    quote_raw_amount: int
    transaction_ids: list[str]


class SwapEvent(EventBase):
    type: Literal["swaps"] = "swaps"
    initial_base_raw_amount: int
    initial_quote_raw_amount: int
    final_base_raw_amount: int
    final_quote_raw_amount: int
    transaction_id: str


TelemetryEvent = PositionEvent | WithdrawEvent | SwapEvent


def event_payload(event: TelemetryEvent) -> dict:
    """Wire payload: the event fields without the datasource discriminator."""
    return event.model_dump(mode="json", by_alias=True, exclude={"type"})
