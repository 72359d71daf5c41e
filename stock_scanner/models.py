"""Product records read from the store and the results of a scan."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

LOW_STOCK_THRESHOLD = 2


class StockStatus(str, Enum):
    SUCCESS = "success"
    LOW_STOCK = "low-stock"


@dataclass(frozen=True)
class ProductRecord:
    """One row of the Notion inventory database."""

    page_id: str
    name: str
    quantity: int = 0
    unit_price: float = 0
    total_consumed: int = 0
    monthly_consumed: int = 0


@dataclass(frozen=True)
class CounterUpdate:
    """The four properties written back after a scan."""

    quantity: int
    total_consumed: int
    monthly_consumed: int
    consumed_at: datetime


class ScanResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_name: str
    previous_quantity: int
    new_quantity: int
    total_consumed: int
    monthly_consumed: int
    unit_price: float
    remaining_value: float
    stock_status: StockStatus
    replayed: bool = False

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
