from decimal import Decimal

from pydantic import BaseModel, field_validator


class BalanceUpdate(BaseModel):
    value: Decimal

    @field_validator("value")
    @classmethod
    def non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Balance cannot be negative")
        return v


class BalanceResponse(BaseModel):
    address: str
    value: Decimal
