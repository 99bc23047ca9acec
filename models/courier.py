"""
Courier API payload DTOs.

The courier returns loosely typed JSON (ids as int or str, prices as strings,
timestamps with or without timezone). These models normalize a single record;
records that fail validation are treated as data anomalies by the API wrapper.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, AliasChoices, ConfigDict, Field, field_validator


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Timestamps are stored as naive UTC in the database."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class CourierInvoiceDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    external_id: str = Field(validation_alias=AliasChoices('id', 'invoice_id'))
    amount: float = Field(default=0.0, validation_alias=AliasChoices('merchant_price', 'total_amount', 'amount'))
    delivery_price: float = Field(default=0.0, validation_alias=AliasChoices('delivery_price', 'delivery_fee'))
    orders_count: int = Field(default=0, validation_alias=AliasChoices('orders_count', 'count'))
    status: str | None = None
    invoice_date: datetime | None = Field(default=None, validation_alias=AliasChoices('created_at', 'invoice_date'))
    updated_at: datetime | None = None
    raw: dict = Field(default_factory=dict, exclude=True)

    @field_validator('external_id', mode='before')
    @classmethod
    def _external_id_to_str(cls, value):
        if value is None or str(value).strip() == "":
            raise ValueError("invoice id is missing")
        return str(value).strip()

    @field_validator('amount', 'delivery_price', mode='before')
    @classmethod
    def _empty_amount_to_zero(cls, value):
        return 0.0 if value in (None, "") else value

    @field_validator('orders_count', mode='before')
    @classmethod
    def _empty_count_to_zero(cls, value):
        return 0 if value in (None, "") else value

    @field_validator('status', mode='before')
    @classmethod
    def _status_to_str(cls, value):
        return None if value is None else str(value)

    @field_validator('invoice_date', 'updated_at', mode='after')
    @classmethod
    def _normalize_timestamp(cls, value):
        return to_naive_utc(value)

    @property
    def timestamp(self) -> datetime | None:
        """Timestamp compared against the sync cursor."""
        return self.updated_at or self.invoice_date

    @classmethod
    def from_payload(cls, payload: dict) -> "CourierInvoiceDTO":
        return cls.model_validate({**payload, 'raw': payload})


class CourierOrderStatusDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status_code: str | None = Field(default=None, validation_alias=AliasChoices('status_id', 'state_id'))
    status_text: str | None = Field(default=None, validation_alias=AliasChoices('status', 'status_text'))
    price: float | None = None
    updated_at: datetime | None = None

    @field_validator('status_code', 'status_text', mode='before')
    @classmethod
    def _blank_to_none(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator('price', mode='before')
    @classmethod
    def _empty_price_to_none(cls, value):
        return None if value in (None, "") else value

    @field_validator('updated_at', mode='after')
    @classmethod
    def _normalize_timestamp(cls, value):
        return to_naive_utc(value)
