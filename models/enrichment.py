"""
Data models for segment profiles, commerce customers and enriched records.

Field names are snake_case in Python and camelCase on disk, so snapshot and
NDJSON files keep the ``profileId`` / ``mostRecentOrder`` / ``orderDate`` keys.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

MISSING_ORDER_VALUE = "N/A"
MISSING_NAME_VALUE = "N/A"
NO_ORDER_VALUE = "None"


def normalize_email(email: str | None) -> str:
    """Trim and lowercase an email; returns "" for None."""
    return (email or "").strip().lower()


class Profile(BaseModel):
    """A segment member, keyed by its normalized email."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    email: str
    profile_id: str = Field(alias="profileId")

    @field_validator("email")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return normalize_email(value)


class Customer(BaseModel):
    """Commerce customer resolved by email lookup. Not persisted."""

    model_config = ConfigDict(populate_by_name=True)

    id: int | str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class OrderSummary(BaseModel):
    """First line item of a customer's most recent order."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = MISSING_ORDER_VALUE
    sku: str = MISSING_ORDER_VALUE
    order_date: str = Field(default=MISSING_ORDER_VALUE, alias="orderDate")

    @classmethod
    def from_order(cls, order: dict) -> "OrderSummary":
        """Build a summary from a raw order payload, filling gaps with "N/A"."""
        line_items = order.get("line_items") or []
        item = line_items[0] if line_items else {}
        return cls(
            title=item.get("title") or MISSING_ORDER_VALUE,
            sku=item.get("sku") or MISSING_ORDER_VALUE,
            order_date=order.get("created_at") or MISSING_ORDER_VALUE,
        )

    @property
    def product_key(self) -> str:
        return f"{self.title} (SKU: {self.sku})"


class EnrichedRecord(BaseModel):
    """One line of the append-only enrichment log."""

    model_config = ConfigDict(populate_by_name=True)

    profile_id: str = Field(alias="profileId")
    email: str
    most_recent_order: OrderSummary | None = Field(default=None, alias="mostRecentOrder")
    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")

    def to_json_line(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class ReportRow(BaseModel):
    """Flattened CSV row; order fields fall back to "None"."""

    email: str
    first_name: str = MISSING_NAME_VALUE
    last_name: str = MISSING_NAME_VALUE
    segment_name: str
    product_title: str = NO_ORDER_VALUE
    sku: str = NO_ORDER_VALUE
    order_date: str = NO_ORDER_VALUE
