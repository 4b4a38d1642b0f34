"""Pydantic models for freeze request payloads."""

from pydantic import BaseModel, ConfigDict, Field


class FreezeRequest(BaseModel):
    """Body of a freeze request, dates as ``yyyy-MM-dd``."""

    model_config = ConfigDict(populate_by_name=True)

    freeze_dates: list[str] | None = Field(default=None, alias="freezeDates")


class UnfreezeRequest(BaseModel):
    """Body of an unfreeze request, dates as ``yyyy-MM-dd``."""

    model_config = ConfigDict(populate_by_name=True)

    unfreeze_dates: list[str] | None = Field(default=None, alias="unfreezeDates")
