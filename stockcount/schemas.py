from datetime import date
from typing import Optional, Type, TypeVar

from pydantic import (
    AliasChoices, BaseModel, ConfigDict, Field,
    ValidationError, field_validator, model_validator
)

from .counting import CountInputError, parse_count, parse_day

ModelT = TypeVar("ModelT", bound=BaseModel)


class CountSubmission(BaseModel):
    """Body of a daily count submission. All three fields are required."""

    model_config = ConfigDict(str_strip_whitespace=True)

    item_name: str = Field(..., min_length=1, max_length=200)
    current_count: int = Field(..., ge=0)
    restocks_received: int = Field(..., ge=0)

    @field_validator("current_count", "restocks_received", mode="before")
    @classmethod
    def _whole_number(cls, v, info):
        return parse_count(v, info.field_name)


class HistoryQuery(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)

    @field_validator("page", "limit", mode="before")
    @classmethod
    def _whole_number(cls, v, info):
        return parse_count(v, info.field_name)


class SummaryQuery(BaseModel):
    days: Optional[int] = None
    start_date: Optional[date] = Field(
        default=None, validation_alias=AliasChoices("startDate", "start_date", "from_date", "start")
    )
    end_date: Optional[date] = Field(
        default=None, validation_alias=AliasChoices("endDate", "end_date", "to_date", "end")
    )

    @field_validator("days", mode="before")
    @classmethod
    def _whole_days(cls, v):
        return parse_count(v, "days")

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _calendar_day(cls, v, info):
        return parse_day(v, info.field_name)


class TheftCheckRequest(BaseModel):
    """Either a known calculated_sales figure or the item whose record supplies it."""

    model_config = ConfigDict(str_strip_whitespace=True)

    actual_sales: int = Field(..., ge=0)
    calculated_sales: Optional[int] = Field(default=None, ge=0)
    item_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    day: Optional[date] = Field(default=None, validation_alias="date")

    @field_validator("actual_sales", "calculated_sales", mode="before")
    @classmethod
    def _whole_number(cls, v, info):
        return parse_count(v, info.field_name)

    @field_validator("day", mode="before")
    @classmethod
    def _calendar_day(cls, v):
        return parse_day(v, "date")

    @model_validator(mode="after")
    def _one_source(self):
        if (self.calculated_sales is None) == (self.item_name is None):
            raise ValueError("Provide either calculated_sales or item_name")
        return self


def load(model: Type[ModelT], data) -> ModelT:
    """Validate request data, reporting failures as a CountInputError keyed by field."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        fields = {}
        for err in exc.errors():
            name = ".".join(str(part) for part in err["loc"]) or "request"
            cause = (err.get("ctx") or {}).get("error")
            fields[name] = str(cause) if cause else err["msg"]
        raise CountInputError("Invalid input", fields) from exc
