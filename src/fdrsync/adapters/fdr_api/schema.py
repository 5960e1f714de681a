"""Pydantic models describing the FDR organization API payloads."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Timestamps published without an offset are expressed in CET.
UPSTREAM_DEFAULT_OFFSET = timezone(timedelta(hours=1))


def _assume_upstream_offset(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UPSTREAM_DEFAULT_OFFSET)
    return value


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class FdrBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class PageMetadata(FdrBaseModel):
    page_size: int | None = Field(default=None, alias="pageSize")
    page_number: int | None = Field(default=None, alias="pageNumber")
    total_pages: int | None = Field(default=None, alias="totPage")

    @property
    def has_more(self) -> bool:
        if self.page_number is None or self.total_pages is None:
            return False
        return self.page_number < self.total_pages


class PublishedFlow(FdrBaseModel):
    fdr: str
    psp_id: str = Field(alias="pspId")
    revision: int
    flow_date: datetime | None = Field(default=None, alias="flowDate")
    published: datetime

    _normalize_offsets = field_validator("flow_date", "published", mode="after")(
        _assume_upstream_offset
    )


class PublishedFlowsPage(FdrBaseModel):
    metadata: PageMetadata | None = None
    count: int | None = None
    data: list[PublishedFlow] = Field(default_factory=list[PublishedFlow])

    @field_validator("data", mode="before")
    @classmethod
    def _null_to_empty(cls, value: object) -> object:
        return [] if value is None else value


class Sender(FdrBaseModel):
    psp_id: str | None = Field(default=None, alias="pspId")
    psp_name: str | None = Field(default=None, alias="pspName")
    psp_broker_id: str | None = Field(default=None, alias="pspBrokerId")
    channel_id: str | None = Field(default=None, alias="channelId")


class Receiver(FdrBaseModel):
    organization_id: str | None = Field(default=None, alias="organizationId")
    organization_name: str | None = Field(default=None, alias="organizationName")


class SingleFlow(FdrBaseModel):
    fdr: str
    revision: int
    status: str | None = None
    fdr_date: datetime | None = Field(default=None, alias="fdrDate")
    published: datetime | None = None
    updated: datetime | None = None
    regulation: str | None = None
    regulation_date: date | None = Field(default=None, alias="regulationDate")
    bic_code_pouring_bank: str | None = Field(default=None, alias="bicCodePouringBank")
    tot_payments: int | None = Field(default=None, alias="totPayments")
    sum_payments: Decimal | None = Field(default=None, alias="sumPayments")
    sender: Sender | None = None
    receiver: Receiver | None = None

    _normalize_offsets = field_validator("fdr_date", "published", "updated", mode="after")(
        _assume_upstream_offset
    )
    _normalize_blanks = field_validator("regulation", "bic_code_pouring_bank", mode="before")(
        _blank_to_none
    )


class PayStatus(StrEnum):
    EXECUTED = "EXECUTED"
    REVOKED = "REVOKED"
    STAND_IN = "STAND_IN"
    STAND_IN_NO_RPT = "STAND_IN_NO_RPT"
    NO_RPT = "NO_RPT"


class PaymentPayload(FdrBaseModel):
    iuv: str
    iur: str | None = None
    index: int | None = None
    pay: Decimal
    pay_status: PayStatus | None = Field(default=None, alias="payStatus")
    pay_date: datetime | None = Field(default=None, alias="payDate")

    _normalize_offsets = field_validator("pay_date", mode="after")(_assume_upstream_offset)
    _normalize_iur = field_validator("iur", mode="before")(_blank_to_none)


class PaymentsPage(FdrBaseModel):
    metadata: PageMetadata | None = None
    count: int | None = None
    data: list[PaymentPayload] = Field(default_factory=list[PaymentPayload])

    @field_validator("data", mode="before")
    @classmethod
    def _null_to_empty(cls, value: object) -> object:
        return [] if value is None else value


class ErrorPayload(FdrBaseModel):
    app_error_code: str | None = Field(default=None, alias="appErrorCode")
    http_status_code: int | None = Field(default=None, alias="httpStatusCode")
    http_status_description: str | None = Field(default=None, alias="httpStatusDescription")
