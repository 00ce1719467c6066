"""
Typed inputs for the billing services.

Views, tasks and admin actions build these instead of passing raw
dicts around; None always means "leave as is".
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from django.core.exceptions import ValidationError

from .money import to_decimal


def _optional_decimal(value):
    if value is None or value == "":
        return None
    try:
        number = to_decimal(value)
    except ArithmeticError:
        raise ValidationError(f"Not a number: {value!r}")
    if not number.is_finite():
        raise ValidationError(f"Not a finite number: {value!r}")
    return number


def _optional_date(value):
    if value is None or value == "" or isinstance(value, date):
        return value or None
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Not a date: {value!r}")


@dataclass(frozen=True)
class PostingRequest:
    employee_id: int
    school_id: int
    monthly_billing_salary: Decimal
    start_date: date
    status: str = "continue"
    tds_percent: Decimal = Decimal("0.00")
    gst_percent: Decimal = Decimal("0.00")
    end_date: Optional[date] = None
    remark: str = ""


@dataclass(frozen=True)
class PostingUpdate:
    monthly_billing_salary: Optional[Decimal] = None
    tds_percent: Optional[Decimal] = None
    gst_percent: Optional[Decimal] = None
    end_date: Optional[date] = None
    remark: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class LeaveOverride:
    line_id: int
    leave_days: int
    reason: str = ""


@dataclass(frozen=True)
class VerificationRequest:
    tds_percent: Optional[Decimal] = None
    gst_percent: Optional[Decimal] = None
    leave_overrides: list[LeaveOverride] = field(default_factory=list)
    reason: str = ""
    notes: str = ""

    @classmethod
    def from_payload(cls, data: dict) -> "VerificationRequest":
        overrides = []
        for item in data.get("leave_overrides") or []:
            try:
                overrides.append(LeaveOverride(
                    line_id=int(item["line_id"]),
                    leave_days=int(item["leave_days"]),
                    reason=item.get("reason", ""),
                ))
            except (KeyError, TypeError, ValueError):
                raise ValidationError(f"Invalid leave override: {item!r}")
        return cls(
            tds_percent=_optional_decimal(data.get("tds_percent")),
            gst_percent=_optional_decimal(data.get("gst_percent")),
            leave_overrides=overrides,
            reason=data.get("reason", ""),
            notes=data.get("notes", ""),
        )


@dataclass(frozen=True)
class PaymentRequest:
    invoice_id: int
    amount: Decimal
    method: str
    payment_date: Optional[date] = None
    reference_number: str = ""
    bank_name: str = ""
    branch: str = ""
    remarks: str = ""

    @classmethod
    def from_payload(cls, invoice_id, data: dict) -> "PaymentRequest":
        amount = _optional_decimal(data.get("amount"))
        if amount is None:
            raise ValidationError("amount is required")
        return cls(
            invoice_id=invoice_id,
            amount=amount,
            method=data.get("method") or "cash",
            payment_date=_optional_date(data.get("payment_date")),
            reference_number=data.get("reference_number", ""),
            bank_name=data.get("bank_name", ""),
            branch=data.get("branch", ""),
            remarks=data.get("remarks", ""),
        )
