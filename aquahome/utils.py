import calendar
import json
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from flask import current_app

from aquahome.errors import ValidationError

CENT = Decimal("0.01")


def to_decimal(value):
    try:
        return Decimal(str(value if value is not None else 0)).quantize(CENT)
    except InvalidOperation as exc:
        raise ValidationError("Invalid amount.") from exc


def to_minor_units(amount):
    return int((to_decimal(amount) * 100).to_integral_value())


def parse_positive_int(value, label):
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{label} must be a positive integer.") from exc
    if isinstance(value, bool) or parsed < 1:
        raise ValidationError(f"{label} must be a positive integer.")
    return parsed


def parse_datetime(value, label):
    """ISO-8601 in, aware UTC datetime out. Naive input is taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        raw = (value or "").strip()
        if not raw:
            raise ValidationError(f"{label} is required.")
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError as exc:
            raise ValidationError(f"Invalid {label} format.") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def add_months(day, months):
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return day.replace(year=year, month=month, day=min(day.day, calendar.monthrange(year, month)[1]))


def to_json(value):
    return json.dumps(value, default=str, separators=(",", ":"))


def gateway():
    return current_app.extensions["payment_gateway"]
