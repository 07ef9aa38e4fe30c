from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime, time, timedelta
from flask import make_response, jsonify

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


# CONVERT RESPONSE TO JSON
def jsonifyFormat(responsedata, status_code):
    # Ensure the response data is JSON serializable
    if isinstance(responsedata, dict):
        responsedata = jsonify(responsedata)  # Convert dictionary to JSON response

    # Create the response with the desired HTTP status code
    response = make_response(responsedata)
    response.status_code = status_code  # Set the status code

    # Set the Content-Type header to application/json
    response.headers['Content-Type'] = 'application/json'

    return response


def to_decimal(value):
    """Convert a stored or user supplied number to Decimal; None and blanks become 0."""
    if value is None or value == '':
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Not a monetary value: {value!r}")


def money(value):
    """Quantize to currency scale (two places, half-up)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def day_start(value):
    """Local midnight at the start of the given day."""
    if isinstance(value, datetime):
        value = value.date()
    return datetime.combine(value, time.min)


def day_after(value):
    """Local midnight at the start of the following day (exclusive upper bound)."""
    return day_start(value) + timedelta(days=1)


def add_months(value, months):
    """Shift a date by whole months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    next_month = date(year + (month // 12), month % 12 + 1, 1)
    last_day = (next_month - timedelta(days=1)).day
    return date(year, month, min(value.day, last_day))
