"""
Cron Expression Matching

Minute-granularity matcher for standard 5-field cron expressions:

    minute hour day-of-month month day-of-week

Each field accepts ``*``, exact values, inclusive ranges (``1-5``), lists
(``1,3,5``) and steps (``*/5``, ``1-10/2``, ``5/15``). Day-of-week uses
0=Sunday. Day-of-month and day-of-week are both required to match (AND),
unlike Vixie cron which ORs them when both are restricted.

All evaluation happens in UTC. The functions here are pure; the scheduler
service decides what to do with a match.
"""
from datetime import datetime, timezone
from typing import List, Tuple

# (min, max) for each of the five fields, in expression order
FIELD_BOUNDS: List[Tuple[int, int]] = [
    (0, 59),  # minute
    (0, 23),  # hour
    (1, 31),  # day of month
    (1, 12),  # month
    (0, 6),   # day of week
]

FIELD_NAMES = ["minute", "hour", "day-of-month", "month", "day-of-week"]


class CronExpressionError(ValueError):
    """Raised for cron fields that cannot be parsed."""


def _to_int(text: str, field_expr: str) -> int:
    try:
        return int(text)
    except ValueError:
        raise CronExpressionError(f"Invalid cron field: {field_expr!r}") from None


def cron_field_matches(field_expr: str, current: int, min_val: int, max_val: int) -> bool:
    """
    Test one cron field against the current value of that time component.

    Raises CronExpressionError for non-numeric parts or a zero step.
    """
    if field_expr == "*":
        return True

    for part in field_expr.split(","):
        part = part.strip()

        if "/" in part:
            range_part, step_text = part.split("/", 1)
            step = _to_int(step_text, field_expr)
            if step <= 0:
                raise CronExpressionError(f"Cron step must be positive: {field_expr!r}")

            range_start, range_end = min_val, max_val
            if range_part != "*":
                if "-" in range_part:
                    start_text, end_text = range_part.split("-", 1)
                    range_start = _to_int(start_text, field_expr)
                    range_end = _to_int(end_text, field_expr)
                else:
                    range_start = _to_int(range_part, field_expr)

            if range_start <= current <= range_end and (current - range_start) % step == 0:
                return True

        elif "-" in part:
            start_text, end_text = part.split("-", 1)
            if _to_int(start_text, field_expr) <= current <= _to_int(end_text, field_expr):
                return True

        elif current == _to_int(part, field_expr):
            return True

    return False


def to_utc(when: datetime) -> datetime:
    """Normalize to naive UTC. Naive inputs are assumed to already be UTC."""
    if when.tzinfo is not None:
        when = when.astimezone(timezone.utc).replace(tzinfo=None)
    return when


def floor_to_minute(when: datetime) -> datetime:
    """Truncate to the start of the minute (naive UTC)."""
    return to_utc(when).replace(second=0, microsecond=0)


def _time_components(when: datetime) -> List[int]:
    when = to_utc(when)
    # Python: Monday=0..Sunday=6; cron: Sunday=0..Saturday=6
    day_of_week = (when.weekday() + 1) % 7
    return [when.minute, when.hour, when.day, when.month, day_of_week]


def _split_fields(expression) -> list:
    if not isinstance(expression, str):
        raise CronExpressionError(f"Cron expression must be a string, got {type(expression).__name__}")
    return expression.strip().split()


def cron_matches(expression: str, when: datetime) -> bool:
    """
    Return True when ``when`` (UTC) satisfies every field of ``expression``.

    Expressions without exactly five whitespace-separated fields never match;
    a non-string expression raises CronExpressionError.
    """
    fields = _split_fields(expression)
    if len(fields) != 5:
        return False

    for field_expr, current, (min_val, max_val) in zip(fields, _time_components(when), FIELD_BOUNDS):
        if not cron_field_matches(field_expr, current, min_val, max_val):
            return False
    return True


def validate_cron_expression(expression: str) -> None:
    """
    Check that an expression has five parseable fields with in-range values.

    Raises CronExpressionError describing the first problem found.
    """
    fields = _split_fields(expression)
    if len(fields) != 5:
        raise CronExpressionError(
            f"Cron expression must have 5 fields (got {len(fields)}): {expression!r}"
        )

    for name, field_expr, (min_val, max_val) in zip(FIELD_NAMES, fields, FIELD_BOUNDS):
        # Evaluating at the lower bound parses every part of the field
        cron_field_matches(field_expr, min_val, min_val, max_val)

        for part in field_expr.split(","):
            base = part.strip().split("/", 1)[0]
            if base == "*":
                continue
            for bound in base.split("-", 1):
                value = _to_int(bound, field_expr)
                if not min_val <= value <= max_val:
                    raise CronExpressionError(
                        f"{name} value {value} out of range {min_val}-{max_val}"
                    )
