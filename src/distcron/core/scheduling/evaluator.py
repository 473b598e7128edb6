"""
Cron expression evaluation.

Manifesto:
    "When does this job fire next?" is a pure function of the expression
    and a reference instant.  Keeping it pure makes every scheduler node
    agree on the answer and makes the answer trivially testable.

Grammar is the standard five-field form (minute hour day-of-month month
day-of-week) at minute granularity; croniter does the arithmetic.
croniter's six/seven-field extensions (seconds, years) and ``@hourly``
style macros are rejected.

Tags:
    distcron, scheduling, cron, croniter

Doc-Types:
    api-reference
"""

from __future__ import annotations

import re
from datetime import datetime

from croniter import croniter

from distcron.core.errors import InvalidExpressionError
from distcron.core.timestamps import as_utc, utc_now

CRON_FIELD_COUNT = 5
DAY_OF_WEEK_MAX = 6

_NUMBER = re.compile(r"[0-9]+")
_MONTH_NAMES = frozenset("jan feb mar apr may jun jul aug sep oct nov dec".split())
_DAY_NAMES = frozenset("sun mon tue wed thu fri sat".split())
# field index -> names accepted in place of numbers
_FIELD_NAMES = {3: _MONTH_NAMES, 4: _DAY_NAMES}


class ScheduleEvaluator:
    """Computes next fire times for five-field cron expressions.

    Example:
        >>> from datetime import datetime, UTC
        >>> ev = ScheduleEvaluator()
        >>> ev.next("*/1 * * * *", datetime(2024, 1, 1, 12, 0, 30, tzinfo=UTC))
        datetime.datetime(2024, 1, 1, 12, 1, tzinfo=datetime.timezone.utc)
    """

    def next(self, expression: str, reference: datetime) -> datetime:
        """Return the first fire instant strictly after *reference*.

        Args:
            expression: Five-field cron expression.
            reference: Instant to search forward from; naive values are UTC.

        Returns:
            Aware UTC datetime, always ``> reference``.

        Raises:
            InvalidExpressionError: malformed expression, wrong field count,
                or no future instant matches.
        """
        self._check_shape(expression)
        start = as_utc(reference)
        try:
            fire_at = croniter(expression, start).get_next(datetime)
        except (ValueError, KeyError) as exc:
            # croniter's own errors subclass ValueError
            raise InvalidExpressionError(expression, str(exc), cause=exc) from exc
        return as_utc(fire_at)

    def validate(self, expression: str) -> None:
        """Raise :class:`InvalidExpressionError` unless *expression* can fire."""
        self.next(expression, utc_now())

    def is_valid(self, expression: str) -> bool:
        try:
            self.validate(expression)
        except InvalidExpressionError:
            return False
        return True

    @staticmethod
    def _check_shape(expression: object) -> None:
        if not isinstance(expression, str):
            raise InvalidExpressionError(expression, "expression must be a string")
        fields = expression.split()
        if len(fields) != CRON_FIELD_COUNT:
            raise InvalidExpressionError(
                expression,
                f"expected {CRON_FIELD_COUNT} fields, got {len(fields)}",
            )
        for index, field in enumerate(fields):
            for part in field.split(","):
                ScheduleEvaluator._check_part(expression, index, part)

    @staticmethod
    def _check_part(expression: str, index: int, part: str) -> None:
        """Accept ``*``, ``?``, ``a``, ``a-b`` with an optional ``/step``.

        croniter also understands ``L``, ``W``, ``#`` and ``H`` and reads a
        day-of-week of 7 as Sunday; none of those are standard cron.
        """
        base, slash, step = part.partition("/")
        if slash and not _NUMBER.fullmatch(step):
            raise InvalidExpressionError(expression, f"bad step in {part!r}")
        if base in ("*", "?"):
            return
        bounds = base.split("-")
        if len(bounds) > 2:
            raise InvalidExpressionError(expression, f"bad range {part!r}")
        names = _FIELD_NAMES.get(index, frozenset())
        for bound in bounds:
            if _NUMBER.fullmatch(bound):
                if index == 4 and int(bound) > DAY_OF_WEEK_MAX:
                    raise InvalidExpressionError(expression, f"day of week out of range: {bound}")
            elif bound.lower() not in names:
                raise InvalidExpressionError(expression, f"unsupported token {bound!r}")


__all__ = ["CRON_FIELD_COUNT", "ScheduleEvaluator"]
