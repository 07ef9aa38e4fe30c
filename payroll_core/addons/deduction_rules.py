# addons/deduction_rules.py
from decimal import Decimal

from .exceptions import InvalidRate
from .functions import money, to_decimal, ZERO

FIXED = 'FIXED'
PERCENTAGE = 'PERCENTAGE'
HUNDRED = Decimal('100')


class DeductionRuleEvaluator:
    """Computes what one deduction type costs an employee with a given salary base."""

    @classmethod
    def validate_definition(cls, calculation_type, amount=None, percentage_value=None):
        """Reject rates the engine must never see: negative amounts, percentages outside 0-100."""
        if calculation_type not in (FIXED, PERCENTAGE):
            raise InvalidRate(f"Unknown calculation type: {calculation_type!r}")
        if amount is not None and to_decimal(amount) < 0:
            raise InvalidRate("Fixed deduction amount cannot be negative")
        if calculation_type == PERCENTAGE:
            if percentage_value is None:
                raise InvalidRate("Percentage deductions need a percentage value")
            pct = to_decimal(percentage_value)
            if pct < 0 or pct > HUNDRED:
                raise InvalidRate(f"Percentage must be between 0 and 100, got {pct}")

    @classmethod
    def evaluate(cls, definition, salary_base=None):
        """
        Amount owed for one definition.

        FIXED returns the definition amount. PERCENTAGE returns
        salary_base * percentage / 100, or 0 when there is no salary base
        (an employee without a salary profile owes no percentage charge).
        """
        if definition.calculation_type == PERCENTAGE:
            if salary_base is None or definition.percentage_value is None:
                return ZERO
            return money(to_decimal(salary_base) * to_decimal(definition.percentage_value) / HUNDRED)
        return money(definition.amount)
