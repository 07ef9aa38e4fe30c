# addons/loan_calculator.py
from dataclasses import dataclass
from decimal import Decimal

from .functions import money, to_decimal, ZERO

HUNDRED = Decimal('100')


@dataclass(frozen=True)
class LoanSettlement:
    loan_id: object
    installment: Decimal
    balance_before: Decimal
    new_balance: Decimal

    @property
    def completes(self):
        return self.installment > 0 and self.new_balance <= 0


class LoanCalculator:
    """
    Per-period loan installments.

    The monthly installment is amount * monthlyPaymentPercent / 100. For
    sub-monthly pay periods it is divided by the number of periods in a
    month (halved for semi-monthly), the same way the basic salary is
    prorated. The installment never exceeds the remaining balance.
    """

    @classmethod
    def monthly_installment(cls, loan):
        return money(to_decimal(loan.amount) * to_decimal(loan.monthly_payment_percent) / HUNDRED)

    @classmethod
    def installment(cls, loan, periods_per_month=1, periods=1):
        if not loan.is_payable:
            return ZERO
        per_period = to_decimal(loan.amount) * to_decimal(loan.monthly_payment_percent) / HUNDRED
        per_period = per_period / Decimal(periods_per_month)
        due = money(per_period * periods)
        return min(due, money(loan.balance))

    @classmethod
    def settle(cls, loan, periods_per_month=1, periods=1):
        """Installment and resulting balance; skipped (zero) for non-ACTIVE or archived loans."""
        balance = money(loan.balance)
        installment = cls.installment(loan, periods_per_month, periods)
        return LoanSettlement(
            loan_id=loan.id,
            installment=installment,
            balance_before=balance,
            new_balance=money(balance - installment),
        )

    @classmethod
    def apply_payment(cls, loan, payment, when=None):
        """
        Reduce a loan's balance by a frozen installment.

        Returns True when the loan is paid off; the loan then moves to
        COMPLETED and is archived.
        """
        payment = min(money(payment), money(loan.balance))
        loan.balance = money(loan.balance) - payment
        if loan.balance <= 0:
            loan.balance = ZERO
            loan.status = 'COMPLETED'
            if when is not None:
                loan.archived_at = when
            return True
        return False
