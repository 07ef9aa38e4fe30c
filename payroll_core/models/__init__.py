from ..addons.extensions import db

# Import all models
from .employees import Employee, SalaryProfile
from .deductions import Deduction, DeductionType
from .loans import Loan
from .overload_pay import OverloadPay
from .payroll import PayrollEntry, PayrollBatch
from .payroll_audit import PayrollAudit
from .notifications import Notification

__all__ = [
    'db',
    'Employee',
    'SalaryProfile',
    'Deduction',
    'DeductionType',
    'Loan',
    'OverloadPay',
    'PayrollEntry',
    'PayrollBatch',
    'PayrollAudit',
    'Notification',
]
