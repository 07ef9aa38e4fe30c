# controllers/loans/loans.py
from flask_openapi3 import APIBlueprint, Tag
from flask_jwt_extended import jwt_required
from pydantic import BaseModel, Field
from typing import Optional
from datetime import date

from ...addons.functions import jsonifyFormat
from ...addons.lifecycle import approve_loan, reject_loan

loans_bp = APIBlueprint('loans', __name__, url_prefix='/api/loans')
loans_tag = Tag(name="Loans", description="Loan approval")

class LoanIdPath(BaseModel):
    loan_id: int = Field(..., description="Loan ID")

class ApproveLoanSchema(BaseModel):
    startDate: Optional[date] = Field(None, description="First day of amortization; today when omitted")

class RejectLoanSchema(BaseModel):
    reason: Optional[str] = Field(None, description="Reason shown to the employee")


@loans_bp.post('/<int:loan_id>/approve', tags=[loans_tag], security=[{"jwt": []}])
@jwt_required()
def approve(path: LoanIdPath, body: ApproveLoanSchema):
    """Approve a PENDING loan"""
    loan = approve_loan(path.loan_id, start_date=body.startDate)
    return jsonifyFormat({
        'status': 200,
        'data': loan.to_dict(),
        'message': 'Loan approved'
    }, 200)

@loans_bp.post('/<int:loan_id>/reject', tags=[loans_tag], security=[{"jwt": []}])
@jwt_required()
def reject(path: LoanIdPath, body: RejectLoanSchema):
    """Reject a PENDING loan"""
    loan = reject_loan(path.loan_id, reason=body.reason)
    return jsonifyFormat({
        'status': 200,
        'data': loan.to_dict(),
        'message': 'Loan rejected'
    }, 200)
