# controllers/deductions/deduction_types.py
from flask import current_app
from flask_openapi3 import APIBlueprint, Tag
from flask_jwt_extended import jwt_required
from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import datetime
from decimal import Decimal
import logging

from ...addons.extensions import db
from ...addons.exceptions import PayrollError
from ...addons.functions import jsonifyFormat
from ...addons.period_policy import PeriodPolicy
from ...addons.deduction_service import (
    update_deduction_type, apply_mandatory_deductions, record_attendance_deduction, archive_deduction,
)
from ...models import Employee

logger = logging.getLogger(__name__)

deductions_bp = APIBlueprint('deductions', __name__, url_prefix='/api/deductions')
deductions_tag = Tag(name="Deductions", description="Deduction types and per-employee deductions")

# ---------------------- REQUEST SCHEMAS ---------------------- #
class UpdateDeductionTypeSchema(BaseModel):
    name: Optional[str] = Field(None, description="Deduction type name")
    description: Optional[str] = Field(None, description="Description")
    calculationType: Optional[Literal['FIXED', 'PERCENTAGE']] = Field(None, description="FIXED or PERCENTAGE")
    amount: Optional[Decimal] = Field(None, ge=0, description="Fixed amount")
    percentageValue: Optional[Decimal] = Field(None, ge=0, le=100, description="Percentage of basic salary (0-100)")
    isMandatory: Optional[bool] = Field(None, description="Applies to every personnel employee")
    isActive: Optional[bool] = Field(None, description="Active flag")

class ApplyMandatorySchema(BaseModel):
    employeeIds: List[int] = Field([], description="Restrict to these employees; every active personnel when empty")

class AttendanceDeductionSchema(BaseModel):
    employeeId: int = Field(..., description="Employee ID")
    amount: Optional[Decimal] = Field(None, ge=0, description="Priced amount; computed from the daily rate when omitted")
    lateMinutes: int = Field(0, ge=0, description="Minutes late")
    absentDays: Decimal = Field(Decimal('0'), ge=0, description="Days absent")
    appliedAt: Optional[datetime] = Field(None, description="When the penalty applies")
    notes: Optional[str] = Field(None, description="Additional notes")

# ---------------------- PATH PARAMETER SCHEMAS ---------------------- #
class DeductionTypeIdPath(BaseModel):
    type_id: int = Field(..., description="Deduction type ID")

class DeductionIdPath(BaseModel):
    deduction_id: int = Field(..., description="Deduction ID")

# ---------------------- RESPONSE SCHEMAS ---------------------- #
class SuccessResponse(BaseModel):
    status: int = Field(200, description="HTTP status code")
    data: Optional[dict] = Field(None, description="Response data")
    message: str = Field(..., description="Response message")

class ErrorResponse(BaseModel):
    status: int = Field(..., description="HTTP status code")
    isError: bool = Field(True, description="Error flag")
    message: str = Field(..., description="Error message")

FIELD_NAMES = {
    'name': 'name',
    'description': 'description',
    'calculationType': 'calculation_type',
    'amount': 'amount',
    'percentageValue': 'percentage_value',
    'isMandatory': 'is_mandatory',
    'isActive': 'is_active',
}

# ---------------------- ENDPOINTS ---------------------- #

@deductions_bp.put(
    '/types/<int:type_id>',
    tags=[deductions_tag],
    responses={200: SuccessResponse, 404: ErrorResponse, 422: ErrorResponse, 500: ErrorResponse},
    security=[{"jwt": []}]
)
@jwt_required()
def update_type(path: DeductionTypeIdPath, body: UpdateDeductionTypeSchema):
    """Edit a deduction type; a rate change is applied to every active instance"""
    try:
        changes = {
            FIELD_NAMES[key]: value
            for key, value in body.model_dump(exclude_unset=True).items()
        }
        definition, recalculated = update_deduction_type(path.type_id, changes)
        return jsonifyFormat({
            'status': 200,
            'data': {'deductionType': definition.to_dict(), 'recalculated': recalculated},
            'message': 'Deduction type updated successfully'
        }, 200)

    except PayrollError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to update deduction type {path.type_id}: {e}")
        return jsonifyFormat({
            'status': 500,
            'isError': True,
            'error': str(e),
            'message': 'Failed to update deduction type'
        }, 500)

@deductions_bp.post(
    '/mandatory/apply',
    tags=[deductions_tag],
    responses={200: SuccessResponse, 500: ErrorResponse},
    security=[{"jwt": []}]
)
@jwt_required()
def apply_mandatory(body: ApplyMandatorySchema):
    """Give personnel the mandatory deductions they do not hold yet"""
    try:
        employees = None
        if body.employeeIds:
            employees = Employee.query.filter(Employee.id.in_(body.employeeIds)).order_by(Employee.id).all()
        created = apply_mandatory_deductions(employees)
        return jsonifyFormat({
            'status': 200,
            'data': {'created': len(created), 'deductions': [d.to_dict() for d in created]},
            'message': f"Applied {len(created)} mandatory deductions"
        }, 200)

    except PayrollError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to apply mandatory deductions: {e}")
        return jsonifyFormat({
            'status': 500,
            'isError': True,
            'error': str(e),
            'message': 'Failed to apply mandatory deductions'
        }, 500)

@deductions_bp.post(
    '/attendance',
    tags=[deductions_tag],
    responses={201: SuccessResponse, 404: ErrorResponse, 422: ErrorResponse, 500: ErrorResponse},
    security=[{"jwt": []}]
)
@jwt_required()
def create_attendance_deduction(body: AttendanceDeductionSchema):
    """Record a lateness/absence deduction for an employee"""
    try:
        instance = record_attendance_deduction(
            body.employeeId,
            PeriodPolicy.from_config(current_app.config),
            amount=body.amount,
            late_minutes=body.lateMinutes,
            absent_days=body.absentDays,
            applied_at=body.appliedAt,
            notes=body.notes,
        )
        return jsonifyFormat({
            'status': 201,
            'data': instance.to_dict(),
            'message': 'Attendance deduction recorded'
        }, 201)

    except PayrollError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to record attendance deduction: {e}")
        return jsonifyFormat({
            'status': 500,
            'isError': True,
            'error': str(e),
            'message': 'Failed to record attendance deduction'
        }, 500)

@deductions_bp.delete(
    '/<int:deduction_id>',
    tags=[deductions_tag],
    responses={200: SuccessResponse, 404: ErrorResponse},
    security=[{"jwt": []}]
)
@jwt_required()
def delete_deduction(path: DeductionIdPath):
    """Archive a deduction; history and released payslips are kept"""
    instance = archive_deduction(path.deduction_id)
    return jsonifyFormat({
        'status': 200,
        'data': instance.to_dict(),
        'message': 'Deduction archived'
    }, 200)
