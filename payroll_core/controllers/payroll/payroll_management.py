# controllers/payroll/payroll_management.py
from flask import current_app
from flask_openapi3 import APIBlueprint, Tag
from flask_jwt_extended import jwt_required, get_jwt_identity
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import date
from decimal import Decimal
import logging

from ...addons.extensions import db
from ...addons.exceptions import PayrollError
from ...addons.functions import jsonifyFormat, money, ZERO
from ...addons.period_policy import Period, PeriodPolicy
from ...addons.payroll_generator import generate_payroll, get_entry
from ...addons.lifecycle import edit_entry, release_payroll, archive_period, archive_entry, clear_pending
from ...addons.reconciliation import reconcile_entries
from ...models import PayrollEntry, PayrollAudit

logger = logging.getLogger(__name__)

# Define blueprint
payroll_bp = APIBlueprint('payroll', __name__, url_prefix='/api/payroll')

payroll_tag = Tag(name="Payroll", description="Payroll generation, release and reconciliation")

# ---------------------- REQUEST SCHEMAS ---------------------- #
class GeneratePayrollSchema(BaseModel):
    periodStart: Optional[date] = Field(None, description="First day of the period (YYYY-MM-DD); current period when both dates are omitted")
    periodEnd: Optional[date] = Field(None, description="Last day of the period (YYYY-MM-DD); required with periodStart")
    confirmed: bool = Field(False, description="Explicit confirmation; generation is refused without it")
    force: bool = Field(False, description="Rebuild existing PENDING entries")

class ReleasePayrollSchema(BaseModel):
    periodKey: Optional[str] = Field(None, description="YYYY-MM-DD_YYYY-MM-DD; current period when omitted")
    includeAttendance: bool = Field(True, description="Include attendance deductions when rebuilding")
    refresh: bool = Field(True, description="Rebuild entries from current inputs before freezing")

class ReconcileSchema(BaseModel):
    status: Optional[str] = Field('ARCHIVED', description="Entry status to scan; null scans every entry")
    tolerance: Optional[Decimal] = Field(None, ge=0, description="Allowed net pay drift")

class EntryQuery(BaseModel):
    employeeId: int = Field(..., description="Employee ID")
    periodKey: str = Field(..., description="YYYY-MM-DD_YYYY-MM-DD")

class EditEntrySchema(BaseModel):
    basicSalary: Optional[Decimal] = Field(None, ge=0, description="Basic salary for the period")
    overtime: Optional[Decimal] = Field(None, ge=0, description="Additional pay for the period")

class PeriodKeyQuery(BaseModel):
    periodKey: Optional[str] = Field(None, description="YYYY-MM-DD_YYYY-MM-DD")

class ArchivePeriodSchema(BaseModel):
    periodKey: str = Field(..., description="YYYY-MM-DD_YYYY-MM-DD")

class CurrentPeriodQuery(BaseModel):
    anchor: Optional[date] = Field(None, description="Any date inside the wanted period; today when omitted")

# ---------------------- PATH PARAMETER SCHEMAS ---------------------- #
class EntryIdPath(BaseModel):
    entry_id: str = Field(..., description="Payroll entry ID")

# ---------------------- RESPONSE SCHEMAS ---------------------- #
class SuccessResponse(BaseModel):
    status: int = Field(200, description="HTTP status code")
    data: Optional[Any] = Field(None, description="Response data")
    message: Optional[str] = Field(None, description="Response message")

class ErrorResponse(BaseModel):
    status: int = Field(..., description="HTTP status code")
    isError: bool = Field(True, description="Error flag")
    error: Optional[str] = Field(None, description="Error class")
    message: str = Field(..., description="Error message")
    details: Optional[Any] = Field(None, description="Error details")


def _policy():
    return PeriodPolicy.from_config(current_app.config)


def _period(period_key):
    """Period from a key, or the current period when no key is given."""
    if not period_key:
        return _policy().resolve(date.today())
    try:
        return Period.from_key(period_key)
    except ValueError as e:
        raise PayrollError(str(e))


def _server_error(e, message):
    db.session.rollback()
    logger.error(f"{message}: {e}")
    return jsonifyFormat({
        'status': 500,
        'isError': True,
        'error': str(e),
        'message': message
    }, 500)

# ---------------------- ENDPOINTS ---------------------- #

@payroll_bp.post('/generate', tags=[payroll_tag], responses={200: SuccessResponse, 400: ErrorResponse, 500: ErrorResponse}, security=[{"jwt": []}])
@jwt_required()
def generate(body: GeneratePayrollSchema):
    """Generate PENDING payroll entries for every active personnel employee"""
    try:
        policy = _policy()
        if body.periodStart and body.periodEnd:
            try:
                period = Period(body.periodStart, body.periodEnd)
            except ValueError as e:
                raise PayrollError(str(e))
        else:
            if body.periodStart or body.periodEnd:
                raise PayrollError("periodStart and periodEnd must be given together")
            period = policy.resolve(date.today())

        result = generate_payroll(
            period, policy,
            confirmed=body.confirmed,
            force=body.force,
            performed_by=get_jwt_identity(),
        )
        return jsonifyFormat({
            'status': 200,
            'data': result.to_dict(),
            'message': f"Generated {len(result.entries)} payroll entries for {period.key}"
        }, 200)

    except PayrollError:
        raise
    except Exception as e:
        return _server_error(e, 'Failed to generate payroll')

@payroll_bp.post('/release', tags=[payroll_tag], responses={200: SuccessResponse, 404: ErrorResponse, 500: ErrorResponse}, security=[{"jwt": []}])
@jwt_required()
def release(body: ReleasePayrollSchema):
    """Release every PENDING entry of a period"""
    try:
        period = _period(body.periodKey)
        summary = release_payroll(
            period, _policy(),
            include_attendance=body.includeAttendance,
            refresh=body.refresh,
        )
        return jsonifyFormat({
            'status': 200,
            'data': summary,
            'message': f"Released {summary['released']} payroll entries"
        }, 200)

    except PayrollError:
        raise
    except Exception as e:
        return _server_error(e, 'Failed to release payroll')

@payroll_bp.post('/reconcile', tags=[payroll_tag], responses={200: SuccessResponse, 500: ErrorResponse}, security=[{"jwt": []}])
@jwt_required()
def reconcile(body: ReconcileSchema):
    """Correct stored net pay that drifted from the breakdown snapshot"""
    try:
        tolerance = body.tolerance
        if tolerance is None:
            tolerance = Decimal(str(current_app.config.get('RECONCILIATION_TOLERANCE', '0.01')))
        report = reconcile_entries(status=body.status, tolerance=tolerance)
        return jsonifyFormat({
            'status': 200,
            'data': report.to_dict(),
            'message': f"{report.corrected} of {report.inspected} entries corrected"
        }, 200)

    except PayrollError:
        raise
    except Exception as e:
        return _server_error(e, 'Failed to reconcile payroll entries')

@payroll_bp.get('/entry', tags=[payroll_tag], responses={200: SuccessResponse, 404: ErrorResponse}, security=[{"jwt": []}])
@jwt_required()
def get_payroll_entry(query: EntryQuery):
    """Get one employee's entry and breakdown for a period"""
    entry = get_entry(query.employeeId, query.periodKey)
    return jsonifyFormat({
        'status': 200,
        'data': entry.to_dict()
    }, 200)

@payroll_bp.put('/entry/<string:entry_id>', tags=[payroll_tag], responses={200: SuccessResponse, 409: ErrorResponse, 500: ErrorResponse}, security=[{"jwt": []}])
@jwt_required()
def update_entry(path: EntryIdPath, body: EditEntrySchema):
    """Edit the earnings of a PENDING entry"""
    try:
        entry = edit_entry(path.entry_id, basic_salary=body.basicSalary, overtime=body.overtime)
        return jsonifyFormat({
            'status': 200,
            'data': entry.to_dict(),
            'message': 'Payroll entry updated successfully'
        }, 200)

    except PayrollError:
        raise
    except Exception as e:
        return _server_error(e, 'Failed to update payroll entry')

@payroll_bp.delete('/pending', tags=[payroll_tag], responses={200: SuccessResponse, 500: ErrorResponse}, security=[{"jwt": []}])
@jwt_required()
def delete_pending(query: PeriodKeyQuery):
    """Delete PENDING entries, optionally for one period"""
    try:
        period = Period.from_key(query.periodKey) if query.periodKey else None
        removed = clear_pending(period)
        return jsonifyFormat({
            'status': 200,
            'data': {'deleted': removed},
            'message': f"Cleared {removed} pending payroll entries"
        }, 200)

    except ValueError as e:
        raise PayrollError(str(e))
    except PayrollError:
        raise
    except Exception as e:
        return _server_error(e, 'Failed to clear pending payroll')

@payroll_bp.post('/archive', tags=[payroll_tag], responses={200: SuccessResponse, 500: ErrorResponse}, security=[{"jwt": []}])
@jwt_required()
def archive(body: ArchivePeriodSchema):
    """Archive every RELEASED entry of a period"""
    try:
        archived = archive_period(_period(body.periodKey))
        return jsonifyFormat({
            'status': 200,
            'data': {'archived': archived},
            'message': f"Archived {archived} payroll entries"
        }, 200)

    except PayrollError:
        raise
    except Exception as e:
        return _server_error(e, 'Failed to archive payroll')

@payroll_bp.post('/entry/<string:entry_id>/archive', tags=[payroll_tag], responses={200: SuccessResponse, 409: ErrorResponse}, security=[{"jwt": []}])
@jwt_required()
def archive_single_entry(path: EntryIdPath):
    """Archive one RELEASED entry"""
    entry = archive_entry(path.entry_id)
    return jsonifyFormat({
        'status': 200,
        'data': entry.to_dict(),
        'message': 'Payroll entry archived'
    }, 200)

@payroll_bp.get('/entry/<string:entry_id>/history', tags=[payroll_tag], responses={200: SuccessResponse}, security=[{"jwt": []}])
@jwt_required()
def get_entry_history(path: EntryIdPath):
    """Return audit history for a payroll entry"""
    audits = (
        PayrollAudit.query
        .filter_by(entity_type='PayrollEntry', entity_id=path.entry_id)
        .order_by(PayrollAudit.timestamp.desc(), PayrollAudit.id.desc())
        .all()
    )
    return jsonifyFormat({'status': 200, 'data': [a.to_dict() for a in audits]}, 200)

@payroll_bp.get('/current', tags=[payroll_tag], responses={200: SuccessResponse}, security=[{"jwt": []}])
@jwt_required()
def current_period(query: CurrentPeriodQuery):
    """Entries and totals for the period containing the anchor date"""
    period = _policy().resolve(query.anchor or date.today())
    entries = PayrollEntry.for_period(period)
    summary: Dict[str, Any] = {'PENDING': 0, 'RELEASED': 0, 'ARCHIVED': 0}
    for entry in entries:
        summary[entry.status] += 1
    return jsonifyFormat({
        'status': 200,
        'data': {
            'periodKey': period.key,
            'periodStart': period.start.isoformat(),
            'periodEnd': period.end.isoformat(),
            'counts': summary,
            'totalGrossPay': str(money(sum((e.gross_pay for e in entries), ZERO))),
            'totalNetPay': str(money(sum((e.net_pay for e in entries), ZERO))),
            'entries': [e.to_dict() for e in entries],
        }
    }, 200)
