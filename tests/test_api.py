"""
HTTP tests for the payroll, deduction, loan and notification blueprints.
"""

from decimal import Decimal

from payroll_core.addons.extensions import db
from payroll_core.models import Deduction, DeductionType, Loan, PayrollEntry

PERIOD_KEY = '2026-06-01_2026-06-15'


def generate(client, auth_headers, **extra):
    body = {'periodStart': '2026-06-01', 'periodEnd': '2026-06-15', 'confirmed': True}
    body.update(extra)
    return client.post('/api/payroll/generate', json=body, headers=auth_headers)


class TestAuthAndErrors:

    def test_requires_token(self, client, roster):
        response = client.post('/api/payroll/generate', json={'confirmed': True})
        assert response.status_code == 401

    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.get_json()['database'] == 'healthy'

    def test_unknown_route(self, client):
        response = client.get('/api/nothing-here')
        assert response.status_code == 404
        assert response.get_json()['isError'] is True


class TestPayrollEndpoints:

    def test_generate_requires_confirmation(self, client, auth_headers, roster):
        response = generate(client, auth_headers, confirmed=False)

        assert response.status_code == 400
        body = response.get_json()
        assert body['isError'] is True
        assert body['error'] == 'GenerationNotConfirmed'
        assert PayrollEntry.query.count() == 0

    def test_generate(self, client, auth_headers, roster):
        response = generate(client, auth_headers)

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['periodKey'] == PERIOD_KEY
        assert data['createdCount'] == 2
        assert data['skippedCount'] == 1
        assert data['batchId']

    def test_generate_rejects_inverted_period(self, client, auth_headers, roster):
        response = generate(client, auth_headers, periodStart='2026-06-15', periodEnd='2026-06-01')
        assert response.status_code == 400
        assert response.get_json()['isError'] is True

    def test_generate_rejects_half_specified_period(self, client, auth_headers, roster):
        response = client.post(
            '/api/payroll/generate', json={'periodEnd': '2026-06-15', 'confirmed': True}, headers=auth_headers
        )
        assert response.status_code == 400
        assert response.get_json()['error'] == 'PayrollError'
        assert PayrollEntry.query.count() == 0

    def test_get_entry(self, client, auth_headers, roster):
        maria_id = roster['maria'].id
        generate(client, auth_headers)

        response = client.get(
            f'/api/payroll/entry?employeeId={maria_id}&periodKey={PERIOD_KEY}', headers=auth_headers
        )

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['net_pay'] == 4575.0
        assert data['breakdown']['totalDeductions'] == '1425.00'

    def test_get_missing_entry(self, client, auth_headers, roster):
        response = client.get(
            f"/api/payroll/entry?employeeId={roster['maria'].id}&periodKey={PERIOD_KEY}", headers=auth_headers
        )
        assert response.status_code == 404
        assert response.get_json()['error'] == 'RecordNotFound'

    def test_edit_entry(self, client, auth_headers, roster):
        generate(client, auth_headers)
        entry_id = PayrollEntry.query.filter_by(employee_id=roster['maria'].id).one().id

        response = client.put(
            f'/api/payroll/entry/{entry_id}', json={'basicSalary': 6500}, headers=auth_headers
        )

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['basic_salary'] == 6500.0
        assert data['net_pay'] == 5075.0

    def test_edit_released_entry_conflicts(self, client, auth_headers, roster):
        generate(client, auth_headers)
        client.post('/api/payroll/release', json={'periodKey': PERIOD_KEY}, headers=auth_headers)
        entry_id = PayrollEntry.query.filter_by(employee_id=roster['maria'].id).one().id

        response = client.put(f'/api/payroll/entry/{entry_id}', json={'overtime': 100}, headers=auth_headers)

        assert response.status_code == 409
        assert response.get_json()['error'] == 'IllegalStateTransition'

    def test_release(self, client, auth_headers, roster):
        loan_id = roster['loan'].id
        generate(client, auth_headers)

        response = client.post('/api/payroll/release', json={'periodKey': PERIOD_KEY}, headers=auth_headers)

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['released'] == 2
        assert data['loansSettled'] == 1
        assert db.session.get(Loan, loan_id).balance == Decimal('11400.00')

    def test_release_with_nothing_pending(self, client, auth_headers, roster):
        response = client.post('/api/payroll/release', json={'periodKey': PERIOD_KEY}, headers=auth_headers)
        assert response.status_code == 404

    def test_release_bad_period_key(self, client, auth_headers, roster):
        response = client.post('/api/payroll/release', json={'periodKey': 'June'}, headers=auth_headers)
        assert response.status_code == 400

    def test_archive_and_history(self, client, auth_headers, roster):
        generate(client, auth_headers)
        client.post('/api/payroll/release', json={'periodKey': PERIOD_KEY}, headers=auth_headers)
        entry_id = PayrollEntry.query.filter_by(employee_id=roster['jose'].id).one().id

        response = client.post(f'/api/payroll/entry/{entry_id}/archive', json={}, headers=auth_headers)
        assert response.status_code == 200
        assert response.get_json()['data']['status'] == 'ARCHIVED'

        response = client.post('/api/payroll/archive', json={'periodKey': PERIOD_KEY}, headers=auth_headers)
        assert response.get_json()['data']['archived'] == 1

        history = client.get(f'/api/payroll/entry/{entry_id}/history', headers=auth_headers).get_json()['data']
        assert {h['action'] for h in history} >= {'created', 'updated'}

    def test_reconcile(self, client, auth_headers, roster):
        generate(client, auth_headers)
        entry = PayrollEntry.query.filter_by(employee_id=roster['maria'].id).one()
        entry.status = 'ARCHIVED'
        entry.net_pay = Decimal('5175.00')
        db.session.commit()

        response = client.post('/api/payroll/reconcile', json={}, headers=auth_headers)

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['inspected'] == 1
        assert data['corrected'] == 1
        assert PayrollEntry.query.filter_by(employee_id=roster['maria'].id).one().net_pay == Decimal('4575.00')

    def test_clear_pending(self, client, auth_headers, roster):
        generate(client, auth_headers)
        response = client.delete(f'/api/payroll/pending?periodKey={PERIOD_KEY}', headers=auth_headers)
        assert response.status_code == 200
        assert response.get_json()['data']['deleted'] == 2
        assert PayrollEntry.query.count() == 0

    def test_current_period(self, client, auth_headers, roster):
        generate(client, auth_headers)
        response = client.get('/api/payroll/current?anchor=2026-06-10', headers=auth_headers)

        data = response.get_json()['data']
        assert data['periodKey'] == PERIOD_KEY
        assert data['counts']['PENDING'] == 2
        assert data['totalNetPay'] == '10075.00'


class TestDeductionEndpoints:

    def test_update_type_cascades(self, client, auth_headers, roster):
        sss_id = roster['sss'].id
        response = client.put(
            f'/api/deductions/types/{sss_id}', json={'percentageValue': 10}, headers=auth_headers
        )

        assert response.status_code == 200
        assert response.get_json()['data']['recalculated'] == 2
        amounts = {d.amount for d in Deduction.query.filter_by(deduction_type_id=sss_id).all()}
        assert amounts == {Decimal('1200.00'), Decimal('1000.00')}

    def test_update_type_out_of_range(self, client, auth_headers, roster):
        sss_id = roster['sss'].id
        response = client.put(
            f'/api/deductions/types/{sss_id}', json={'percentageValue': 150}, headers=auth_headers
        )
        assert response.status_code == 422
        assert db.session.get(DeductionType, sss_id).percentage_value == Decimal('5.00')

    def test_apply_mandatory(self, client, auth_headers, roster):
        response = client.post(
            '/api/deductions/mandatory/apply', json={'employeeIds': [roster['jose'].id]}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.get_json()['data']['created'] == 1

    def test_record_attendance_deduction(self, client, auth_headers, roster):
        response = client.post(
            '/api/deductions/attendance',
            json={'employeeId': roster['jose'].id, 'amount': 80, 'lateMinutes': 45},
            headers=auth_headers,
        )
        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['amount'] == 80.0
        assert data['notes'] == 'Late: 0h 45m'

    def test_archive_deduction(self, client, auth_headers, roster):
        deduction_id = Deduction.query.filter_by(deduction_type_id=roster['uniform'].id).first().id
        response = client.delete(f'/api/deductions/{deduction_id}', headers=auth_headers)
        assert response.status_code == 200
        assert response.get_json()['data']['archived_at'] is not None


class TestLoanAndNotificationEndpoints:

    def test_approve_active_loan_conflicts(self, client, auth_headers, roster):
        response = client.post(f"/api/loans/{roster['loan'].id}/approve", json={}, headers=auth_headers)
        assert response.status_code == 409
        assert response.get_json()['error'] == 'IllegalStateTransition'

    def test_approve_pending_loan(self, client, auth_headers, roster):
        loan = Loan(
            employee_id=roster['jose'].id, amount=Decimal('5000.00'), balance=Decimal('5000.00'),
            monthly_payment_percent=Decimal('10.00'), term_months=6, status='PENDING',
        )
        db.session.add(loan)
        db.session.commit()

        response = client.post(
            f'/api/loans/{loan.id}/approve', json={'startDate': '2026-07-01'}, headers=auth_headers
        )

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['status'] == 'ACTIVE'
        assert data['end_date'] == '2027-01-01'

    def test_notifications_after_release(self, client, auth_headers, roster):
        maria_id = roster['maria'].id
        generate(client, auth_headers)
        client.post('/api/payroll/release', json={'periodKey': PERIOD_KEY}, headers=auth_headers)

        response = client.get(f'/api/notifications/?recipientId={maria_id}', headers=auth_headers)
        body = response.get_json()
        assert response.status_code == 200
        assert body['unread'] == 1
        assert body['data'][0]['title'] == 'Payroll Released'

        notification_id = body['data'][0]['id']
        response = client.post(
            f'/api/notifications/{notification_id}/read', json={'recipientId': maria_id}, headers=auth_headers
        )
        assert response.get_json()['data']['is_read'] is True

        body = client.get(f'/api/notifications/?recipientId={maria_id}&unreadOnly=true', headers=auth_headers).get_json()
        assert body['data'] == []
