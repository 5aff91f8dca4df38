import re
from datetime import datetime, timedelta, timezone
import pytest
from fieldledger.models.base import utcnow
from fieldledger.routes.mobile import period_range
from fieldledger.errors import ValidationError
from fieldledger.services.notify import plain_body
from fieldledger.services.tokens import MAX_OTP_ATTEMPTS, issue_reset_jwt, store_otp, verify_otp
from tests.test_utils_seed import (
    DEFAULT_PASSWORD, admin_headers, employee_headers, make_employee, make_product, give_allocation, reload, bearer,
)


def _otp_from(outbox):
    return re.search(r'reset code is (\d{6})', plain_body(outbox[-1])).group(1)


def test_login_marks_employee_online(client):
    emp = make_employee()
    assert emp.status == 'Offline'
    resp = client.post('/mobile/auth/login', json={'email': emp.email.upper(), 'password': DEFAULT_PASSWORD})
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body['employee']['status'] == 'Online'
    assert body['employee']['holdings'] == {'cash': 0, 'online': 0, 'total': 0}
    resp = client.post('/mobile/auth/login', json={'email': emp.email, 'password': 'nope-nope'})
    assert resp.status_code == 401
    assert resp.get_json()['error']['detail'] == 'Invalid email or password'


def test_deactivated_employee_is_locked_out(client):
    emp = make_employee()
    headers = employee_headers(client, emp)
    assert client.get('/mobile/profile', headers=headers).status_code == 200
    # the admin deactivates the account while the token is still live
    resp = client.patch(f'/employees/{emp.id}/active', headers=admin_headers(client))
    assert resp.status_code == 200 and resp.get_json()['is_active'] is False
    assert client.get('/mobile/profile', headers=headers).status_code == 403
    resp = client.post('/mobile/auth/login', json={'email': emp.email, 'password': DEFAULT_PASSWORD})
    assert resp.status_code == 403


def test_admin_token_cannot_use_mobile_routes(client):
    assert client.get('/mobile/profile', headers=admin_headers(client)).status_code == 403


def test_otp_reset_flow(client, outbox):
    emp = make_employee()
    resp = client.post('/mobile/auth/forgot-password', json={'email': emp.email})
    assert resp.status_code == 200
    generic = resp.get_json()['message']
    assert len(outbox) == 1
    otp = _otp_from(outbox)

    resp = client.post('/mobile/auth/forgot-password', json={'email': 'nobody-here@example.com'})
    assert resp.get_json()['message'] == generic
    assert len(outbox) == 1

    wrong = '000000' if otp != '000000' else '111111'
    resp = client.post('/mobile/auth/verify-otp', json={'email': emp.email, 'otp': wrong})
    assert resp.status_code == 400
    resp = client.post('/mobile/auth/verify-otp', json={'email': emp.email, 'otp': otp})
    assert resp.status_code == 200, resp.get_json()
    reset_token = resp.get_json()['reset_token']
    # single use
    assert client.post('/mobile/auth/verify-otp', json={'email': emp.email, 'otp': otp}).status_code == 400

    # a reset token is not an access token
    assert client.get('/mobile/profile', headers=bearer(reset_token)).status_code == 403

    resp = client.post('/mobile/auth/reset-password', json={'reset_token': reset_token, 'password': 'fresh-pass'})
    assert resp.status_code == 200
    assert client.post('/mobile/auth/login', json={'email': emp.email, 'password': 'fresh-pass'}).status_code == 200


def test_expired_otp_is_cleared(client, session, outbox):
    emp = make_employee()
    client.post('/mobile/auth/forgot-password', json={'email': emp.email})
    otp = _otp_from(outbox)
    emp = reload(emp)
    emp.otp_expiry = utcnow() - timedelta(seconds=1)
    session.commit()
    resp = client.post('/mobile/auth/verify-otp', json={'email': emp.email, 'otp': otp})
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'OTP has expired'
    assert reload(emp).otp_hash is None


def test_expired_otp_clear_survives_rollback(session, app_ctx):
    emp = make_employee()
    store_otp(emp, timedelta(minutes=10))
    emp.otp_expiry = utcnow() - timedelta(seconds=1)
    session.commit()
    with pytest.raises(ValidationError):
        verify_otp(session, emp, '123456')
    # the error handler rolls back; the clear was already committed
    session.rollback()
    assert reload(emp).otp_hash is None


def test_otp_locks_after_repeated_wrong_guesses(client, outbox):
    emp = make_employee()
    client.post('/mobile/auth/forgot-password', json={'email': emp.email})
    otp = _otp_from(outbox)
    wrong = '000000' if otp != '000000' else '111111'
    for attempt in range(1, MAX_OTP_ATTEMPTS):
        resp = client.post('/mobile/auth/verify-otp', json={'email': emp.email, 'otp': wrong})
        assert resp.get_json()['error']['detail'] == 'Invalid OTP'
        assert reload(emp).otp_attempts == attempt
    resp = client.post('/mobile/auth/verify-otp', json={'email': emp.email, 'otp': wrong})
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'Too many invalid attempts. Please request a new OTP'
    assert reload(emp).otp_hash is None
    # the right code no longer works either
    resp = client.post('/mobile/auth/verify-otp', json={'email': emp.email, 'otp': otp})
    assert resp.get_json()['error']['detail'] == 'No OTP requested'

    # a new code starts a fresh count
    client.post('/mobile/auth/forgot-password', json={'email': emp.email})
    assert reload(emp).otp_attempts == 0
    resp = client.post('/mobile/auth/verify-otp', json={'email': emp.email, 'otp': _otp_from(outbox)})
    assert resp.status_code == 200


def test_verify_otp_input_errors(client):
    resp = client.post('/mobile/auth/verify-otp', json={'email': 'someone@example.com'})
    assert resp.get_json()['error']['detail'] == 'Email and OTP are required'
    resp = client.post('/mobile/auth/verify-otp', json={'email': 'someone@example.com', 'otp': '123456'})
    assert resp.get_json()['error']['detail'] == 'Invalid email or OTP'


def test_reset_password_rejects_access_tokens(client, app_ctx):
    emp = make_employee()
    access = employee_headers(client, emp)['Authorization'].split(' ', 1)[1]
    resp = client.post('/mobile/auth/reset-password', json={'reset_token': access, 'password': 'sneaky-pass'})
    assert resp.status_code == 400
    token = issue_reset_jwt(emp.id, timedelta(minutes=5))
    resp = client.post('/mobile/auth/reset-password', json={'reset_token': token, 'password': '123'})
    assert resp.status_code == 400


def test_profile_updates(client, monkeypatch):
    emp = make_employee(profile_photo='https://files.example.com/old.jpg')
    headers = employee_headers(client, emp)
    deleted = []
    monkeypatch.setattr('fieldledger.services.catalog.replace_file', lambda old, new: deleted.append((old, new)))

    resp = client.patch('/mobile/profile/status', json={'status': 'Offline'}, headers=headers)
    assert resp.get_json()['status'] == 'Offline'
    assert client.patch('/mobile/profile/status', json={'status': 'Away'}, headers=headers).status_code == 400

    resp = client.patch('/mobile/profile/photo', json={'profile_photo': 'https://files.example.com/new.jpg'}, headers=headers)
    assert resp.get_json()['profile_photo'] == 'https://files.example.com/new.jpg'
    assert deleted == [('https://files.example.com/old.jpg', 'https://files.example.com/new.jpg')]

    resp = client.patch('/mobile/profile/password', json={'current_password': 'wrong-one', 'new_password': 'another1'}, headers=headers)
    assert resp.get_json()['error']['detail'] == 'Current password is incorrect'
    resp = client.patch('/mobile/profile/password', json={'current_password': DEFAULT_PASSWORD, 'new_password': DEFAULT_PASSWORD}, headers=headers)
    assert resp.status_code == 400
    resp = client.patch('/mobile/profile/password', json={'current_password': DEFAULT_PASSWORD, 'new_password': 'another1'}, headers=headers)
    assert resp.status_code == 200
    assert reload(emp).verify_password('another1')


def test_dashboard_periods(client):
    emp = make_employee(holdings_cash=40)
    product = make_product(price_base=200, title='Clay Pot')
    give_allocation(emp, product, 5)
    headers = employee_headers(client, emp)
    client.post('/mobile/sales', json={
        'items': [{'product_id': product.id, 'quantity': 2, 'price_per_unit': 150}],
        'customer': {'name': 'Ravi', 'phone': '9988776655'},
        'payment_method': 'Cash',
    }, headers=headers)
    client.post('/mobile/requests/money', json={'amount': 40, 'method': 'Cash'}, headers=headers)

    body = client.get('/mobile/dashboard?period=today', headers=headers).get_json()
    assert body['holdings'] == {'cash': 340, 'online': 0, 'total': 340}
    assert body['stock']['total_quantity'] == 3
    assert body['stock']['estimated_value'] == 600
    assert body['sales']['total_sales'] == 1
    assert body['sales']['cash_revenue'] == 300
    assert body['sales']['online_revenue'] == 0
    assert body['sales']['top_products'][0]['title'] == 'Clay Pot'
    assert body['pending_requests'] == {'stock': 0, 'money': 1}

    lifetime = client.get('/mobile/dashboard?period=lifetime', headers=headers).get_json()
    assert lifetime['sales']['total_revenue'] == 300
    resp = client.get('/mobile/dashboard?period=decade', headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'].startswith('Invalid period')


@pytest.mark.parametrize('period, start, end', [
    ('today', datetime(2026, 3, 18), datetime(2026, 3, 19)),
    # 2026-03-18 is a Wednesday; the week began on Sunday the 15th
    ('week', datetime(2026, 3, 15), datetime(2026, 3, 19)),
    ('month', datetime(2026, 3, 1), datetime(2026, 3, 19)),
    ('lastMonth', datetime(2026, 2, 1), datetime(2026, 3, 1)),
    ('lifetime', None, datetime(2026, 3, 19)),
])
def test_period_range(period, start, end):
    now = datetime(2026, 3, 18, 15, 30, tzinfo=timezone.utc)
    got_start, got_end = period_range(period, now)
    assert got_end == end.replace(tzinfo=timezone.utc)
    assert got_start == (start.replace(tzinfo=timezone.utc) if start else None)


def test_sunday_starts_its_own_week():
    now = datetime(2026, 3, 15, 8, 0, tzinfo=timezone.utc)
    assert period_range('week', now)[0] == datetime(2026, 3, 15, tzinfo=timezone.utc)
