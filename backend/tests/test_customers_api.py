from sqlalchemy import func
from fieldledger import get_db
from fieldledger.models.audit import AuditLog
from fieldledger.models.customer import Customer
from fieldledger.models.product_request import ProductRequest
from tests.test_utils_seed import (
    admin_headers, sub_admin_headers, employee_headers, customer_headers, bearer,
    make_customer, make_employee, make_product,
)


def test_guest_sign_in_creates_then_recognises_the_device(client):
    resp = client.post('/mobile/customer/auth/guest', json={'device_id': 'pixel-guest-1'})
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'Name and phone are required for new account'
    assert client.post('/mobile/customer/auth/guest', json={'name': 'Asha'}).get_json()['error']['detail'] == 'Device ID is required'

    resp = client.post('/mobile/customer/auth/guest', json={'device_id': 'pixel-guest-1', 'name': 'Asha', 'phone': '9123456780'})
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body['is_new_user'] is True
    assert body['customer']['auth_type'] == 'guest' and body['customer']['email'] is None

    again = client.post('/mobile/customer/auth/guest', json={'device_id': 'pixel-guest-1', 'address': '12 MG Road'})
    assert again.get_json()['is_new_user'] is False
    assert again.get_json()['customer']['id'] == body['customer']['id']
    assert again.get_json()['customer']['address'] == '12 MG Road'

    profile = client.get('/mobile/customer/profile', headers=bearer(again.get_json()['access_token']))
    assert profile.status_code == 200 and profile.get_json()['name'] == 'Asha'


def test_guest_phone_must_be_ten_digits(client):
    resp = client.post('/mobile/customer/auth/guest', json={'device_id': 'pixel-guest-2', 'name': 'Ravi', 'phone': '12345'})
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'phone must be a 10-digit number'


def test_register_and_login(client):
    payload = {'email': 'Meera@Example.com', 'password': 'shop-pass', 'name': 'Meera', 'phone': '9000011111'}
    resp = client.post('/mobile/customer/auth/register', json=payload)
    assert resp.status_code == 201, resp.get_json()
    assert resp.get_json()['customer']['email'] == 'meera@example.com'
    assert resp.get_json()['customer']['auth_type'] == 'registered'

    dup = client.post('/mobile/customer/auth/register', json={**payload, 'email': 'MEERA@example.com'})
    assert dup.status_code == 409
    assert dup.get_json()['error']['detail'] == 'Email is already registered'

    short = client.post('/mobile/customer/auth/register', json={**payload, 'email': 'other@example.com', 'password': 'abc'})
    assert short.status_code == 400
    missing = client.post('/mobile/customer/auth/register', json={'email': 'x@example.com', 'password': 'shop-pass'})
    assert missing.get_json()['error']['detail'] == 'Email, password, name, and phone are required'
    bad_email = client.post('/mobile/customer/auth/register', json={**payload, 'email': 'not-an-email'})
    assert bad_email.get_json()['error']['detail'] == 'Please enter a valid email address'

    ok = client.post('/mobile/customer/auth/login', json={'email': 'meera@example.com', 'password': 'shop-pass'})
    assert ok.status_code == 200
    wrong = client.post('/mobile/customer/auth/login', json={'email': 'meera@example.com', 'password': 'nope-nope'})
    assert wrong.status_code == 401
    assert wrong.get_json()['error']['detail'] == 'Invalid email or password'


def test_customer_routes_reject_other_token_kinds(client):
    assert client.get('/mobile/customer/profile').status_code == 401
    assert client.get('/mobile/customer/profile', headers=admin_headers(client)).status_code == 403
    assert client.get('/mobile/customer/profile', headers=employee_headers(client, make_employee())).status_code == 403
    # and a customer token opens neither the employee app nor the dashboard
    headers = customer_headers(client, make_customer())
    assert client.get('/mobile/profile', headers=headers).status_code == 403
    assert client.get('/customers', headers=headers).status_code == 403


def test_admin_customer_listing_and_permissions(client):
    guest = make_customer(name='Listing Guest Zeta')
    registered = make_customer(registered=True, name='Listing Registered Zeta')
    headers = admin_headers(client)

    body = client.get('/customers?search=Listing&authType=registered', headers=headers).get_json()
    assert [c['id'] for c in body['data']] == [registered.id]
    assert client.get('/customers?authType=vip', headers=headers).status_code == 400
    detail = client.get(f'/customers/{guest.id}', headers=headers).get_json()
    assert detail['request_count'] == 0 and detail['device_id'] == guest.device_id

    reader = sub_admin_headers(client, 'customer.reader@example.com', {'customers': ['read']})
    assert client.get(f'/customers/{guest.id}', headers=reader).status_code == 200
    assert client.put(f'/customers/{guest.id}', json={'name': 'Renamed'}, headers=reader).status_code == 403
    assert client.delete(f'/customers/{guest.id}', headers=reader).status_code == 403
    nobody = sub_admin_headers(client, 'customer.nobody@example.com', {'products': ['read']})
    assert client.get('/customers', headers=nobody).status_code == 403


def test_admin_updates_customer_contact_details(client):
    taken = make_customer(registered=True)
    customer = make_customer(registered=True)
    old_name = customer.name
    headers = sub_admin_headers(client, 'customer.editor@example.com', {'customers': ['read', 'update']})

    resp = client.put(f'/customers/{customer.id}', json={'name': 'Updated Name', 'phone': '9876543210', 'auth_type': 'guest'}, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert (body['name'], body['phone'], body['auth_type']) == ('Updated Name', '9876543210', 'registered')

    clash = client.put(f'/customers/{customer.id}', json={'email': taken.email.upper()}, headers=headers)
    assert clash.status_code == 409
    cleared = client.put(f'/customers/{customer.id}', json={'email': None}, headers=headers)
    assert cleared.get_json()['error']['detail'] == 'Registered customers need an email'

    log = get_db().query(AuditLog).filter_by(action='CUSTOMER.UPDATE', entity_id=str(customer.id)).one()
    assert log.meta['changes']['name'] == {'before': old_name, 'after': 'Updated Name'}


def test_deleting_a_customer_removes_their_requests(client):
    customer = make_customer()
    product = make_product()
    headers = customer_headers(client, customer)
    for _ in range(2):
        resp = client.post('/mobile/customer/requests', json={'products': [{'product_id': product.id, 'quantity': 1}], 'notes': 'asap'}, headers=headers)
        assert resp.status_code == 201, resp.get_json()
    admin = admin_headers(client)
    assert client.get(f'/customers/{customer.id}', headers=admin).get_json()['request_count'] == 2

    resp = client.delete(f'/customers/{customer.id}', headers=admin)
    assert resp.status_code == 200
    assert resp.get_json() == {'deleted': True, 'deleted_requests': 2}
    session = get_db()
    assert session.query(func.count(ProductRequest.id)).filter(ProductRequest.customer_id == customer.id).scalar() == 0
    assert session.query(func.count(Customer.id)).filter(Customer.id == customer.id).scalar() == 0
    assert client.get(f'/customers/{customer.id}', headers=admin).status_code == 404
