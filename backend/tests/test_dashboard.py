from fieldledger.routes.dashboard import _percent_change
from tests.test_utils_seed import (
    admin_headers, sub_admin_headers, employee_headers, make_employee, make_product, give_allocation,
)


def _summary(client, headers):
    resp = client.get('/dashboard/summary', headers=headers)
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()


def test_summary_reflects_new_activity(client):
    headers = admin_headers(client)
    before = _summary(client, headers)

    emp = make_employee(holdings_online=25)
    make_product(stock_quantity=4)
    product = make_product(stock_quantity=50)
    give_allocation(emp, product, 3)
    client.post('/mobile/sales', json={
        'items': [{'product_id': product.id, 'quantity': 1, 'price_per_unit': 500}],
        'customer': {'name': 'Meera', 'phone': '9812345678'},
        'payment_method': 'Cash',
    }, headers=employee_headers(client, emp))

    after = _summary(client, headers)
    assert after['todaySales']['total'] - before['todaySales']['total'] == 500
    assert after['todaySales']['count'] - before['todaySales']['count'] == 1
    assert after['monthSales']['total'] - before['monthSales']['total'] == 500
    assert after['lifetimeSales']['total'] - before['lifetimeSales']['total'] == 500
    assert after['holdings']['cash'] - before['holdings']['cash'] == 500
    assert after['holdings']['online'] - before['holdings']['online'] == 25
    assert after['holdings']['total'] == after['holdings']['cash'] + after['holdings']['online']
    assert after['employees']['total'] - before['employees']['total'] == 1
    # the employee logged in, so they count as online
    assert after['employees']['online'] - before['employees']['online'] == 1
    assert after['products']['total'] - before['products']['total'] == 2
    assert after['products']['stock'] - before['products']['stock'] == 54
    assert after['products']['lowStock'] - before['products']['lowStock'] == 1
    assert after['pendingRequests']['total'] == after['pendingRequests']['stock'] + after['pendingRequests']['money']


def test_summary_requires_dashboard_read(client):
    headers = sub_admin_headers(client, 'dash.viewer@example.com', {'dashboard': ['read']})
    assert client.get('/dashboard/summary', headers=headers).status_code == 200
    headers = sub_admin_headers(client, 'no.dash@example.com', {'sales': ['read']})
    assert client.get('/dashboard/summary', headers=headers).status_code == 403


def test_percent_change():
    assert _percent_change(150, 100) == 50
    assert _percent_change(50, 100) == -50
    assert _percent_change(10, 0) == 0
