from tests.test_utils_seed import admin_headers, make_employee, bearer


def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    # Flask default 404 should be wrapped by error handler
    assert resp.status_code == 404
    body = resp.get_json()
    assert 'error' in body
    assert body['error']['status'] == 404
    assert 'detail' in body['error']


def test_missing_and_garbage_tokens_are_401(client):
    resp = client.get('/products')
    assert resp.status_code == 401
    assert resp.get_json()['error']['detail'] == 'Authentication required'
    resp = client.get('/products', headers=bearer('not-a-jwt'))
    assert resp.status_code == 401
    assert resp.get_json()['error']['title'] == 'Unauthorized'


def test_internal_error_shape(client, monkeypatch):
    headers = admin_headers(client)
    # Monkeypatch AFTER login so auth works; only break the product listing
    import fieldledger.routes.products as products_mod

    class BoomSession:
        def query(self, *a, **k):
            raise RuntimeError('explode')

    monkeypatch.setattr(products_mod, 'get_db', lambda: BoomSession())
    resp = client.get('/products', headers=headers)
    assert resp.status_code == 500
    body = resp.get_json()
    assert body['error']['status'] == 500
    assert body['error']['title'] == 'Internal Server Error'
    assert body['error']['detail'] == 'Unexpected error'


def test_domain_error_carries_extra_fields(client):
    headers = admin_headers(client)
    emp = make_employee(holdings_cash=100)
    resp = client.post('/requests/money', json={'employee_id': emp.id, 'amount': 150, 'method': 'Cash'}, headers=headers)
    assert resp.status_code == 409
    err = resp.get_json()['error']
    assert err['title'] == 'Insufficient Holdings'
    assert err['detail'] == 'Insufficient cash holdings. Available: 100'
    assert err['method'] == 'Cash'
    assert err['available'] == 100
    assert err['requested'] == 150
    assert err['shortfall'] == 50


def test_validation_errors_are_400(client):
    headers = admin_headers(client)
    resp = client.get('/products?sort=-colour', headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'Invalid sort field colour'
    resp = client.get('/products?status=Archived', headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'status invalid'
