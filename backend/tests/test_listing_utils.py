import pytest
from fieldledger.config.pagination import normalize_pagination, DEFAULT_LIMIT, MAX_LIMIT
from tests.test_utils_seed import admin_headers, make_product


def test_normalize_pagination_defaults_and_clamps():
    assert normalize_pagination(None, None) == (DEFAULT_LIMIT, 0)
    assert normalize_pagination('1000', '5') == (MAX_LIMIT, 5)
    assert normalize_pagination('0', '-3') == (1, 0)
    # page wins over offset
    assert normalize_pagination('10', '99', '3') == (10, 20)
    assert normalize_pagination('10', None, '0') == (10, 0)
    with pytest.raises(ValueError):
        normalize_pagination('ten', None)


def test_pagination_meta(client):
    headers = admin_headers(client)
    for i in range(3):
        make_product(title=f'Paged Item {i}')
    body = client.get('/products?search=Paged%20Item&limit=2&offset=0', headers=headers).get_json()
    assert body['pagination'] == {'total': 3, 'limit': 2, 'offset': 0, 'page': 1, 'pages': 2, 'returned': 2}
    body = client.get('/products?search=Paged%20Item&limit=2&page=2', headers=headers).get_json()
    assert body['pagination']['offset'] == 2
    assert body['pagination']['returned'] == 1
    assert client.get('/products?limit=abc', headers=headers).status_code == 400


def test_multi_sort(client):
    headers = admin_headers(client)
    make_product(title='Sorted Charlie', price_base=500, price_lowest_selling=100)
    make_product(title='Sorted Bravo', price_base=500, price_lowest_selling=100)
    make_product(title='Sorted Alpha', price_base=300, price_lowest_selling=100)
    resp = client.get('/products?search=Sorted&sort=-price_base,title', headers=headers)
    assert resp.status_code == 200
    titles = [p['title'] for p in resp.get_json()['data']]
    assert titles == ['Sorted Bravo', 'Sorted Charlie', 'Sorted Alpha']
    resp = client.get('/products?search=Sorted&sort=title,,', headers=headers)
    assert [p['title'] for p in resp.get_json()['data']] == ['Sorted Alpha', 'Sorted Bravo', 'Sorted Charlie']
