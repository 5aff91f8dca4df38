from fieldledger.models.product import Product
from tests.test_utils_seed import (
    admin_headers, sub_admin_headers, customer_headers, make_customer, make_product,
)


def _submit(client, headers, product, quantity=2, **extra):
    resp = client.post('/mobile/customer/requests', json={'products': [{'product_id': product.id, 'quantity': quantity}], **extra}, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def test_customer_submits_a_request(client):
    customer = make_customer(address='4 Lake View')
    headers = customer_headers(client, customer)
    vase = make_product(title='Request Vase')
    hidden = make_product(status=Product.STATUS_INACTIVE)

    body = _submit(client, headers, vase, quantity=3, notes='Gift wrap please')
    assert body['status'] == 'pending'
    assert (body['customer_name'], body['customer_phone'], body['customer_address']) == (customer.name, customer.phone, '4 Lake View')
    assert body['products'] == [{'product_id': vase.id, 'title': 'Request Vase', 'quantity': 3}]
    assert [(n['by'], n['content']) for n in body['notes']] == [('customer', 'Gift wrap please')]

    override = _submit(client, headers, vase, name='Front Desk', phone='9988776655')
    assert (override['customer_name'], override['customer_phone']) == ('Front Desk', '9988776655')

    resp = client.post('/mobile/customer/requests', json={'products': [{'product_id': hidden.id, 'quantity': 1}]}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == f'Product {hidden.id} not found or inactive'
    resp = client.post('/mobile/customer/requests', json={'products': []}, headers=headers)
    assert resp.get_json()['error']['detail'] == 'At least one product is required'
    resp = client.post('/mobile/customer/requests', json={'products': [{'product_id': vase.id, 'quantity': 0}]}, headers=headers)
    assert resp.get_json()['error']['detail'] == 'Each product must have valid product ID and quantity'

    own = client.get('/mobile/customer/requests', headers=headers).get_json()
    assert [r['id'] for r in own['data']] == [override['id'], body['id']]
    assert own['counts'] == {'pending': 2, 'ongoing': 0, 'delivered': 0, 'total': 2}


def test_requests_are_private_to_their_customer(client):
    owner = make_customer()
    request_id = _submit(client, customer_headers(client, owner), make_product())['id']
    stranger = customer_headers(client, make_customer(registered=True))
    assert client.get(f'/mobile/customer/requests/{request_id}', headers=stranger).status_code == 404
    assert client.post(f'/mobile/customer/requests/{request_id}/notes', json={'content': 'hi'}, headers=stranger).status_code == 404
    assert client.get('/mobile/customer/requests', headers=stranger).get_json()['data'] == []


def test_customer_notes(client):
    headers = customer_headers(client, make_customer())
    request_id = _submit(client, headers, make_product())['id']
    resp = client.post(f'/mobile/customer/requests/{request_id}/notes', json={'content': '  '}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'Note content is required'
    resp = client.post(f'/mobile/customer/requests/{request_id}/notes', json={'content': 'Deliver after 6pm'}, headers=headers)
    assert resp.status_code == 201 and resp.get_json()['by'] == 'customer'
    notes = client.get(f'/mobile/customer/requests/{request_id}/notes', headers=headers).get_json()['data']
    assert [n['content'] for n in notes] == ['Deliver after 6pm']


def test_admin_update_is_gated_per_part(client):
    request_id = _submit(client, customer_headers(client, make_customer()), make_product())['id']
    status_only = sub_admin_headers(client, 'pr.status@example.com', {'productRequests': ['read', 'updateStatus']})

    resp = client.put(f'/product-requests/{request_id}', json={'status': 'ongoing'}, headers=status_only)
    assert resp.status_code == 200 and resp.get_json()['status'] == 'ongoing'
    assert client.put(f'/product-requests/{request_id}', json={'status': 'shipped'}, headers=status_only).status_code == 400
    assert client.put(f'/product-requests/{request_id}', json={'note': 'Called'}, headers=status_only).status_code == 403
    # a forbidden part rolls back the allowed one
    resp = client.put(f'/product-requests/{request_id}', json={'status': 'delivered', 'customer_details': {'name': 'X'}}, headers=status_only)
    assert resp.status_code == 403
    assert client.get(f'/product-requests/{request_id}', headers=status_only).get_json()['status'] == 'ongoing'

    resp = client.put(f'/product-requests/{request_id}', json={'unknown': 1}, headers=status_only)
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'No valid fields to update'

    editor = sub_admin_headers(client, 'pr.editor@example.com', {'productRequests': ['read', 'update']})
    resp = client.put(f'/product-requests/{request_id}', json={'customer_details': {'name': 'Corrected', 'phone': '9000000009'}}, headers=editor)
    assert resp.status_code == 200
    assert (resp.get_json()['customer_name'], resp.get_json()['customer_phone']) == ('Corrected', '9000000009')
    assert client.delete(f'/product-requests/{request_id}', headers=editor).status_code == 403


def test_admin_notes_are_addressed_by_id(client):
    request_id = _submit(client, customer_headers(client, make_customer()), make_product(), notes='From customer')['id']
    headers = sub_admin_headers(client, 'pr.notes@example.com', {'productRequests': ['read', 'manageNotes']})

    body = client.put(f'/product-requests/{request_id}', json={'note': 'Stock arriving Friday'}, headers=headers).get_json()
    customer_note, admin_note = body['notes']
    assert (admin_note['by'], admin_note['content']) == ('admin', 'Stock arriving Friday')

    url = f'/product-requests/{request_id}/notes'
    resp = client.patch(url, json={'action': 'update', 'note_id': admin_note['id'], 'content': 'Stock arriving Monday'}, headers=headers)
    assert resp.status_code == 200
    assert [n['content'] for n in resp.get_json()['notes']] == ['From customer', 'Stock arriving Monday']
    resp = client.patch(url, json={'action': 'update', 'note_id': admin_note['id'], 'content': ''}, headers=headers)
    assert resp.get_json()['error']['detail'] == 'Content is required for update'
    assert client.patch(url, json={'action': 'archive', 'note_id': admin_note['id']}, headers=headers).status_code == 400
    assert client.patch(url, json={'action': 'delete', 'note_id': 999999}, headers=headers).status_code == 404

    resp = client.patch(url, json={'action': 'delete', 'note_id': customer_note['id']}, headers=headers)
    assert [n['id'] for n in resp.get_json()['notes']] == [admin_note['id']]

    reader = sub_admin_headers(client, 'pr.reader@example.com', {'productRequests': ['read']})
    assert client.patch(url, json={'action': 'delete', 'note_id': admin_note['id']}, headers=reader).status_code == 403


def test_admin_listing_filters_and_delete(client):
    product = make_product()
    customer = make_customer(name='Filter Customer Quill')
    request_id = _submit(client, customer_headers(client, customer), product)['id']
    headers = admin_headers(client)

    body = client.get(f'/product-requests?product_id={product.id}', headers=headers).get_json()
    assert [r['id'] for r in body['data']] == [request_id]
    assert set(body['counts']) == {'pending', 'ongoing', 'delivered', 'total'}
    assert client.get('/product-requests?search=Quill&status=pending', headers=headers).get_json()['data'][0]['id'] == request_id
    assert client.get('/product-requests?status=lost', headers=headers).status_code == 400

    assert client.delete(f'/product-requests/{request_id}', headers=headers).status_code == 200
    assert client.get(f'/product-requests/{request_id}', headers=headers).status_code == 404


def test_deleting_a_product_keeps_requested_lines(client):
    product = make_product(title='Soon Gone')
    request_id = _submit(client, customer_headers(client, make_customer()), product)['id']
    headers = admin_headers(client)
    assert client.delete(f'/products/{product.id}', headers=headers).status_code == 200
    body = client.get(f'/product-requests/{request_id}', headers=headers).get_json()
    assert body['products'] == [{'product_id': None, 'title': 'Soon Gone', 'quantity': 2}]


def test_public_catalogue_lists_active_products_only(client):
    active = make_product(title='Catalogue Lamp Active', stock_quantity=0)
    make_product(title='Catalogue Lamp Hidden', status=Product.STATUS_INACTIVE)
    body = client.get('/mobile/customer/products', query_string={'search': 'Catalogue Lamp'}).get_json()
    assert [p['title'] for p in body['data']] == ['Catalogue Lamp Active']
    assert body['data'][0]['in_stock'] is False and 'price_lowest_selling' not in body['data'][0]
    assert client.get('/mobile/customer/products', query_string={'search': 'Catalogue Lamp', 'in_stock': 'true'}).get_json()['data'] == []
    assert active.id == body['data'][0]['id']
