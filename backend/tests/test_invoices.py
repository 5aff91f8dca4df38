from datetime import date
import pytest
from fieldledger.errors import ValidationError, Forbidden
from fieldledger.services.invoices import next_invoice_number, create_invoice
from fieldledger.services.policy import Principal
from tests.test_utils_seed import ensure_super_admin, ensure_sub_admin, admin_headers, sub_admin_headers


def _payload(**overrides):
    data = {
        'date_of_issue': '2026-03-01',
        'due_date': '2026-03-31',
        'customer': {'name': 'Lotus Traders', 'city': 'Pune', 'phone': '9123456780'},
        'items': [
            {'description': 'Brass lamp', 'quantity': 2, 'unit_price': 1250},
            {'description': 'Copper jug', 'quantity': 1, 'unit_price': 999},
        ],
        'tax_rate': 18,
        'discount': 100,
    }
    data.update(overrides)
    return data


def test_invoice_numbers_are_sequential_per_year(session):
    first = next_invoice_number(session, 2031)
    second = next_invoice_number(session, 2031)
    other_year = next_invoice_number(session, 2032)
    session.commit()
    assert first == 'RA-2031-0001'
    assert second == 'RA-2031-0002'
    assert other_year == 'RA-2032-0001'


def test_totals_and_rounding(session):
    root = Principal.from_admin(ensure_super_admin())
    inv = create_invoice(session, root, _payload(), today=date(2033, 5, 1))
    assert inv.invoice_number == 'RA-2033-0001'
    assert inv.subtotal == 3499
    # 18% of 3499 = 629.82, rounded half up
    assert inv.tax_amount == 630
    assert inv.total == 3499 + 630 - 100
    assert inv.amount_due == inv.total
    assert inv.status == 'Draft'
    assert [i.amount for i in inv.items] == [2500, 999]


def test_invalid_invoices(session):
    root = Principal.from_admin(ensure_super_admin())
    with pytest.raises(ValidationError) as exc:
        create_invoice(session, root, _payload(discount=10_000))
    assert exc.value.description == 'Discount cannot exceed invoice total'
    with pytest.raises(ValidationError):
        create_invoice(session, root, _payload(due_date='2026-02-01'))
    with pytest.raises(ValidationError):
        create_invoice(session, root, _payload(items=[]))
    with pytest.raises(ValidationError):
        create_invoice(session, root, _payload(customer={'city': 'Pune'}))
    reader = Principal.from_admin(ensure_sub_admin('invoice.reader@example.com', {'invoices': ['read']}))
    with pytest.raises(Forbidden):
        create_invoice(session, reader, _payload())


def test_invoice_http_crud(client):
    headers = admin_headers(client)
    resp = client.post('/invoices', json=_payload(), headers=headers)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    inv_id = body['id']
    assert body['invoice_number'].startswith('RA-')
    assert body['customer']['city'] == 'Pune'

    resp = client.put(f'/invoices/{inv_id}', json={'status': 'Sent', 'discount': 0}, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['status'] == 'Sent'
    assert resp.get_json()['total'] == 3499 + 630
    assert client.put(f'/invoices/{inv_id}', json={'status': 'Lost'}, headers=headers).status_code == 400

    listing = client.get(f"/invoices?search={body['invoice_number']}", headers=headers).get_json()
    assert [i['id'] for i in listing['data']] == [inv_id]
    assert client.get('/invoices?status=Sent&sort=-total', headers=headers).status_code == 200

    reader = sub_admin_headers(client, 'invoice.viewer@example.com', {'invoices': ['read']})
    assert client.get(f'/invoices/{inv_id}', headers=reader).status_code == 200
    assert client.delete(f'/invoices/{inv_id}', headers=reader).status_code == 403
    assert client.delete(f'/invoices/{inv_id}', headers=headers).status_code == 200
    assert client.get(f'/invoices/{inv_id}', headers=headers).status_code == 404
