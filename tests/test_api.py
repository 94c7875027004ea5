"""End-to-end checks through the Flask routes."""
import json
from unittest import mock

import pytest

from conftest import USER, stock_of
from models import Product, Transaction, db


@pytest.fixture
def shop(login, make_product, make_worker):
    client = login()
    return client, make_product(stock=10), make_worker()


def test_unauthenticated_create_writes_nothing(client, make_product):
    product = make_product(stock=10)
    resp = client.post('/api/transactions', json={
        'type': 'income', 'amount': '30', 'category': 'Sales', 'date': '2026-10-01',
        'product_id': product.id, 'quantity': 3,
    })
    assert resp.status_code == 401
    assert resp.get_json()['error'] == 'unauthenticated'
    assert Transaction.query.count() == 0
    assert stock_of(product.id) == 10


@pytest.mark.parametrize('path', ['/api/transactions', '/api/products', '/api/workers',
                                  '/api/summary', '/export/transactions.csv'])
def test_reads_require_login(client, path):
    assert client.get(path).status_code == 401


def test_create_restock_via_json(shop):
    client, product, _ = shop
    resp = client.post('/api/transactions', json={
        'type': 'expense', 'amount': '500', 'category': 'Inventory', 'date': '2026-10-01',
        'product_id': product.id, 'quantity': 5,
    })
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['success'] is True
    assert body['transaction']['product_name'] == 'Rice 5kg'
    assert body['transaction']['amount'] == 500.0
    assert stock_of(product.id) == 15


def test_create_sale_via_form(shop):
    client, product, _ = shop
    resp = client.post('/api/transactions', data={
        'type': 'income', 'amount': '90', 'category': 'Sales', 'date': '2026-10-01',
        'product_id': str(product.id), 'quantity': '3',
    })
    assert resp.status_code == 201
    assert stock_of(product.id) == 7


def test_validation_error_names_field(shop):
    client, _, _ = shop
    resp = client.post('/api/transactions', json={
        'type': 'expense', 'amount': '9000', 'category': 'Salary', 'date': '2026-10-01',
    })
    assert resp.status_code == 400
    body = resp.get_json()
    assert body == {'success': False, 'error': 'validation_error', 'field': 'worker_id',
                    'message': 'A worker is required for Salary transactions.'}


def test_edit_and_delete_leave_stock(shop):
    client, product, _ = shop
    created = client.post('/api/transactions', json={
        'type': 'income', 'amount': '90', 'category': 'Sales', 'date': '2026-10-01',
        'product_id': product.id, 'quantity': 3,
    }).get_json()['transaction']

    resp = client.put(f"/api/transactions/{created['id']}", json={
        'type': 'income', 'amount': '300', 'category': 'Sales', 'date': '2026-10-01',
        'product_id': product.id, 'quantity': 10,
    })
    assert resp.status_code == 200
    assert resp.get_json()['transaction']['quantity'] == 10
    assert stock_of(product.id) == 7

    assert client.delete(f"/api/transactions/{created['id']}").status_code == 200
    assert stock_of(product.id) == 7


def test_missing_transaction_is_404(shop):
    client, _, _ = shop
    resp = client.delete('/api/transactions/999')
    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'not_found'


def test_list_transactions_with_filters(shop):
    client, product, worker = shop
    client.post('/api/transactions', json={'type': 'income', 'amount': '90', 'category': 'Sales',
                                           'date': '2026-10-01', 'product_id': product.id, 'quantity': 1})
    client.post(f'/api/workers/{worker.id}/pay', json={'amount': '7000', 'date': '2026-10-02'})
    body = client.get('/api/transactions?type=expense').get_json()
    assert [t['category'] for t in body['transactions']] == ['Salary']
    assert body['totals']['income'] == 90.0
    assert body['totals']['visible_total'] == 7000.0


def test_product_delete_guard(shop):
    client, product, _ = shop
    client.post('/api/transactions', json={'type': 'income', 'amount': '90', 'category': 'Sales',
                                           'date': '2026-10-01', 'product_id': product.id, 'quantity': 1})
    resp = client.delete(f'/api/products/{product.id}')
    assert resp.status_code == 409
    body = resp.get_json()
    assert body['error'] == 'referential_error'
    assert 'existing transactions' in body['message']
    assert db.session.get(Product, product.id) is not None


def test_product_crud(login):
    client = login()
    resp = client.post('/api/products', json={'name': 'Ghee', 'sku': 'GH1', 'stock': 4, 'min_stock_level': 5})
    assert resp.status_code == 201
    pid = resp.get_json()['product']['id']
    listed = client.get('/api/products?status=low').get_json()
    assert [(p['name'], p['status']) for p in listed] == [('Ghee', 'low')]
    resp = client.put(f'/api/products/{pid}', json={'name': 'Ghee 1L', 'stock': 20, 'min_stock_level': 5})
    assert resp.get_json()['product']['initial_stock'] == 4
    assert client.delete(f'/api/products/{pid}').status_code == 200


def test_onboarding_and_profile(login):
    client = login()
    assert client.get('/api/profile').status_code == 404
    resp = client.post('/api/onboarding', json={'shop_name': 'Sri Sai Medicals', 'shop_type': 'Medical'})
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['profile'] == {'shop_name': 'Sri Sai Medicals', 'shop_type': 'Medical',
                               'theme_preference': 'classic'}
    assert len(body['products']) == 4
    assert client.get('/api/profile').get_json()['shop_name'] == 'Sri Sai Medicals'
    assert len(client.get('/api/products').get_json()) == 4
    resp = client.post('/api/onboarding', data={'shop_name': 'Shop', 'shop_type': 'Garage'})
    assert resp.status_code == 400
    assert resp.get_json()['field'] == 'shop_type'


def test_onboarding_requires_login(client):
    assert client.post('/api/onboarding', json={'shop_name': 'A', 'shop_type': 'Other'}).status_code == 401


def test_worker_pay_and_history(shop):
    client, _, worker = shop
    resp = client.post(f'/api/workers/{worker.id}/pay', json={'amount': '7000', 'date': '2026-10-02'})
    assert resp.status_code == 201
    history = client.get(f'/api/workers/{worker.id}/payments').get_json()
    assert [h['amount'] for h in history] == [7000.0]
    workers = client.get('/api/workers').get_json()
    assert workers[0]['total_paid'] == 7000.0
    assert client.delete(f'/api/workers/{worker.id}').status_code == 409


def test_other_users_records_are_invisible(login, make_product):
    make_product(user_id='someone-else')
    client = login(USER)
    assert client.get('/api/products').get_json() == []


def test_summary_endpoint(shop):
    client, product, _ = shop
    client.post('/api/transactions', json={'type': 'income', 'amount': '90', 'category': 'Sales',
                                           'date': '2026-10-01', 'product_id': product.id, 'quantity': 1})
    body = client.get('/api/summary?from=2026-10-01&to=2026-10-03').get_json()
    assert body['total_income'] == 90.0
    assert len(body['chart_data']) == 3
    assert client.get('/api/summary?period=decade').status_code == 400
    resp = client.get('/api/summary?from=2026-10-01')
    assert resp.status_code == 400
    assert resp.get_json()['field'] == 'to'


def test_recommendations_endpoint(login):
    body = login().get('/api/recommendations').get_json()
    assert body['next_month_expense_prediction'] == 0.0
    assert body['recommendations']


def test_export_downloads(shop):
    client, _, _ = shop
    resp = client.get('/export/transactions.csv')
    assert resp.status_code == 200
    assert resp.mimetype == 'text/csv'
    assert 'lekka-transactions.csv' in resp.headers['Content-Disposition']
    resp = client.get('/export/inventory.xlsx')
    assert resp.data[:2] == b'PK'
    assert client.get('/export/inventory.pdf').status_code == 400


def test_analyze_uses_recent_transactions(shop):
    client, product, _ = shop
    client.post('/api/transactions', json={'type': 'income', 'amount': '90', 'category': 'Sales',
                                           'date': '2026-10-01', 'product_id': product.id, 'quantity': 1})
    reply = {'english_insight': 'Sales are steady.', 'telugu_insight': 'అమ్మకాలు స్థిరంగా ఉన్నాయి.'}
    with mock.patch('ml.assistant._generate', return_value='```json\n' + json.dumps(reply) + '\n```') as gen:
        resp = client.post('/api/analyze', json={})
    assert resp.status_code == 200
    assert resp.get_json() == reply
    prompt = gen.call_args[0][0][0]['parts'][0]['text']
    assert 'Sales' in prompt


def test_analyze_rejects_empty_list(client):
    resp = client.post('/api/analyze', json={'transactions': []})
    assert resp.status_code == 400
    assert resp.get_json()['message'] == 'No transactions provided'


def test_chat_endpoint(client):
    with mock.patch('ml.assistant._generate', return_value='Profit is up.'):
        resp = client.post('/api/chat', json={'messages': [{'role': 'user', 'content': 'How is business?'}],
                                              'transactions': []})
    assert resp.get_json() == {'role': 'assistant', 'content': 'Profit is up.'}
