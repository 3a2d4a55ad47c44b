from flowpay import celery_tasks
from flowpay.models import Store

def test_create_store_command(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['create-store', 'shop-two', 'Shop Two', '--order-start', '5000'])

    assert 'Created store: shop-two' in result.output
    store = Store.query.filter_by(slug='shop-two').one()
    assert store.order_counter == 5000
    assert store.currency == 'ILS'

    again = runner.invoke(args=['create-store', 'shop-two', 'Shop Two'])
    assert 'Store already exists' in again.output

def test_task_status_endpoint(client, store, make_product):
    product = make_product(inventory=1)
    result = celery_tasks.task_check_low_stock.delay(store.id, [[product.id, None]])

    data = client.get(f'/api/task_status/{result.id}').get_json()

    assert data['status'] in ('completed', 'processing')

def test_unknown_store_is_json_404(client):
    response = client.get('/shops/nope/checkout')
    assert response.status_code == 404
    assert response.get_json()['status'] == 'error'

def test_checkout_page_shows_error_reason(client, store):
    data = client.get('/shops/demo/checkout?error=order_not_found').get_json()
    assert data == {'status': 'error', 'store': 'demo', 'error': 'order_not_found'}
