import click
from flask.cli import with_appcontext
from .extensions import db
from .models import Store

@click.command('init-db')
@with_appcontext
def init_db_command():
    """기존 데이터를 삭제하고 새로운 테이블을 생성합니다."""
    try:
        db.drop_all()
        db.create_all()
        click.echo('Initialized the database.')
    except Exception as e:
        click.echo(f'Error initializing database: {e}')

@click.command('create-store')
@click.argument('slug')
@click.argument('name')
@click.option('--currency', default='ILS', show_default=True)
@click.option('--order-start', default=1000, show_default=True, help='첫 주문 번호')
@with_appcontext
def create_store_command(slug, name, currency, order_start):
    """스토어를 생성합니다."""
    if Store.query.filter_by(slug=slug).first():
        click.echo(f'Store already exists: {slug}')
        return

    store = Store(slug=slug, store_name=name, currency=currency, order_counter=order_start)
    db.session.add(store)
    db.session.commit()
    click.echo(f'Created store: {slug} (id={store.id})')
