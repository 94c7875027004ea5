"""Products and workers owned by a shop account."""
import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy import func, or_

from errors import Unauthenticated, ValidationError
from ledger import parse_optional_int, record_transaction
from models import DEFAULT_MIN_STOCK, Product, Transaction, Worker, db
from store import commit, get_owned

log = logging.getLogger(__name__)

PRODUCT_IN_USE = (
    'This product is part of existing transactions. You cannot delete it while it '
    'has associated records. Please delete the transactions first.'
)
WORKER_IN_USE = (
    'This worker has associated transactions/payments. You cannot delete their '
    'profile while these records exist.'
)
STOCK_FILTERS = ('all', 'low', 'in', 'out')


def _require_user(user_id):
    if not user_id:
        raise Unauthenticated()


def _name(data):
    name = str(data.get('name') or '').strip()
    if not name:
        raise ValidationError('name', 'Name is required.')
    return name


def _optional_text(data, field):
    value = str(data.get(field) or '').strip()
    return value or None


# ---------------------- Products ----------------------
def clean_product(data):
    stock = parse_optional_int(data, 'stock')
    if stock is None:
        raise ValidationError('stock', 'Stock is required.')
    min_stock = parse_optional_int(data, 'min_stock_level')
    return {
        'name': _name(data),
        'sku': _optional_text(data, 'sku'),
        'stock': stock,
        'min_stock_level': DEFAULT_MIN_STOCK if min_stock is None else min_stock,
        'image_url': _optional_text(data, 'image_url'),
    }


def create_product(user_id, data):
    _require_user(user_id)
    fields = clean_product(data)
    product = Product(user_id=user_id, initial_stock=fields['stock'], **fields)
    db.session.add(product)
    commit('adding product')
    return product


def update_product(user_id, product_id, data):
    """Edit a product. ``initial_stock`` keeps its creation value."""
    _require_user(user_id)
    product = get_owned(Product, product_id, user_id)
    for name, value in clean_product(data).items():
        setattr(product, name, value)
    commit('updating product')
    return product


def delete_product(user_id, product_id):
    _require_user(user_id)
    product = get_owned(Product, product_id, user_id)
    db.session.delete(product)
    commit('deleting product', referential_message=PRODUCT_IN_USE)
    log.info('Deleted product %s', product_id)


def stock_status(product):
    if product.stock <= 0:
        return 'out'
    if product.stock <= product.min_stock_level:
        return 'low'
    return 'in'


def list_products(user_id, search='', status='all'):
    q = Product.query.filter_by(user_id=user_id)
    search = (search or '').strip()
    if search:
        q = q.filter(or_(Product.name.ilike(f'%{search}%'), Product.sku.contains(search)))
    if status == 'low':
        q = q.filter(Product.stock > 0, Product.stock <= Product.min_stock_level)
    elif status == 'in':
        q = q.filter(Product.stock > 0, Product.stock > Product.min_stock_level)
    elif status == 'out':
        q = q.filter(Product.stock <= 0)
    elif status not in (None, '', 'all'):
        raise ValidationError('status', f'Status must be one of {", ".join(STOCK_FILTERS)}.')
    return q.order_by(Product.created_at.desc(), Product.id.desc()).all()


# ---------------------- Workers ----------------------
def clean_worker(data):
    salary = data.get('salary')
    if salary is None or str(salary).strip() == '':
        salary = Decimal('0')
    else:
        try:
            salary = Decimal(str(salary).strip())
        except InvalidOperation:
            raise ValidationError('salary', 'Salary must be a number.') from None
        if not salary.is_finite() or salary < 0:
            raise ValidationError('salary', 'Salary cannot be negative.')
        if salary.as_tuple().exponent < -2:
            raise ValidationError('salary', 'Salary can have at most 2 decimal places.')
    return {
        'name': _name(data),
        'role': _optional_text(data, 'role'),
        'phone': _optional_text(data, 'phone'),
        'salary': salary,
        'image_url': _optional_text(data, 'image_url'),
    }


def create_worker(user_id, data):
    _require_user(user_id)
    worker = Worker(user_id=user_id, **clean_worker(data))
    db.session.add(worker)
    commit('adding worker')
    return worker


def update_worker(user_id, worker_id, data):
    _require_user(user_id)
    worker = get_owned(Worker, worker_id, user_id)
    for name, value in clean_worker(data).items():
        setattr(worker, name, value)
    commit('updating worker')
    return worker


def delete_worker(user_id, worker_id):
    _require_user(user_id)
    worker = get_owned(Worker, worker_id, user_id)
    db.session.delete(worker)
    commit('deleting worker', referential_message=WORKER_IN_USE)
    log.info('Deleted worker %s', worker_id)


def list_workers(user_id):
    """Workers newest first, each with the total paid to them so far."""
    paid_rows = (
        db.session.query(Transaction.worker_id, func.sum(Transaction.amount))
        .filter(Transaction.user_id == user_id, Transaction.type == 'expense',
                Transaction.worker_id.isnot(None))
        .group_by(Transaction.worker_id)
        .all()
    )
    paid = {wid: float(total or 0) for wid, total in paid_rows}
    workers = Worker.query.filter_by(user_id=user_id).order_by(Worker.created_at.desc(), Worker.id.desc()).all()
    return [dict(w.to_dict(), total_paid=paid.get(w.id, 0.0)) for w in workers]


def pay_worker(user_id, worker_id, data):
    """Record a salary payment as an expense/Salary transaction."""
    _require_user(user_id)
    worker = get_owned(Worker, worker_id, user_id)
    return record_transaction(user_id, {
        'type': 'expense',
        'category': 'Salary',
        'description': f'Salary Payment to {worker.name}',
        'amount': data.get('amount'),
        'date': data.get('date'),
        'worker_id': worker.id,
        'payment_method': data.get('payment_method'),
        'payment_status': data.get('payment_status'),
    })


def worker_payments(user_id, worker_id):
    worker = get_owned(Worker, worker_id, user_id)
    return (
        Transaction.query.filter_by(user_id=user_id, worker_id=worker.id)
        .order_by(Transaction.date.desc(), Transaction.id.desc())
        .all()
    )
