"""
Transaction recording and the stock movements it drives.

A transaction that names a product and a quantity moves that product's
stock when it is created: an expense is a restock and adds the quantity,
an income is a sale and subtracts it. Stock has no floor.

Editing a transaction leaves stock alone unless ``STOCK_ADJUST_ON_EDIT`` is
set, and deleting a transaction never reverses its movement.

The transaction insert and the stock update are separate commits unless
``STOCK_ADJUSTMENT_ATOMIC`` is set. In the default mode a failed stock update
leaves the transaction saved and is reported as a ``PersistenceError``.
"""
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy import case, func, or_
from sqlalchemy.exc import SQLAlchemyError

from errors import NotFound, PersistenceError, Unauthenticated, ValidationError
from models import (CATEGORIES, PAYMENT_METHODS, PAYMENT_STATUSES,
                    PRODUCT_CATEGORIES, TRANSACTION_TYPES, WORKER_CATEGORIES,
                    Product, Transaction, Worker, db)
from store import commit, get_owned, store_message

log = logging.getLogger(__name__)

# Integer columns are 32-bit on PostgreSQL
INT_MIN, INT_MAX = -2**31, 2**31 - 1
MAX_AMOUNT = Decimal('1e10')


# ---------------------- Input cleaning ----------------------
def _text(data, field):
    value = data.get(field)
    if value is None:
        return ''
    return str(value).strip()


def parse_amount(value, field='amount'):
    if value is None or str(value).strip() == '':
        raise ValidationError(field, 'Amount is required.')
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(field, 'Amount must be a number.') from None
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(field, 'Amount must be greater than zero.')
    # stored as Numeric(12, 2)
    if amount.as_tuple().exponent < -2:
        raise ValidationError(field, 'Amount can have at most 2 decimal places.')
    if amount >= MAX_AMOUNT:
        raise ValidationError(field, 'Amount is too large.')
    return amount


def parse_date(value, field='date'):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None or str(value).strip() == '':
        raise ValidationError(field, 'Date is required.')
    try:
        return datetime.strptime(str(value).strip(), '%Y-%m-%d').date()
    except ValueError:
        raise ValidationError(field, 'Invalid date format, expected YYYY-MM-DD.') from None


def parse_optional_int(data, field):
    value = data.get(field)
    if value is None or str(value).strip() == '':
        return None
    if isinstance(value, bool):
        raise ValidationError(field, f'{field} must be a whole number.')
    try:
        number = int(str(value).strip())
    except ValueError:
        raise ValidationError(field, f'{field} must be a whole number.') from None
    if not INT_MIN <= number <= INT_MAX:
        raise ValidationError(field, f'{field} is out of range.')
    return number


def clean_transaction(user_id, data):
    """Validate a submitted transaction and return the fields to persist."""
    ttype = _text(data, 'type')
    if ttype not in TRANSACTION_TYPES:
        raise ValidationError('type', 'Type must be income or expense.')

    amount = parse_amount(data.get('amount'))

    category = _text(data, 'category')
    if not category:
        raise ValidationError('category', 'Category is required.')
    if category not in CATEGORIES[ttype]:
        raise ValidationError('category', f'Category "{category}" is not valid for {ttype} transactions.')

    tdate = parse_date(data.get('date'))

    payment_method = _text(data, 'payment_method') or 'Cash'
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError('payment_method', 'Payment method must be Cash, UPI or Other.')
    payment_status = _text(data, 'payment_status') or 'Paid'
    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError('payment_status', 'Payment status must be Paid or Pending.')

    product_id = quantity = worker_id = None
    if category in PRODUCT_CATEGORIES:
        product_id = parse_optional_int(data, 'product_id')
        if product_id is None:
            raise ValidationError('product_id', f'A product is required for {category} transactions.')
        quantity = parse_optional_int(data, 'quantity')
        if quantity is None:
            raise ValidationError('quantity', f'A quantity is required for {category} transactions.')
        if quantity <= 0:
            raise ValidationError('quantity', 'Quantity must be greater than zero.')
        if Product.query.filter_by(id=product_id, user_id=user_id).first() is None:
            raise ValidationError('product_id', 'Unknown product.')
    if category in WORKER_CATEGORIES:
        worker_id = parse_optional_int(data, 'worker_id')
        if worker_id is None:
            raise ValidationError('worker_id', 'A worker is required for Salary transactions.')
        if Worker.query.filter_by(id=worker_id, user_id=user_id).first() is None:
            raise ValidationError('worker_id', 'Unknown worker.')

    return {
        'type': ttype,
        'amount': amount,
        'category': category,
        'description': _text(data, 'description'),
        'date': tdate,
        'product_id': product_id,
        'quantity': quantity,
        'worker_id': worker_id,
        'payment_method': payment_method,
        'payment_status': payment_status,
    }


# ---------------------- Stock movements ----------------------
def stock_delta(txn_type, quantity):
    """Buying goods raises stock, selling lowers it."""
    return quantity if txn_type == 'expense' else -quantity


def _movement(txn_type, product_id, quantity):
    if product_id is None or not quantity:
        return None
    return product_id, stock_delta(txn_type, quantity)


def _apply_movement(user_id, product_id, delta, action):
    # stock arithmetic runs in the database, never on a cached product row
    try:
        updated = (
            Product.query.filter_by(id=product_id, user_id=user_id)
            .update({Product.stock: Product.stock + delta}, synchronize_session=False)
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        log.error('%s: stock update for product %s failed: %s', action, product_id, store_message(exc))
        raise PersistenceError(f'Error {action}: {store_message(exc)}') from exc
    if not updated:
        db.session.rollback()
        raise NotFound(f'Product {product_id} not found.')
    log.info('Stock of product %s moved by %+d (%s)', product_id, delta, action)


# ---------------------- Operations ----------------------
def record_transaction(user_id, data):
    if not user_id:
        raise Unauthenticated('Please login to add transactions.')
    fields = clean_transaction(user_id, data)
    txn = Transaction(user_id=user_id, **fields)
    movement = _movement(fields['type'], fields['product_id'], fields['quantity'])
    db.session.add(txn)

    if movement and current_app.config.get('STOCK_ADJUSTMENT_ATOMIC', False):
        _apply_movement(user_id, *movement, action='adding transaction')
        commit('adding transaction')
        return txn

    commit('adding transaction')
    if movement:
        txn_id = txn.id
        try:
            _apply_movement(user_id, *movement, action='adjusting stock')
            commit('adjusting stock')
        except PersistenceError as exc:
            log.error('Transaction %s saved without its stock movement', txn_id)
            raise PersistenceError(
                f'Transaction {txn_id} was saved but the stock of product {movement[0]} '
                f'was not adjusted. {exc.message}'
            ) from exc
    return txn


def update_transaction(user_id, txn_id, data):
    if not user_id:
        raise Unauthenticated()
    txn = get_owned(Transaction, txn_id, user_id)
    fields = clean_transaction(user_id, data)
    old = _movement(txn.type, txn.product_id, txn.quantity)
    new = _movement(fields['type'], fields['product_id'], fields['quantity'])

    for name, value in fields.items():
        setattr(txn, name, value)

    if current_app.config.get('STOCK_ADJUST_ON_EDIT', False):
        if old:
            _apply_movement(user_id, old[0], -old[1], action='updating transaction')
        if new:
            _apply_movement(user_id, *new, action='updating transaction')
    commit('updating transaction')
    return txn


def delete_transaction(user_id, txn_id):
    if not user_id:
        raise Unauthenticated()
    txn = get_owned(Transaction, txn_id, user_id)
    db.session.delete(txn)
    commit(
        'deleting transaction',
        referential_message='This transaction has dependent records and cannot be deleted.',
    )


# ---------------------- Queries ----------------------
def list_transactions(user_id, filters=None):
    """User's transactions, newest first, narrowed by the dashboard filters."""
    filters = filters or {}
    q = (
        Transaction.query.filter(Transaction.user_id == user_id)
        .outerjoin(Product, Transaction.product_id == Product.id)
        .outerjoin(Worker, Transaction.worker_id == Worker.id)
    )

    search = (filters.get('search') or '').strip()
    if search:
        pattern = f'%{search}%'
        q = q.filter(or_(
            Transaction.description.ilike(pattern),
            Transaction.category.ilike(pattern),
            Product.name.ilike(pattern),
            Worker.name.ilike(pattern),
        ))

    for key, column in (('type', Transaction.type), ('category', Transaction.category),
                        ('status', Transaction.payment_status), ('method', Transaction.payment_method)):
        value = filters.get(key)
        if value and value != 'all':
            q = q.filter(column == value)

    if filters.get('date_from'):
        q = q.filter(Transaction.date >= parse_date(filters['date_from'], 'from'))
    if filters.get('date_to'):
        q = q.filter(Transaction.date <= parse_date(filters['date_to'], 'to'))

    return q.order_by(Transaction.date.desc(), Transaction.id.desc()).all()


def transaction_totals(user_id, visible=None):
    totals = db.session.query(
        func.sum(case((Transaction.type == 'income', Transaction.amount), else_=0)).label('income'),
        func.sum(case((Transaction.type == 'expense', Transaction.amount), else_=0)).label('expense'),
    ).filter(Transaction.user_id == user_id).first()
    income = float(totals.income or 0)
    expense = float(totals.expense or 0)
    result = {'income': income, 'expense': expense, 'balance': income - expense}
    if visible is not None:
        result['visible_total'] = float(sum(Decimal(t.amount) for t in visible))
    return result


def recent_transactions(user_id, limit=100):
    return (
        Transaction.query.filter_by(user_id=user_id)
        .order_by(Transaction.date.desc(), Transaction.id.desc())
        .limit(limit)
        .all()
    )
