"""Dashboard figures and spreadsheet exports."""
import calendar
import io
from datetime import date, timedelta

import pandas as pd

from errors import ValidationError
from ledger import parse_date
from models import Product, Transaction, Worker

PERIODS = ('today', 'week', 'month', 'last_month')
EXPORT_FORMATS = {
    'csv': 'text/csv; charset=utf-8',
    'xlsx': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
}


def _month_bounds(day):
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def resolve_period(period='month', date_from=None, date_to=None, today=None):
    """Turn a preset name or an explicit from/to pair into a date range."""
    if date_from and date_to:
        start, end = parse_date(date_from, 'from'), parse_date(date_to, 'to')
        if start > end:
            raise ValidationError('from', 'Start date must not be after end date.')
        return start, end
    if date_from or date_to:
        missing = 'to' if date_from else 'from'
        raise ValidationError(missing, 'A custom range needs both a start and an end date.')
    today = today or date.today()
    period = period or 'month'
    if period == 'today':
        return today, today
    if period == 'week':
        start = today - timedelta(days=today.weekday())  # Monday start
        return start, start + timedelta(days=6)
    if period == 'month':
        return _month_bounds(today)
    if period == 'last_month':
        return _month_bounds(today.replace(day=1) - timedelta(days=1))
    raise ValidationError('period', f'Period must be one of {", ".join(PERIODS)}.')


def _frame(rows):
    data = [{
        'date': t.date,
        'type': t.type,
        'amount': float(t.amount),
        'category': t.category or 'Other',
        'worker_id': t.worker_id,
    } for t in rows]
    return pd.DataFrame(data, columns=['date', 'type', 'amount', 'category', 'worker_id'])


def dashboard_summary(user_id, date_from, date_to):
    rows = (
        Transaction.query.filter(Transaction.user_id == user_id,
                                 Transaction.date >= date_from, Transaction.date <= date_to)
        .order_by(Transaction.date.asc())
        .all()
    )
    df = _frame(rows)
    income = df[df['type'] == 'income']
    expenses = df[df['type'] == 'expense']
    total_income = float(income['amount'].sum())
    total_expenses = float(expenses['amount'].sum())

    # Income per day across the whole range
    daily = income.groupby('date')['amount'].sum()
    chart = [{
        'name': day.strftime('%d %b'),
        'sales': float(daily.get(day.date(), 0.0)),
        'full_date': day.strftime('%Y-%m-%d'),
    } for day in pd.date_range(date_from, date_to, freq='D')]

    by_category = expenses.groupby('category')['amount'].sum().sort_values(ascending=False)
    pie = [{'name': cat, 'value': float(v)} for cat, v in by_category.items() if v > 0]

    products = Product.query.filter_by(user_id=user_id).order_by(Product.stock.asc(), Product.id.asc()).all()
    inventory_bar = [{'name': p.name, 'stock': p.stock} for p in products[:5]]

    workers = Worker.query.filter_by(user_id=user_id).all()
    paid = expenses.dropna(subset=['worker_id']).groupby('worker_id')['amount'].sum()
    paid.index = paid.index.astype(int)  # NaN-bearing columns come back as float
    worker_bar = sorted(
        ({'name': w.name, 'paid': float(paid.get(w.id, 0.0))} for w in workers),
        key=lambda w: w['paid'], reverse=True,
    )
    worker_bar = [w for w in worker_bar[:5] if w['paid'] > 0]

    return {
        'from': date_from.isoformat(),
        'to': date_to.isoformat(),
        'total_income': total_income,
        'total_expenses': total_expenses,
        'net_profit': total_income - total_expenses,
        'chart_data': chart,
        'pie_data': pie,
        'inventory_bar_data': inventory_bar,
        'worker_bar_data': worker_bar,
        'inventory_count': len(products),
        'workers_count': len(workers),
    }


# ---------------------- Exports ----------------------
def _render(df, fmt, sheet_name):
    if fmt == 'csv':
        return df.to_csv(index=False).encode('utf-8')
    buf = io.BytesIO()
    df.to_excel(buf, index=False, sheet_name=sheet_name, engine='openpyxl')
    return buf.getvalue()


def _check_format(fmt):
    if fmt not in EXPORT_FORMATS:
        raise ValidationError('format', 'Export format must be csv or xlsx.')


def export_transactions(user_id, fmt='xlsx'):
    """Return (payload, mimetype, filename) for the shop's transactions."""
    _check_format(fmt)
    rows = Transaction.query.filter_by(user_id=user_id).order_by(Transaction.date.desc(), Transaction.id.desc()).all()
    df = pd.DataFrame([{
        'Date': t.date.isoformat(),
        'Type': t.type,
        'Category': t.category,
        'Amount': float(t.amount),
        'Description': t.description or '',
        'Product': t.product.name if t.product else '-',
        'Worker': t.worker.name if t.worker else '-',
        'Quantity': t.quantity if t.quantity is not None else '-',
        'Payment Method': t.payment_method,
        'Payment Status': t.payment_status,
    } for t in rows], columns=['Date', 'Type', 'Category', 'Amount', 'Description', 'Product',
                               'Worker', 'Quantity', 'Payment Method', 'Payment Status'])
    return _render(df, fmt, 'Transactions'), EXPORT_FORMATS[fmt], f'lekka-transactions.{fmt}'


def export_inventory(user_id, fmt='xlsx'):
    _check_format(fmt)
    rows = Product.query.filter_by(user_id=user_id).order_by(Product.created_at.desc(), Product.id.desc()).all()
    columns = ['name', 'sku', 'stock', 'min_stock_level', 'initial_stock', 'image_url']
    df = pd.DataFrame([{k: p.to_dict()[k] for k in columns} for p in rows], columns=columns)
    return _render(df, fmt, 'Inventory'), EXPORT_FORMATS[fmt], f'lekka-inventory.{fmt}'
