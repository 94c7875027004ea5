import sqlite3
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()

TRANSACTION_TYPES = ('income', 'expense')
CATEGORIES = {
    'income': ('Sales', 'Service', 'Other'),
    'expense': ('Inventory', 'Salary', 'Rent', 'Utilities', 'Marketing', 'Other'),
}
PRODUCT_CATEGORIES = ('Inventory', 'Sales')
WORKER_CATEGORIES = ('Salary',)
PAYMENT_METHODS = ('Cash', 'UPI', 'Other')
PAYMENT_STATUSES = ('Paid', 'Pending')
DEFAULT_MIN_STOCK = 10
SHOP_THEMES = {'Kirana': 'agri', 'Medical': 'classic', 'Restaurant': 'sunset', 'Other': 'royal'}


@event.listens_for(Engine, 'connect')
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores FOREIGN KEY clauses unless asked per connection
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


def _money(value):
    return float(value) if value is not None else None


class Product(db.Model):
    __tablename__ = 'products'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    sku = db.Column(db.String(100), nullable=True)
    stock = db.Column(db.Integer, nullable=False, default=0)  # may go negative
    min_stock_level = db.Column(db.Integer, nullable=False, default=DEFAULT_MIN_STOCK)
    initial_stock = db.Column(db.Integer, nullable=False, default=0)
    image_url = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'sku': self.sku or '',
            'stock': self.stock,
            'min_stock_level': self.min_stock_level,
            'initial_stock': self.initial_stock,
            'image_url': self.image_url,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Worker(db.Model):
    __tablename__ = 'workers'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(100), nullable=True)
    phone = db.Column(db.String(30), nullable=True)
    salary = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    image_url = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'role': self.role or '',
            'phone': self.phone or '',
            'salary': _money(self.salary),
            'image_url': self.image_url,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Transaction(db.Model):
    __tablename__ = 'transactions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False)  # 'income' or 'expense'
    amount = db.Column(db.Numeric(12, 2), nullable=False)  # always positive
    category = db.Column(db.String(50), nullable=False)
    description = db.Column(db.Text, nullable=True)
    date = db.Column(db.Date, nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=True)
    worker_id = db.Column(db.Integer, db.ForeignKey('workers.id'), nullable=True)
    quantity = db.Column(db.Integer, nullable=True)
    payment_method = db.Column(db.String(20), nullable=False, default='Cash')
    payment_status = db.Column(db.String(20), nullable=False, default='Paid')
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    # many-to-one only: deleting a product must reach the database untouched
    product = db.relationship('Product', lazy='joined')
    worker = db.relationship('Worker', lazy='joined')

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'amount': _money(self.amount),
            'category': self.category,
            'description': self.description or '',
            'date': self.date.isoformat(),
            'product_id': self.product_id,
            'product_name': self.product.name if self.product else None,
            'worker_id': self.worker_id,
            'worker_name': self.worker.name if self.worker else None,
            'quantity': self.quantity,
            'payment_method': self.payment_method,
            'payment_status': self.payment_status,
        }


class Profile(db.Model):
    __tablename__ = 'profiles'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, unique=True)
    shop_name = db.Column(db.String(200), nullable=False)
    shop_type = db.Column(db.String(50), nullable=False)
    theme_preference = db.Column(db.String(50), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            'shop_name': self.shop_name,
            'shop_type': self.shop_type,
            'theme_preference': self.theme_preference,
        }
