import logging
import os

from flask import Blueprint, Flask, Response, jsonify, request

import inventory
import ledger
import onboarding
import reports
from config import Config
from errors import LekkaError, NotFound
from identity import get_identity_provider, require_acting_user, resolve_acting_user
from ml import assistant
from ml.recommender import generate_recommendations, predict_next_month_expense
from models import db

log = logging.getLogger(__name__)

api = Blueprint('api', __name__)


def create_app(config_object=Config, **overrides):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.update(overrides)
    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    app.extensions['lekka_identity'] = get_identity_provider(app.config['IDENTITY_PROVIDER'])
    db.init_app(app)
    app.register_blueprint(api)
    with app.app_context():
        db.create_all()
    return app


# ---------------------- Helpers ----------------------
def _payload():
    """Request body as a dict, from JSON or a submitted form."""
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


@api.errorhandler(LekkaError)
def handle_lekka_error(exc):
    return jsonify(exc.to_dict()), exc.status


def _download(payload, mimetype, filename):
    return Response(payload, mimetype=mimetype,
                    headers={'Content-Disposition': f'attachment; filename={filename}'})


# ---------------------- Transactions ----------------------
@api.route('/api/transactions', methods=['GET'])
def api_transactions():
    user_id = require_acting_user()
    filters = {
        'search': request.args.get('search'),
        'type': request.args.get('type'),
        'category': request.args.get('category'),
        'status': request.args.get('status'),
        'method': request.args.get('method'),
        'date_from': request.args.get('from'),
        'date_to': request.args.get('to'),
    }
    txs = ledger.list_transactions(user_id, filters)
    return jsonify({
        'transactions': [t.to_dict() for t in txs],
        'totals': ledger.transaction_totals(user_id, visible=txs),
    })


@api.route('/api/transactions', methods=['POST'])
def add_transaction():
    txn = ledger.record_transaction(resolve_acting_user(), _payload())
    return jsonify({'success': True, 'transaction': txn.to_dict()}), 201


@api.route('/api/transactions/<int:txn_id>', methods=['PUT', 'PATCH'])
def edit_transaction(txn_id):
    txn = ledger.update_transaction(require_acting_user(), txn_id, _payload())
    return jsonify({'success': True, 'transaction': txn.to_dict()})


@api.route('/api/transactions/<int:txn_id>', methods=['DELETE'])
def delete_transaction(txn_id):
    ledger.delete_transaction(require_acting_user(), txn_id)
    return jsonify({'success': True, 'message': 'Transaction deleted.'})


# ---------------------- Shop Profile ----------------------
@api.route('/api/onboarding', methods=['POST'])
def api_onboarding():
    profile, seeded = onboarding.onboard(require_acting_user(), _payload())
    return jsonify({
        'success': True,
        'profile': profile.to_dict(),
        'products': [p.to_dict() for p in seeded],
    }), 201


@api.route('/api/profile')
def api_profile():
    profile = onboarding.get_profile(require_acting_user())
    if profile is None:
        raise NotFound('Shop profile not found.')
    return jsonify(profile.to_dict())


# ---------------------- Products ----------------------
@api.route('/api/products', methods=['GET'])
def api_products():
    user_id = require_acting_user()
    products = inventory.list_products(user_id, request.args.get('search', ''),
                                       request.args.get('status', 'all'))
    return jsonify([dict(p.to_dict(), status=inventory.stock_status(p)) for p in products])


@api.route('/api/products', methods=['POST'])
def add_product():
    product = inventory.create_product(require_acting_user(), _payload())
    return jsonify({'success': True, 'product': product.to_dict()}), 201


@api.route('/api/products/<int:product_id>', methods=['PUT', 'PATCH'])
def edit_product(product_id):
    product = inventory.update_product(require_acting_user(), product_id, _payload())
    return jsonify({'success': True, 'product': product.to_dict()})


@api.route('/api/products/<int:product_id>', methods=['DELETE'])
def delete_product(product_id):
    inventory.delete_product(require_acting_user(), product_id)
    return jsonify({'success': True, 'message': 'Product deleted.'})


# ---------------------- Workers ----------------------
@api.route('/api/workers', methods=['GET'])
def api_workers():
    return jsonify(inventory.list_workers(require_acting_user()))


@api.route('/api/workers', methods=['POST'])
def add_worker():
    worker = inventory.create_worker(require_acting_user(), _payload())
    return jsonify({'success': True, 'worker': worker.to_dict()}), 201


@api.route('/api/workers/<int:worker_id>', methods=['PUT', 'PATCH'])
def edit_worker(worker_id):
    worker = inventory.update_worker(require_acting_user(), worker_id, _payload())
    return jsonify({'success': True, 'worker': worker.to_dict()})


@api.route('/api/workers/<int:worker_id>', methods=['DELETE'])
def delete_worker(worker_id):
    inventory.delete_worker(require_acting_user(), worker_id)
    return jsonify({'success': True, 'message': 'Worker deleted.'})


@api.route('/api/workers/<int:worker_id>/pay', methods=['POST'])
def pay_worker(worker_id):
    txn = inventory.pay_worker(require_acting_user(), worker_id, _payload())
    return jsonify({'success': True, 'message': 'Payment recorded successfully!',
                    'transaction': txn.to_dict()}), 201


@api.route('/api/workers/<int:worker_id>/payments')
def api_worker_payments(worker_id):
    txs = inventory.worker_payments(require_acting_user(), worker_id)
    return jsonify([t.to_dict() for t in txs])


# ---------------------- Reports ----------------------
@api.route('/api/summary')
def api_summary():
    user_id = require_acting_user()
    date_from, date_to = reports.resolve_period(
        request.args.get('period', 'month'), request.args.get('from'), request.args.get('to'))
    return jsonify(reports.dashboard_summary(user_id, date_from, date_to))


@api.route('/api/recommendations')
def api_recommendations():
    user_id = require_acting_user()
    recs = generate_recommendations(user_id)
    pred = predict_next_month_expense(user_id)
    return jsonify({'recommendations': recs, 'next_month_expense_prediction': pred})


@api.route('/export/transactions.<fmt>')
def export_transactions(fmt):
    return _download(*reports.export_transactions(require_acting_user(), fmt))


@api.route('/export/inventory.<fmt>')
def export_inventory(fmt):
    return _download(*reports.export_inventory(require_acting_user(), fmt))


# ---------------------- AI Assistant ----------------------
def _context_transactions(body):
    txs = body.get('transactions')
    if txs is None:
        txs = [t.to_dict() for t in ledger.recent_transactions(require_acting_user())]
    return txs


@api.route('/api/analyze', methods=['POST'])
def api_analyze():
    body = request.get_json(silent=True) or {}
    return jsonify(assistant.analyze(_context_transactions(body)))


@api.route('/api/chat', methods=['POST'])
def api_chat():
    body = request.get_json(silent=True) or {}
    return jsonify(assistant.chat(body.get('messages'), _context_transactions(body)))


# ---------------------- Run App ----------------------
if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)), debug=True)
