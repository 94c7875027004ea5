"""
First-run shop setup.

Onboarding stores the shop's profile and, the first time only, seeds the
inventory with a starter catalogue for the chosen shop type. Running it
again updates the profile and leaves products alone.
"""
import logging

from errors import Unauthenticated, ValidationError
from models import SHOP_THEMES, Product, Profile, db
from store import commit

log = logging.getLogger(__name__)

# (name, sku, stock, min_stock_level)
DEFAULT_PRODUCTS = {
    'Kirana': [
        ('Sona Masoori Rice (25kg)', 'RICE-001', 10, 5),
        ('Toor Dal (1kg)', 'DAL-001', 50, 10),
        ('Sunflower Oil (1L)', 'OIL-001', 30, 10),
        ('Sugar (1kg)', 'SUG-001', 100, 20),
    ],
    'Medical': [
        ('Paracetamol 650mg', 'MED-001', 500, 100),
        ('Vitamin C Tablets', 'MED-002', 200, 50),
        ('N95 Mask', 'MSK-001', 100, 20),
        ('Hand Sanitizer (100ml)', 'SAN-001', 50, 10),
    ],
    'Restaurant': [
        ('Chicken Biryani', 'FD-001', 20, 5),
        ('Veg Meals', 'FD-002', 30, 10),
        ('Coca Cola (500ml)', 'DRK-001', 48, 12),
        ('Mineral Water', 'DRK-002', 100, 20),
    ],
    'Other': [
        ('Notebook (Long)', 'STAT-001', 200, 50),
        ('Ball Pen (Blue)', 'STAT-002', 500, 100),
    ],
}


def clean_profile(data):
    shop_name = str(data.get('shop_name') or '').strip()
    if not shop_name:
        raise ValidationError('shop_name', 'Shop name is required.')
    shop_type = str(data.get('shop_type') or '').strip()
    if shop_type not in SHOP_THEMES:
        raise ValidationError('shop_type', f'Shop type must be one of {", ".join(SHOP_THEMES)}.')
    return {
        'shop_name': shop_name,
        'shop_type': shop_type,
        'theme_preference': SHOP_THEMES[shop_type],
    }


def get_profile(user_id):
    if not user_id:
        raise Unauthenticated()
    return Profile.query.filter_by(user_id=user_id).first()


def onboard(user_id, data):
    """Create or update the shop profile; seed starter products on first run.

    Returns ``(profile, seeded_products)``. The profile and the seeded
    products are written in one commit.
    """
    if not user_id:
        raise Unauthenticated()
    fields = clean_profile(data)
    profile = Profile.query.filter_by(user_id=user_id).first()
    seeded = []
    if profile is None:
        profile = Profile(user_id=user_id, **fields)
        db.session.add(profile)
        for name, sku, stock, min_stock in DEFAULT_PRODUCTS[fields['shop_type']]:
            seeded.append(Product(user_id=user_id, name=name, sku=sku, stock=stock,
                                  min_stock_level=min_stock, initial_stock=stock))
        db.session.add_all(seeded)
    else:
        for name, value in fields.items():
            setattr(profile, name, value)
    commit('saving shop profile')
    log.info('Onboarded %s as %s, seeded %d products', user_id, fields['shop_type'], len(seeded))
    return profile, seeded
