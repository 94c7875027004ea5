import pytest

import inventory
import onboarding
from conftest import OTHER_USER, USER
from errors import Unauthenticated, ValidationError
from models import Product, Profile


class TestOnboard:

    def test_first_run_creates_profile_and_seeds_catalogue(self, app):
        profile, seeded = onboarding.onboard(USER, {'shop_name': 'Lakshmi Stores', 'shop_type': 'Kirana'})
        assert profile.shop_name == 'Lakshmi Stores'
        assert profile.theme_preference == 'agri'
        assert [p.sku for p in seeded] == ['RICE-001', 'DAL-001', 'OIL-001', 'SUG-001']

        rice = Product.query.filter_by(user_id=USER, sku='RICE-001').one()
        assert (rice.stock, rice.initial_stock, rice.min_stock_level) == (10, 10, 5)
        assert inventory.stock_status(rice) == 'low'

    @pytest.mark.parametrize('shop_type,theme,count', [
        ('Medical', 'classic', 4),
        ('Restaurant', 'sunset', 4),
        ('Other', 'royal', 2),
    ])
    def test_catalogue_follows_shop_type(self, app, shop_type, theme, count):
        profile, seeded = onboarding.onboard(USER, {'shop_name': 'Shop', 'shop_type': shop_type})
        assert profile.theme_preference == theme
        assert len(seeded) == count
        assert Product.query.filter_by(user_id=USER).count() == count

    def test_second_run_updates_profile_without_reseeding(self, app):
        onboarding.onboard(USER, {'shop_name': 'Lakshmi Stores', 'shop_type': 'Kirana'})
        profile, seeded = onboarding.onboard(USER, {'shop_name': 'Lakshmi Medicals', 'shop_type': 'Medical'})
        assert seeded == []
        assert Profile.query.count() == 1
        assert profile.shop_type == 'Medical'
        assert profile.theme_preference == 'classic'
        assert Product.query.filter_by(user_id=USER).count() == 4

    def test_profiles_are_per_user(self, app):
        onboarding.onboard(USER, {'shop_name': 'A', 'shop_type': 'Other'})
        assert onboarding.get_profile(OTHER_USER) is None
        assert onboarding.get_profile(USER).shop_name == 'A'

    @pytest.mark.parametrize('data,field', [
        ({'shop_type': 'Kirana'}, 'shop_name'),
        ({'shop_name': '   ', 'shop_type': 'Kirana'}, 'shop_name'),
        ({'shop_name': 'Shop'}, 'shop_type'),
        ({'shop_name': 'Shop', 'shop_type': 'Bakery'}, 'shop_type'),
    ])
    def test_invalid_profile(self, app, data, field):
        with pytest.raises(ValidationError) as excinfo:
            onboarding.onboard(USER, data)
        assert excinfo.value.field == field
        assert Profile.query.count() == 0
        assert Product.query.count() == 0

    def test_requires_user(self, app):
        with pytest.raises(Unauthenticated):
            onboarding.onboard(None, {'shop_name': 'Shop', 'shop_type': 'Other'})
        with pytest.raises(Unauthenticated):
            onboarding.get_profile('')
