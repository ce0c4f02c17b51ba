"""Customer and product catalogue service tests."""

from decimal import Decimal

import pytest

from karat.services import customer_service, pricing_service, product_service
from karat.services.errors import ConflictError, InvalidInputError, NotFoundError


class TestCustomers:

    def test_create_and_get(self, db_session, shop):
        customer = customer_service.create_customer(
            shop.id, "  Meera Iyer ", "9822222222", email="meera@example.com", customer_type="VIP",
        )

        assert customer.name == "Meera Iyer"
        assert customer.customer_type == "VIP"
        assert customer_service.get_customer(customer.id, shop_id=shop.id).phone == "9822222222"

    def test_phone_unique_per_shop(self, shop, other_shop, customer):
        with pytest.raises(ConflictError) as exc:
            customer_service.create_customer(shop.id, "Someone Else", customer.phone)
        assert exc.value.details["customer_id"] == customer.id

        # Same phone is fine in another shop
        assert customer_service.create_customer(other_shop.id, "Someone Else", customer.phone).id

    @pytest.mark.parametrize(
        "name,phone,extra",
        [
            ("A", "9822222222", {}),
            ("Meera", "98222", {}),
            ("Meera", "98222x2222", {}),
            ("Meera", 9822222222, {}),
            ("Meera", "9822222222", {"email": "not-an-email"}),
            ("Meera", "9822222222", {"customer_type": "GOLD_CLUB"}),
        ],
    )
    def test_rejects_bad_input(self, shop, name, phone, extra):
        with pytest.raises(InvalidInputError):
            customer_service.create_customer(shop.id, name, phone, **extra)

    def test_get_from_other_shop(self, other_shop, customer):
        with pytest.raises(NotFoundError):
            customer_service.get_customer(customer.id, shop_id=other_shop.id)

    def test_search(self, shop, customer):
        customer_service.create_customer(shop.id, "Meera Iyer", "9822222222")

        assert [c.name for c in customer_service.list_customers(shop.id, search="meera")] == ["Meera Iyer"]
        assert [c.id for c in customer_service.list_customers(shop.id, search="98000")] == [customer.id]
        assert len(customer_service.list_customers(shop.id)) == 2


class TestProducts:

    def _create(self, shop, **overrides):
        fields = {
            "sku": "RING-22K-014",
            "name": "Gold Ring",
            "metal_type": "GOLD",
            "purity": "22k",
            "net_weight": "4.120",
            "gross_weight": "4.300",
            "wastage_percent": "8.00",
            "making_charges": "1200.00",
        }
        fields.update(overrides)
        return product_service.create_product(shop.id, **fields)

    def test_create(self, db_session, shop):
        product = self._create(shop)

        assert product.purity == "22K"
        assert product.net_weight == Decimal("4.120")
        assert product.stone_value == Decimal("0.00")
        assert product_service.get_product(product.id, shop_id=shop.id).sku == "RING-22K-014"

    def test_sku_unique_per_shop(self, shop, product):
        with pytest.raises(ConflictError):
            self._create(shop, sku=product.sku)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"sku": ""},
            {"metal_type": "COPPER"},
            {"net_weight": "0"},
            {"net_weight": "4.1205"},
            {"gross_weight": "4.000"},
            {"wastage_percent": "100.01"},
            {"making_charges": "-1"},
            {"reorder_level": -1},
        ],
    )
    def test_rejects_bad_input(self, shop, overrides):
        with pytest.raises(InvalidInputError):
            self._create(shop, **overrides)

    def test_list_filters(self, shop, product):
        self._create(shop, sku="BANGLE-925", name="Silver Bangle", metal_type="SILVER", purity="925")

        assert [p.sku for p in product_service.list_products(shop.id, metal_type="SILVER")] == ["BANGLE-925"]
        assert [p.sku for p in product_service.list_products(shop.id, purity="22k")] == [product.sku]

    def test_new_product_prices_at_current_rate(self, shop, gold_rate):
        product = self._create(shop, net_weight="10.000", gross_weight=None, wastage_percent="2.00",
                               making_charges="500.00")

        price = pricing_service.price_product(product.id, shop.id)
        assert price.breakdown.total_price == Decimal("61700.00")
