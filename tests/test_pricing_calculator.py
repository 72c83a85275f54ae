"""
tests/test_pricing_calculator.py -- Tests for services/pricing_calculator.py

Covers the standard margin split, rounding, custom and loss prices, vendor
pricing, and database rate overrides.

Called by: pytest
Depends on: services/pricing_calculator.py, models.PricingRule
"""

from decimal import Decimal

import pytest

from printflow.exceptions import ValidationError
from printflow.models import PricingRule
from printflow.services.pricing_calculator import (
    PRODUCT_SIZES,
    calculate_pricing,
    calculate_vendor_pricing,
    get_pricing_rule,
    to_money,
)

D = Decimal


def _assert_chain(b):
    assert b.customer_total == b.broker_margin + b.intermediary_total
    assert b.intermediary_total == b.intermediary_margin + b.producer_total


class TestStandardPricing:
    def test_reference_scenario(self):
        b = calculate_pricing("SM_7_25_16_375", 10000)
        assert b.producer_total == D("347.40")
        assert b.paper_charged_total == D("185.50")
        assert b.paper_cost_total == D("154.58")
        assert b.customer_total == D("675.60")
        assert b.intermediary_total == D("604.25")
        assert b.broker_margin == D("71.35")
        assert b.intermediary_margin == D("256.85")
        assert b.customer_cpm == D("67.5600")
        assert b.paper_markup == D("30.92")
        assert not b.is_loss
        assert not b.requires_approval
        _assert_chain(b)

    def test_margin_split_is_even_above_cost_floor(self):
        b = calculate_pricing("SM_7_25_16_375", 10000)
        floor = b.producer_total + b.paper_charged_total
        assert b.broker_margin == b.intermediary_total - floor

    def test_odd_cent_goes_to_intermediary(self):
        b = calculate_pricing("SM_7_25_16_375", 10000, custom_price=D("675.61"))
        assert b.intermediary_total == D("604.26")
        assert b.broker_margin == D("71.35")
        _assert_chain(b)

    @pytest.mark.parametrize("size_id", sorted(PRODUCT_SIZES))
    @pytest.mark.parametrize("quantity", [1, 250, 4999, 10000, 123457])
    def test_chain_identities_hold_for_every_size(self, size_id, quantity):
        b = calculate_pricing(size_id, quantity)
        _assert_chain(b)
        for value in (b.customer_total, b.intermediary_total, b.producer_total, b.broker_margin):
            assert value == to_money(value)

    def test_pure_function(self):
        assert calculate_pricing("PC_6_9", 2500) == calculate_pricing("PC_6_9", 2500)

    def test_custom_price_below_standard_requires_approval(self):
        b = calculate_pricing("SM_7_25_16_375", 10000, custom_price=600)
        assert b.customer_total == D("600.00")
        assert b.undercharge_amount == D("75.60")
        assert b.requires_approval
        assert not b.is_loss
        _assert_chain(b)

    def test_custom_price_above_standard_needs_no_approval(self):
        b = calculate_pricing("SM_7_25_16_375", 10000, custom_price=800)
        assert not b.requires_approval
        assert b.undercharge_amount == D("0.00")

    def test_price_below_cost_floor_is_a_loss(self):
        b = calculate_pricing("SM_7_25_16_375", 10000, custom_price=500)
        assert b.is_loss
        assert b.loss_amount == D("32.90")
        assert b.intermediary_total == D("532.90")
        assert b.broker_margin == D("-32.90")
        assert b.intermediary_margin == D("185.50")
        assert b.requires_approval
        _assert_chain(b)

    def test_price_exactly_at_cost_floor_is_not_a_loss(self):
        b = calculate_pricing("SM_7_25_16_375", 10000, custom_price=D("532.90"))
        assert not b.is_loss
        assert b.loss_amount == D("0.00")
        assert b.intermediary_total == D("532.90")
        assert b.broker_margin == D("0.00")
        assert b.intermediary_margin == D("185.50")
        _assert_chain(b)

    def test_one_cent_below_cost_floor_is_a_loss(self):
        b = calculate_pricing("SM_7_25_16_375", 10000, custom_price=D("532.89"))
        assert b.is_loss
        assert b.loss_amount == D("0.01")
        assert b.broker_margin == D("-0.01")

    @pytest.mark.parametrize("custom_price", [D("600.00"), D("675.60"), D("800.00")])
    def test_price_above_cost_has_zero_loss(self, custom_price):
        b = calculate_pricing("SM_7_25_16_375", 10000, custom_price=custom_price)
        assert not b.is_loss
        assert b.loss_amount == D("0.00")
        assert b.broker_margin > 0

    def test_zero_quantity_rejected(self):
        with pytest.raises(ValidationError):
            calculate_pricing("SM_7_25_16_375", 0)

    def test_unknown_size_rejected(self):
        with pytest.raises(ValidationError):
            calculate_pricing("NOPE", 1000)

    def test_non_positive_custom_price_rejected(self):
        with pytest.raises(ValidationError):
            calculate_pricing("SM_7_25_16_375", 1000, custom_price=0)

    def test_to_dict_serializes_decimals(self):
        d = calculate_pricing("SM_7_25_16_375", 10000).to_dict()
        assert d["customer_total"] == "675.60"
        assert d["is_loss"] is False


class TestVendorPricing:
    def test_vendor_takes_producer_position(self):
        b = calculate_vendor_pricing(D("1000"), D("700"), D("50"), 5000)
        assert b.producer_total == D("700.00")
        assert b.intermediary_total == D("750.00")
        assert b.intermediary_margin == D("50.00")
        assert b.broker_margin == D("250.00")
        assert b.paper_charged_total == D("0.00")
        _assert_chain(b)

    def test_no_cut(self):
        b = calculate_vendor_pricing(1000, 700, None, 5000)
        assert b.intermediary_total == D("700.00")
        assert b.broker_margin == D("300.00")

    def test_vendor_amount_above_customer_total_is_a_loss(self):
        b = calculate_vendor_pricing(500, 600, 0, 1000)
        assert b.is_loss
        assert b.loss_amount == D("100.00")
        assert b.requires_approval
        _assert_chain(b)

    def test_negative_vendor_amount_rejected(self):
        with pytest.raises(ValidationError):
            calculate_vendor_pricing(500, -1, 0, 1000)


class TestPricingRules:
    def test_builtin_card_without_db(self):
        assert get_pricing_rule("PC_6_9").customer_cpm == D("35.00")

    def test_db_rule_overrides_builtin(self, db_session):
        db_session.add(PricingRule(
            size_id="PC_6_9", print_cpm=D("11"), paper_charged_cpm=D("15"),
            paper_cost_cpm=D("13"), customer_cpm=D("40"), is_active=True,
        ))
        db_session.commit()
        card = get_pricing_rule("PC_6_9", db_session)
        assert card.customer_cpm == D("40")
        assert card.name == "6 x 9 Postcard"
        b = calculate_pricing("PC_6_9", 1000, rule=card)
        assert b.customer_total == D("40.00")
        _assert_chain(b)

    def test_inactive_db_rule_ignored(self, db_session):
        db_session.add(PricingRule(
            size_id="PC_6_9", print_cpm=1, paper_charged_cpm=1,
            paper_cost_cpm=1, customer_cpm=99, is_active=False,
        ))
        db_session.commit()
        assert get_pricing_rule("PC_6_9", db_session).customer_cpm == D("35.00")
