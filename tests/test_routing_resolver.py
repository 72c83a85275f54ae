"""
tests/test_routing_resolver.py -- Tests for services/routing_resolver.py

Called by: pytest
Depends on: services/routing_resolver.py, conftest party fixtures
"""

import pytest

from printflow.constants import CompanyRole, HopKey, RoutingType
from printflow.exceptions import InvalidRoutingError, NotFoundError
from printflow.models import Vendor
from printflow.services.routing_resolver import get_party, resolve_route


class TestResolveRoute:
    def test_standard_route_has_two_hops_in_order(self, db_session, parties):
        route = resolve_route(db_session, RoutingType.STANDARD)
        assert [h.key for h in route.hops] == [HopKey.BROKER_TO_INTERMEDIARY, HopKey.INTERMEDIARY_TO_PRODUCER]
        first, second = route.hops
        assert first.origin.id == parties["broker"].id
        assert first.target.id == parties["intermediary"].id
        assert second.origin.id == parties["intermediary"].id
        assert second.target.id == parties["producer"].id
        assert second.target_key == f"company:{parties['producer'].id}"

    def test_vendor_route_is_single_hop(self, db_session, parties, vendor):
        route = resolve_route(db_session, RoutingType.THIRD_PARTY_VENDOR, vendor.id, 700)
        assert [h.key for h in route.hops] == [HopKey.BROKER_TO_VENDOR]
        hop = route.hops[0]
        assert hop.target_vendor.id == vendor.id
        assert hop.target_key == f"vendor:{vendor.id}"
        assert hop.recipients == ["jobs@northside.test"]

    def test_vendor_route_requires_vendor(self, db_session, parties):
        with pytest.raises(InvalidRoutingError):
            resolve_route(db_session, RoutingType.THIRD_PARTY_VENDOR, None, 700)

    @pytest.mark.parametrize("amount", [None, -1])
    def test_vendor_route_requires_non_negative_amount(self, db_session, parties, vendor, amount):
        with pytest.raises(InvalidRoutingError):
            resolve_route(db_session, RoutingType.THIRD_PARTY_VENDOR, vendor.id, amount)

    def test_zero_vendor_amount_allowed(self, db_session, parties, vendor):
        route = resolve_route(db_session, RoutingType.THIRD_PARTY_VENDOR, vendor.id, 0)
        assert len(route.hops) == 1

    def test_inactive_vendor_rejected(self, db_session, parties):
        v = Vendor(name="Closed Shop", is_active=False)
        db_session.add(v)
        db_session.commit()
        with pytest.raises(InvalidRoutingError):
            resolve_route(db_session, RoutingType.THIRD_PARTY_VENDOR, v.id, 100)

    def test_unknown_routing_type(self, db_session, parties):
        with pytest.raises(InvalidRoutingError):
            resolve_route(db_session, "CARRIER_PIGEON")


class TestGetParty:
    def test_missing_party_raises(self, db_session, broker):
        with pytest.raises(NotFoundError):
            get_party(db_session, CompanyRole.PRODUCER)

    def test_returns_active_company(self, db_session, broker):
        assert get_party(db_session, CompanyRole.BROKER).id == broker.id
