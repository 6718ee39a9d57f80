"""Tests for account and ad resolution."""

import pytest

from ads_insights.core.exceptions import UnknownSourceError
from ads_insights.domain.models import AccountSource, AdAccount
from ads_insights.services.accounts import AccountResolver
from ads_insights.services.ads import AdResolver
from ads_insights.services.concurrency import BoundedExecutor
from tests.fakes import FakeTransport, page


def business_routes():
    return {
        "/me/adaccounts": page([{"id": "act_1", "name": "Personal"}]),
        "/me/businesses": page([{"id": "b1", "name": "Shop"}, {"id": "b2", "name": "Agency"}]),
        "/b1/owned_ad_accounts": page([{"id": "act_11", "name": "Shop EU"}]),
        "/b2/owned_ad_accounts": page([{"id": "act_22", "name": "Agency US"}]),
    }


class TestAccountResolver:
    def test_personal_accounts(self, make_client, executor):
        transport = FakeTransport(business_routes())
        accounts = AccountResolver(make_client(transport), executor).resolve_accounts("personal")

        assert accounts == [AdAccount("act_1", "Personal", AccountSource.PERSONAL)]
        assert transport.paths() == ["/me/adaccounts"]

    def test_business_accounts_one_per_business(self, make_client, executor):
        transport = FakeTransport(business_routes(), delay=0.01)
        accounts = AccountResolver(make_client(transport), executor).resolve_accounts(AccountSource.BUSINESS)

        assert sorted(a.id for a in accounts) == ["act_11", "act_22"]
        assert all(a.source is AccountSource.BUSINESS for a in accounts)
        assert transport.calls_to("/me/adaccounts") == 0

    def test_business_accounts_are_not_deduplicated(self, make_client, executor):
        routes = business_routes()
        routes["/b2/owned_ad_accounts"] = page([{"id": "act_11", "name": "Shop EU"}])
        accounts = AccountResolver(make_client(FakeTransport(routes)), executor).resolve_accounts("business")
        assert [a.id for a in accounts] == ["act_11", "act_11"]

    def test_unknown_source(self, make_client, executor):
        transport = FakeTransport(business_routes())
        with pytest.raises(UnknownSourceError):
            AccountResolver(make_client(transport), executor).resolve_accounts("agency")
        assert transport.calls == []

    def test_selectable_accounts_merge_both_sources(self, make_client, executor):
        accounts = AccountResolver(make_client(FakeTransport(business_routes())), executor).list_selectable_accounts()

        assert accounts[0].source is AccountSource.PERSONAL
        assert sorted(a.id for a in accounts) == ["act_1", "act_11", "act_22"]


class TestAdResolver:
    def test_ads_carry_owning_account(self, make_client, executor):
        transport = FakeTransport({
            "/act_1/ads": page([{"id": "ad1", "account_id": "1"}, {"id": "ad2", "account_id": "1"}]),
            "/act_2/ads": page([{"id": "ad3"}]),
        })
        ads = AdResolver(make_client(transport), executor).resolve_ads([AdAccount("act_1"), AdAccount("act_2")])

        by_id = {ad.id: ad.account_id for ad in ads}
        assert by_id == {"ad1": "1", "ad2": "1", "ad3": "2"}

    def test_requests_ad_fields(self, make_client, executor):
        transport = FakeTransport({"/act_1/ads": page([])})
        AdResolver(make_client(transport), executor).resolve_ads([AdAccount("act_1")])
        (_, params), = transport.calls
        assert params["fields"] == ["id", "account_id"]

    def test_no_accounts(self, make_client, executor):
        transport = FakeTransport()
        assert AdResolver(make_client(transport), executor).resolve_ads([]) == []
        assert transport.calls == []


class TestInFlightLimit:
    """Remote calls in flight never exceed the executor's worker count."""

    @staticmethod
    def many_businesses(n=6):
        routes = {
            "/me/adaccounts": page([{"id": "act_1", "name": "Personal"}]),
            "/me/businesses": page([{"id": f"b{i}"} for i in range(n)]),
        }
        for i in range(n):
            routes[f"/b{i}/owned_ad_accounts"] = page([{"id": f"act_{i}0"}])
        return routes

    def test_business_expansion(self, make_client):
        transport = FakeTransport(self.many_businesses(), delay=0.02)
        accounts = AccountResolver(make_client(transport), BoundedExecutor(2)).resolve_accounts("business")

        assert len(accounts) == 6
        assert transport.max_in_flight <= 2

    def test_selectable_accounts(self, make_client):
        transport = FakeTransport(self.many_businesses(), delay=0.02)
        accounts = AccountResolver(make_client(transport), BoundedExecutor(2)).list_selectable_accounts()

        assert len(accounts) == 7
        assert transport.max_in_flight <= 2

    def test_ad_resolution(self, make_client):
        transport = FakeTransport(
            {f"/act_{i}/ads": page([{"id": f"ad{i}"}]) for i in range(8)},
            delay=0.02,
        )
        ads = AdResolver(make_client(transport), BoundedExecutor(3)).resolve_ads(
            [AdAccount(f"act_{i}") for i in range(8)]
        )

        assert len(ads) == 8
        assert transport.max_in_flight <= 3
