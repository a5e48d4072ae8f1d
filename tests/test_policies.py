from datetime import date
import pytest

from app.src import exceptions, policies
from app.src.db import Account, Call, Profile, Subscription, Vendor
from app.src.enums import Operation, Role


@pytest.fixture
def world(session):
    """Two vendors, one customer, a subscription per vendor and a call to the first."""

    def person(email_id, role):
        account = Account(email_id=email_id, password="-")
        session.add(account)
        session.flush()
        profile = Profile(id=account.id, full_name=email_id, role=role)
        session.add(profile)
        session.flush()
        return profile

    sari = person("sari@warung.co.id", Role.VENDOR)
    joko = person("joko@warung.co.id", Role.VENDOR)
    budi = person("budi@pelanggan.co.id", Role.CUSTOMER)

    warungSari = Vendor(profile_id=sari.id, business_name="Sari", business_type="Makanan")
    warungJoko = Vendor(profile_id=joko.id, business_name="Joko", business_type="Minuman")
    session.add_all([warungSari, warungJoko])
    session.flush()

    subscriptionSari = Subscription(
        vendor_id=warungSari.id, start_date=date(2026, 1, 1), end_date=date(2026, 2, 1)
    )
    subscriptionJoko = Subscription(
        vendor_id=warungJoko.id, start_date=date(2026, 1, 1), end_date=date(2026, 2, 1)
    )
    call = Call(
        customer_id=budi.id, vendor_id=warungSari.id, latitude=-6.2, longitude=106.8
    )
    session.add_all([subscriptionSari, subscriptionJoko, call])
    session.commit()

    return {
        "sari": sari,
        "joko": joko,
        "budi": budi,
        "warungSari": warungSari,
        "warungJoko": warungJoko,
        "subscriptionSari": subscriptionSari,
        "subscriptionJoko": subscriptionJoko,
        "call": call,
    }


class TestProfilePolicy:
    def test_everyone_reads_all_profiles(self, session, world):
        assert policies.readable(session, Profile, world["budi"].id).count() == 3

    def test_only_owner_writes(self, session, world):
        sari = world["sari"]
        assert policies.permits(session, Operation.UPDATE, sari.id, sari)
        assert not policies.permits(session, Operation.UPDATE, world["joko"].id, sari)
        with pytest.raises(exceptions.NoPermission):
            policies.authorize(session, Operation.UPDATE, world["budi"].id, sari)

    def test_insert_only_for_self(self, session, world):
        profile = Profile(id=world["sari"].id, full_name="Palsu", role=Role.CUSTOMER)
        assert not policies.permits(session, Operation.INSERT, world["budi"].id, profile)


class TestVendorPolicy:
    def test_everyone_reads_all_vendors(self, session, world):
        assert policies.readable(session, Vendor, world["budi"].id).count() == 2

    def test_only_owning_profile_writes(self, session, world):
        warungSari = world["warungSari"]
        policies.authorize(session, Operation.UPDATE, world["sari"].id, warungSari)
        with pytest.raises(exceptions.NoPermission):
            policies.authorize(session, Operation.UPDATE, world["joko"].id, warungSari)

    def test_insert_for_other_profile_rejected(self, session, world):
        vendor = Vendor(profile_id=world["sari"].id, business_name="X", business_type="Y")
        with pytest.raises(exceptions.NoPermission):
            policies.authorize(session, Operation.INSERT, world["joko"].id, vendor)


class TestSubscriptionPolicy:
    def test_reads_only_own_vendor(self, session, world):
        rows = policies.readable(session, Subscription, world["sari"].id).all()
        assert [row.id for row in rows] == [world["subscriptionSari"].id]

    def test_customer_reads_nothing(self, session, world):
        assert policies.readable(session, Subscription, world["budi"].id).count() == 0

    def test_writes_only_own_vendor(self, session, world):
        subscription = world["subscriptionJoko"]
        assert policies.permits(session, Operation.UPDATE, world["joko"].id, subscription)
        assert not policies.permits(
            session, Operation.UPDATE, world["sari"].id, subscription
        )
        other = Subscription(
            vendor_id=world["warungJoko"].id,
            start_date=date(2026, 3, 1),
            end_date=date(2026, 4, 1),
        )
        assert not policies.permits(session, Operation.INSERT, world["sari"].id, other)

    def test_visibility_matches_select(self, session, world):
        subscription = world["subscriptionSari"]
        assert policies.visible(session, world["sari"].id, subscription)
        assert not policies.visible(session, world["joko"].id, subscription)


class TestCallPolicy:
    def test_customer_and_owning_vendor_read(self, session, world):
        call = world["call"]
        for caller in ("budi", "sari"):
            rows = policies.readable(session, Call, world[caller].id).all()
            assert [row.id for row in rows] == [call.id]
        assert policies.readable(session, Call, world["joko"].id).count() == 0

    def test_insert_only_as_self(self, session, world):
        call = Call(
            customer_id=world["budi"].id,
            vendor_id=world["warungJoko"].id,
            latitude=-6.2,
            longitude=106.8,
        )
        assert policies.permits(session, Operation.INSERT, world["budi"].id, call)
        assert not policies.permits(session, Operation.INSERT, world["sari"].id, call)

    def test_only_owning_vendor_updates(self, session, world):
        call = world["call"]
        assert policies.permits(session, Operation.UPDATE, world["sari"].id, call)
        assert not policies.permits(session, Operation.UPDATE, world["budi"].id, call)
        assert not policies.permits(session, Operation.UPDATE, world["joko"].id, call)

    def test_visibility_matches_select(self, session, world):
        call = world["call"]
        assert policies.visible(session, world["budi"].id, call)
        assert policies.visible(session, world["sari"].id, call)
        assert not policies.visible(session, world["joko"].id, call)
