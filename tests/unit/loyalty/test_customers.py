"""
Unit tests for the customer registry: enrollment, referrals and analytics.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from core.exceptions import InvalidArgument, NotFound
from loyalty.customers import CustomerService
from loyalty.models import Customer, Transaction
from loyalty.services import REFERRAL_SOURCE, WELCOME_BONUS_SOURCE, LedgerService
from tests.factories.loyalty import CustomerFactory, LoyaltyProgramFactory, TierFactory
from tests.factories.users import ShopFactory


class TestUpsertCustomer:
    def test_creates_customer(self):
        shop = ShopFactory()

        customer, created = CustomerService().upsert_customer(
            shop.id, 42, email="ada@example.com", first_name="Ada", birthday=date(1990, 5, 1)
        )

        assert created is True
        assert customer.external_id == "42"
        assert customer.email == "ada@example.com"
        assert customer.birthday == date(1990, 5, 1)
        assert customer.points_balance == 0

    def test_updates_without_blanking_known_fields(self):
        customer = CustomerFactory(email="old@example.com", first_name="Ada", phone="555")

        updated, created = CustomerService().upsert_customer(
            customer.shop_id, customer.external_id, email="new@example.com", first_name="", phone=None
        )

        assert created is False
        assert updated.pk == customer.pk
        assert updated.email == "new@example.com"
        assert updated.first_name == "Ada"
        assert updated.phone == "555"

    def test_profile_writes_never_touch_the_ledger(self):
        shop = ShopFactory()
        LoyaltyProgramFactory(shop=shop, welcome_bonus=100)

        customer, _ = CustomerService().upsert_customer(shop.id, "c-1", email="a@example.com")

        assert customer.points_balance == 0
        assert not Transaction.objects.filter(customer=customer).exists()

    def test_same_external_id_in_two_shops(self):
        service = CustomerService()

        first, _ = service.upsert_customer(ShopFactory().id, "123")
        second, _ = service.upsert_customer(ShopFactory().id, "123")

        assert first.pk != second.pk

    def test_unknown_fields_rejected(self):
        with pytest.raises(TypeError):
            CustomerService().upsert_customer(ShopFactory().id, "1", points_balance=1000)


class TestEnroll:
    def test_new_customer_gets_welcome_bonus_once(self):
        shop = ShopFactory()
        LoyaltyProgramFactory(shop=shop, welcome_bonus=50)
        service = CustomerService()

        customer, created, bonus = service.enroll(shop.id, "new-1", email="new@example.com")
        again, created_again, bonus_again = service.enroll(shop.id, "new-1")

        assert created is True
        assert bonus.transaction_type == Transaction.BONUS
        assert bonus.source == WELCOME_BONUS_SOURCE
        assert customer.points_balance == 50
        assert customer.lifetime_points == 50
        assert created_again is False
        assert bonus_again is None
        assert again.points_balance == 50

    def test_no_bonus_when_program_inactive(self):
        shop = ShopFactory()
        LoyaltyProgramFactory(shop=shop, welcome_bonus=50, active=False)

        customer, created, bonus = CustomerService().enroll(shop.id, "new-2")

        assert created is True
        assert bonus is None
        assert customer.points_balance == 0

    def test_no_bonus_without_program(self):
        customer, created, bonus = CustomerService().enroll(ShopFactory().id, "new-3")

        assert bonus is None
        assert customer.points_balance == 0


class TestRecordOrder:
    def test_counters_accumulate(self):
        customer = CustomerFactory()
        service = CustomerService()

        service.record_order(customer.id, Decimal("19.99"))
        service.record_order(customer.id, Decimal("5.01"))

        customer = Customer.objects.get(pk=customer.pk)
        assert customer.total_orders == 2
        assert customer.lifetime_spent == Decimal("25.00")
        assert customer.last_activity_at is not None


class TestReferrals:
    @pytest.fixture
    def program(self):
        return LoyaltyProgramFactory(referrals_enabled=True, referral_bonus=100)

    def test_referrer_is_credited(self, program):
        """
        Scenario: A new customer signs up with an existing customer's referral code.
        Expected: The link is stored and the referrer gets a 100 point Bonus row.
        """
        referrer = CustomerFactory(shop=program.shop)
        newcomer = CustomerFactory(shop=program.shop, email="new@example.com")

        bonus = CustomerService().process_referral(newcomer.id, referrer.referral_code.lower())

        assert bonus.customer_id == referrer.id
        assert bonus.transaction_type == Transaction.BONUS
        assert bonus.source == REFERRAL_SOURCE
        assert bonus.points == 100
        assert bonus.description == "Referral bonus for referring new@example.com"
        newcomer.refresh_from_db()
        referrer.refresh_from_db()
        assert newcomer.referred_by_id == referrer.id
        assert referrer.points_balance == 100
        assert referrer.lifetime_points == 100
        assert newcomer.points_balance == 0

    def test_zero_bonus_still_links(self, program):
        program.referral_bonus = 0
        program.save()
        referrer = CustomerFactory(shop=program.shop)
        newcomer = CustomerFactory(shop=program.shop)

        assert CustomerService().process_referral(newcomer.id, referrer.referral_code) is None
        newcomer.refresh_from_db()
        assert newcomer.referred_by_id == referrer.id
        assert not Transaction.objects.exists()

    def test_unknown_code(self, program):
        newcomer = CustomerFactory(shop=program.shop)

        with pytest.raises(InvalidArgument, match="Invalid referral code"):
            CustomerService().process_referral(newcomer.id, "NOPE0000")

    def test_self_referral(self, program):
        customer = CustomerFactory(shop=program.shop)

        with pytest.raises(InvalidArgument, match="Cannot refer yourself"):
            CustomerService().process_referral(customer.id, customer.referral_code)

    def test_code_from_another_shop(self, program):
        stranger = CustomerFactory(shop=ShopFactory())
        newcomer = CustomerFactory(shop=program.shop)

        with pytest.raises(InvalidArgument, match="different shops"):
            CustomerService().process_referral(newcomer.id, stranger.referral_code)

    def test_second_referrer_is_rejected(self, program):
        first, second = CustomerFactory(shop=program.shop), CustomerFactory(shop=program.shop)
        newcomer = CustomerFactory(shop=program.shop)
        service = CustomerService()
        service.process_referral(newcomer.id, first.referral_code)

        with pytest.raises(InvalidArgument, match="already has a referrer"):
            service.process_referral(newcomer.id, second.referral_code)

        second.refresh_from_db()
        assert second.points_balance == 0

    def test_referrals_disabled(self):
        program = LoyaltyProgramFactory(referrals_enabled=False, referral_bonus=100)
        referrer = CustomerFactory(shop=program.shop)
        newcomer = CustomerFactory(shop=program.shop)

        with pytest.raises(InvalidArgument, match="not enabled"):
            CustomerService().process_referral(newcomer.id, referrer.referral_code)

        newcomer.refresh_from_db()
        assert newcomer.referred_by_id is None

    def test_unknown_customer(self):
        with pytest.raises(NotFound):
            CustomerService().process_referral(999999, "ABCD1234")

    def test_referral_codes_are_generated(self):
        first, second = CustomerFactory(), CustomerFactory()

        assert len(first.referral_code) == 8
        assert first.referral_code == first.referral_code.upper()
        assert first.referral_code != second.referral_code


class TestAnalytics:
    def test_dashboard_figures(self):
        """
        Scenario: Two customers earned points today; a third joined long ago and went quiet.
        Expected: 3 total, 2 active, 2 new this month, ranked by lifetime points, one in Silver.
        """
        program = LoyaltyProgramFactory()
        TierFactory(program=program, name="Silver", level=1, required_points=100)
        ledger = LedgerService()
        top = CustomerFactory(shop=program.shop)
        ledger.earn(top.id, 300, "API")
        middle = CustomerFactory(shop=program.shop)
        ledger.earn(middle.id, 50, "API")
        quiet = CustomerFactory(shop=program.shop, last_activity_at=timezone.now() - timedelta(days=40))
        Customer.objects.filter(pk=quiet.pk).update(enrolled_at=timezone.now() - timedelta(days=400))
        CustomerFactory(shop=ShopFactory())

        analytics = CustomerService().analytics(program.shop_id)

        assert analytics.total_customers == 3
        assert analytics.active_customers == 2
        assert analytics.new_this_month == 2
        assert [customer.id for customer in analytics.top_customers] == [top.id, middle.id, quiet.id]
        distribution = {row["tier_name"]: row["customers"] for row in analytics.tier_distribution}
        assert distribution == {"Silver": 1, None: 2}

    def test_empty_shop(self):
        analytics = CustomerService().analytics(ShopFactory().id)

        assert analytics.total_customers == 0
        assert analytics.top_customers == []
        assert analytics.tier_distribution == []
