"""Shared fixtures for bookings, payments and operator tests."""

from __future__ import annotations

import importlib
from decimal import Decimal
from typing import Callable

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.cache import cache
from django.urls import clear_url_caches
from rest_framework.test import APIClient

import spacehub.urls as spacehub_urls
from bookings.models import Booking
from core.errors import ProcessorUnavailable
from core.fee_settings import invalidate_fee_settings
from payments.stripe_api import ProcessorRefund, ProcessorReversal
from spaces.models import Space

User = get_user_model()


class FakeProcessor:
    """In-memory stand-in for StripeProcessor that records every call."""

    def __init__(self, *, fail_refund=False, fail_reversal=False, transfer_ref="tr_test_123"):
        self.fail_refund = fail_refund
        self.fail_reversal = fail_reversal
        self.transfer_ref = transfer_ref
        self.refunds: list[dict] = []
        self.reversals: list[dict] = []
        self.ledger: dict = {}
        self.ledger_errors: set[str] = set()
        self.payouts: dict = {}

    def refund_charge(self, charge_ref, amount_cents, reason, metadata, **kwargs):
        if self.fail_refund:
            raise ProcessorUnavailable("Temporary Stripe error, please retry.")
        self.refunds.append(
            {
                "charge_ref": charge_ref,
                "amount_cents": amount_cents,
                "reason": reason,
                "metadata": dict(metadata),
                **kwargs,
            }
        )
        return ProcessorRefund(
            reference=f"re_test_{len(self.refunds)}", status="succeeded", amount_cents=amount_cents
        )

    def find_transfer_reference(self, charge_ref):
        return self.transfer_ref

    def reverse_transfer(self, transfer_ref, amount_cents, metadata=None, **kwargs):
        if self.fail_reversal:
            raise ProcessorUnavailable("Temporary Stripe error, please retry.")
        self.reversals.append(
            {"transfer_ref": transfer_ref, "amount_cents": amount_cents, **kwargs}
        )
        return ProcessorReversal(
            reference=f"trr_test_{len(self.reversals)}",
            status="succeeded",
            amount_cents=amount_cents,
        )

    def get_charge_ledger_detail(self, charge_ref):
        if charge_ref in self.ledger_errors:
            raise ProcessorUnavailable("Temporary Stripe error, please retry.")
        return self.ledger.get(charge_ref)

    def list_account_payouts(self, account_ref, from_date, to_date):
        payouts = self.payouts.get(account_ref)
        if isinstance(payouts, Exception):
            raise payouts
        return list(payouts or [])


@pytest.fixture(autouse=True)
def clear_shared_caches():
    cache.clear()
    invalidate_fee_settings()
    yield
    cache.clear()
    invalidate_fee_settings()


@pytest.fixture
def fake_processor() -> FakeProcessor:
    return FakeProcessor()


@pytest.fixture
def host_user():
    return User.objects.create_user(
        username="host",
        email="host@example.com",
        password="testpass",
        first_name="Harper",
        last_name="Host",
        is_host=True,
    )


@pytest.fixture
def guest_user():
    return User.objects.create_user(
        username="guest",
        email="guest@example.com",
        password="testpass",
        first_name="Gale",
        last_name="Guest",
    )


@pytest.fixture
def space(host_user):
    return Space.objects.create(
        host=host_user,
        name="Harbour Studio",
        category="studio",
        city="Sydney",
        hourly_price=Decimal("50.00"),
    )


@pytest.fixture
def booking_factory(space, host_user, guest_user) -> Callable[..., Booking]:
    def _factory(**overrides) -> Booking:
        data = {
            "space": space,
            "host": host_user,
            "guest": guest_user,
            "status": Booking.Status.CONFIRMED,
            "payment_status": Booking.PaymentStatus.PAID,
            "base_amount": Decimal("100.00"),
            "service_fee": Decimal("12.00"),
            "processing_fee": Decimal("1.96"),
            "commission_amount": Decimal("4.30"),
            "total_paid": Decimal("113.96"),
            "processor_payment_reference": "pi_test_123",
            "processor_transfer_reference": "tr_test_123",
        }
        data.update(overrides)
        return Booking.objects.create(**data)

    return _factory


@pytest.fixture
def paid_booking(booking_factory) -> Booking:
    """Paid booking whose gross application fee is 18.26 on a 113.96 charge."""
    return booking_factory()


def make_operator(username: str, *roles: str):
    user = User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="pass123",
        is_staff=True,
    )
    for role in roles:
        group, _ = Group.objects.get_or_create(name=role)
        user.groups.add(group)
    return user


@pytest.fixture
def support_operator():
    return make_operator("support", "operator_support")


@pytest.fixture
def finance_operator():
    return make_operator("finance", "operator_finance")


@pytest.fixture
def admin_operator():
    return make_operator("opsadmin", "operator_admin")


def ops_client(user=None) -> APIClient:
    client = APIClient()
    client.defaults["HTTP_HOST"] = "ops.example.com"
    if user:
        client.force_authenticate(user=user)
    return client


@pytest.fixture
def enable_operator_routes(settings):
    original_enable = settings.ENABLE_OPERATOR
    original_hosts = getattr(settings, "OPS_ALLOWED_HOSTS", [])
    original_allowed_hosts = list(getattr(settings, "ALLOWED_HOSTS", []))

    settings.ENABLE_OPERATOR = True
    settings.OPS_ALLOWED_HOSTS = ["ops.example.com"]
    settings.ALLOWED_HOSTS = ["ops.example.com", "public.example.com", "testserver"]
    clear_url_caches()
    importlib.reload(spacehub_urls)
    yield
    settings.ENABLE_OPERATOR = original_enable
    settings.OPS_ALLOWED_HOSTS = original_hosts
    settings.ALLOWED_HOSTS = original_allowed_hosts
    clear_url_caches()
    importlib.reload(spacehub_urls)
