"""
Typed views of inbox payloads.

Every stored event is parsed into exactly one of OrderEvent, CustomerEvent or UnhandledEvent
before dispatch. Payload shapes are validated with DRF serializers; anything that does not
validate is an InvalidArgument, which the reconciler records as a failure of that event.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

from rest_framework import serializers

from core.exceptions import InvalidArgument
from webhooks.models import InboxEvent

ORDER_KINDS = {InboxEvent.ORDER_CREATED, InboxEvent.ORDER_UPDATED, InboxEvent.ORDER_CANCELLED}
CUSTOMER_KINDS = {InboxEvent.CUSTOMER_CREATED, InboxEvent.CUSTOMER_UPDATED}

PAID = "paid"


@dataclass(frozen=True)
class OrderCustomer:
    id: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    phone: str = ""

    def profile(self) -> dict:
        return {
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
        }


@dataclass(frozen=True)
class OrderEvent:
    kind: str
    order_id: str
    order_number: str
    financial_status: str
    total_price: Decimal
    cancelled_at: Optional[datetime]
    customer: Optional[OrderCustomer]

    @property
    def is_paid(self) -> bool:
        return self.financial_status == PAID

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled_at is not None


@dataclass(frozen=True)
class CustomerEvent:
    kind: str
    customer_id: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    birthday: Optional[date] = None

    def profile(self) -> dict:
        return {
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "birthday": self.birthday,
        }


@dataclass(frozen=True)
class UnhandledEvent:
    kind: str
    topic: str


ParsedEvent = Union[OrderEvent, CustomerEvent, UnhandledEvent]


# ----------------------------------------------------------------------
# Payload serializers
# ----------------------------------------------------------------------


class OrderCustomerSerializer(serializers.Serializer):
    id = serializers.CharField()
    # Platforms send null for missing contact details.
    email = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")
    first_name = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")
    last_name = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")
    phone = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")


class OrderPayloadSerializer(serializers.Serializer):
    id = serializers.CharField()
    order_number = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")
    financial_status = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")
    total_price = serializers.DecimalField(max_digits=14, decimal_places=4, required=False, default=Decimal("0"))
    cancelled_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
    customer = OrderCustomerSerializer(required=False, allow_null=True, default=None)


class CustomerPayloadSerializer(serializers.Serializer):
    id = serializers.CharField()
    email = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")
    first_name = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")
    last_name = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")
    phone = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")
    birthday = serializers.DateField(required=False, allow_null=True, default=None)


def _validated(serializer_class, payload) -> dict:
    serializer = serializer_class(data=payload)
    if not serializer.is_valid():
        raise InvalidArgument(f"Invalid payload: {serializer.errors}")
    return serializer.validated_data


def _text(value) -> str:
    return value or ""


def parse_order(kind: str, payload) -> OrderEvent:
    data = _validated(OrderPayloadSerializer, payload)

    customer = None
    if data.get("customer"):
        raw = data["customer"]
        customer = OrderCustomer(
            id=raw["id"],
            email=_text(raw.get("email")),
            first_name=_text(raw.get("first_name")),
            last_name=_text(raw.get("last_name")),
            phone=_text(raw.get("phone")),
        )

    return OrderEvent(
        kind=kind,
        order_id=data["id"],
        # Fall back to the order id when the platform omits a display number.
        order_number=_text(data.get("order_number")) or data["id"],
        financial_status=_text(data.get("financial_status")).lower(),
        total_price=data.get("total_price") or Decimal("0"),
        cancelled_at=data.get("cancelled_at"),
        customer=customer,
    )


def parse_customer(kind: str, payload) -> CustomerEvent:
    data = _validated(CustomerPayloadSerializer, payload)
    return CustomerEvent(
        kind=kind,
        customer_id=data["id"],
        email=_text(data.get("email")),
        first_name=_text(data.get("first_name")),
        last_name=_text(data.get("last_name")),
        phone=_text(data.get("phone")),
        birthday=data.get("birthday"),
    )


def parse_event(event: InboxEvent) -> ParsedEvent:
    """
    Turns a stored inbox event into its typed variant.

    Raises:
        InvalidArgument: the payload does not match the shape its kind requires.
    """
    if event.kind in ORDER_KINDS:
        return parse_order(event.kind, event.payload)
    if event.kind in CUSTOMER_KINDS:
        return parse_customer(event.kind, event.payload)
    return UnhandledEvent(kind=InboxEvent.UNHANDLED, topic=event.topic)
