"""
Typed views over the Stripe webhook events the payments backend reacts to.

Raw Stripe events are loosely-shaped dicts; parse_event() turns one into a
closed set of variants so the handler never fishes in nested metadata.
"""
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar, Dict, Optional, Union


WALLET_TOP_UP = 'wallet_top_up'


def _id_of(value: Any) -> Optional[str]:
    """Stripe fields may hold an id string or an expanded object."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return value.get('id')


@dataclass(frozen=True)
class PaymentIntentData:
    id: str
    amount: int = 0
    currency: str = ''
    status: str = ''
    customer: Optional[str] = None
    payment_method: Optional[str] = None
    latest_charge: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    last_payment_error_message: Optional[str] = None

    @classmethod
    def from_stripe(cls, obj: Dict[str, Any]) -> 'PaymentIntentData':
        last_error = obj.get('last_payment_error') or {}
        return cls(
            id=obj.get('id'),
            amount=obj.get('amount') or 0,
            currency=obj.get('currency') or '',
            status=obj.get('status') or '',
            customer=_id_of(obj.get('customer')),
            payment_method=_id_of(obj.get('payment_method')),
            latest_charge=_id_of(obj.get('latest_charge')),
            metadata=dict(obj.get('metadata') or {}),
            last_payment_error_message=last_error.get('message'),
        )

    @property
    def order_id(self) -> Optional[str]:
        return self.metadata.get('orderId') or None

    @property
    def user_id(self) -> Optional[str]:
        return self.metadata.get('userId') or None

    @property
    def wallet_amount(self) -> int:
        """Wallet portion of an order payment, 0 when absent or unparseable."""
        raw = self.metadata.get('walletAmount')
        if raw in (None, ''):
            return 0
        try:
            return int(Decimal(str(raw)))
        except (InvalidOperation, ValueError):
            return 0

    @property
    def is_wallet_top_up(self) -> bool:
        return self.metadata.get('type') == WALLET_TOP_UP

    @property
    def save_card(self) -> bool:
        return str(self.metadata.get('saveCard', '')).lower() == 'true'


@dataclass(frozen=True)
class SetupIntentData:
    id: str
    customer: Optional[str] = None
    payment_method: Optional[str] = None

    @classmethod
    def from_stripe(cls, obj: Dict[str, Any]) -> 'SetupIntentData':
        return cls(
            id=obj.get('id'),
            customer=_id_of(obj.get('customer')),
            payment_method=_id_of(obj.get('payment_method')),
        )


@dataclass(frozen=True)
class PaymentIntentSucceeded:
    TYPE: ClassVar[str] = 'payment_intent.succeeded'
    event_id: str
    intent: PaymentIntentData


@dataclass(frozen=True)
class PaymentIntentPaymentFailed:
    TYPE: ClassVar[str] = 'payment_intent.payment_failed'
    event_id: str
    intent: PaymentIntentData


@dataclass(frozen=True)
class SetupIntentSucceeded:
    TYPE: ClassVar[str] = 'setup_intent.succeeded'
    event_id: str
    setup_intent: SetupIntentData


@dataclass(frozen=True)
class UnrecognizedEvent:
    event_id: str
    event_type: str


WebhookEvent = Union[
    PaymentIntentSucceeded,
    PaymentIntentPaymentFailed,
    SetupIntentSucceeded,
    UnrecognizedEvent,
]


def parse_event(event: Dict[str, Any]) -> WebhookEvent:
    """
    Build the typed variant for a verified Stripe event.

    Args:
        event: Stripe Event (dict-like)

    Returns:
        One of the WebhookEvent variants; unknown types become
        UnrecognizedEvent.
    """
    event_type = event.get('type') or ''
    event_id = event.get('id') or ''
    obj = (event.get('data') or {}).get('object') or {}

    if event_type == PaymentIntentSucceeded.TYPE:
        return PaymentIntentSucceeded(event_id, PaymentIntentData.from_stripe(obj))
    if event_type == PaymentIntentPaymentFailed.TYPE:
        return PaymentIntentPaymentFailed(event_id, PaymentIntentData.from_stripe(obj))
    if event_type == SetupIntentSucceeded.TYPE:
        return SetupIntentSucceeded(event_id, SetupIntentData.from_stripe(obj))
    return UnrecognizedEvent(event_id, event_type)
