"""Customer-side models for a sale (buyer, GST block, commission)."""
import enum
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Any, Dict, Optional

from backoffice.utils.number_format import ZERO, coerce_decimal


class PaymentMethod(str, enum.Enum):
    """Payment methods accepted at checkout."""
    CASH = 'cash'
    CARD = 'card'
    UPI = 'upi'
    CREDIT = 'credit'


def normalize_payment_method(value) -> str:
    """
    Normalize payment method value to its wire string.

    Args:
        value: Can be None, PaymentMethod enum, or string

    Returns:
        str: 'cash', 'card', 'upi' or 'credit'

    Raises:
        ValueError: If value is invalid
    """
    # Default to cash if None
    if value is None:
        return PaymentMethod.CASH.value

    if isinstance(value, PaymentMethod):
        return value.value

    normalized = str(value).strip().lower()
    if normalized in {m.value for m in PaymentMethod}:
        return normalized

    raise ValueError(f"Invalid payment method: {value}. Must be one of cash, card, upi, credit.")


def payment_status_for(method: str) -> str:
    """Credit sales stay pending; everything else is paid at the counter."""
    return 'pending' if method == PaymentMethod.CREDIT.value else 'paid'


@dataclass
class SaleCustomer:
    """Buyer identity entered on the sell-stock form."""

    name: str = ''
    mobile: str = ''
    email: str = ''
    customer_id: Optional[int] = None
    is_b2b: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'SaleCustomer':
        data = data if isinstance(data, dict) else {}
        customer_id = data.get('customer_id')
        return cls(
            name=str(data.get('name') or ''),
            mobile=str(data.get('mobile') or ''),
            email=str(data.get('email') or ''),
            customer_id=int(customer_id) if customer_id not in (None, '') else None,
            is_b2b=bool(data.get('is_b2b', False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class GstInfo:
    """Business details required when the buyer invoices with GST."""

    enabled: bool = False
    business_name: str = ''
    gst_number: str = ''
    business_address: str = ''

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'GstInfo':
        data = data if isinstance(data, dict) else {}
        return cls(
            enabled=bool(data.get('enabled', False)),
            business_name=str(data.get('business_name') or ''),
            gst_number=str(data.get('gst_number') or ''),
            business_address=str(data.get('business_address') or ''),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CommissionInfo:
    """Commission paid to an agent who brought the sale."""

    enabled: bool = False
    agent_id: Optional[int] = None
    agent_name: str = ''
    agent_mobile: str = ''
    amount: Decimal = ZERO

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'CommissionInfo':
        data = data if isinstance(data, dict) else {}
        agent_id = data.get('agent_id')
        return cls(
            enabled=bool(data.get('enabled', False)),
            agent_id=int(agent_id) if agent_id not in (None, '') else None,
            agent_name=str(data.get('agent_name') or ''),
            agent_mobile=str(data.get('agent_mobile') or ''),
            amount=coerce_decimal(data.get('amount')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
