"""Platform fee arithmetic.

Dual-sided fee model: the client pays a fee on top of the escrowed amount,
the freelancer has a fee deducted from the payout. All arithmetic is done
in ``Decimal`` and quantized to the settlement currency's minor unit
(6 decimal places, USDC-style), so identical input always produces an
identical breakdown and no float drift leaks into payouts.

Attribution is the same on both terminal paths:
    - the client fee is charged on deposit and always retained by the platform
    - release: freelancer receives raw - freelancer_fee
    - refund:  client receives raw back (client fee retained)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from verified_escrow.domain.enums import SettlementAction
from verified_escrow.domain.exceptions import InvalidAmountError, ValidationError

CURRENCY_DECIMALS = 6
MINOR_UNIT = Decimal(1).scaleb(-CURRENCY_DECIMALS)  # 0.000001

DEFAULT_CLIENT_FEE_RATE = Decimal("0.01")
DEFAULT_FREELANCER_FEE_RATE = Decimal("0.01")


@dataclass(frozen=True)
class FeeBreakdown:
    """Fee quote for one raw amount. Only ``compute_fees`` builds these."""

    raw_amount: Decimal
    client_fee_rate: Decimal
    freelancer_fee_rate: Decimal
    client_fee: Decimal
    freelancer_fee: Decimal
    client_pays: Decimal
    freelancer_receives: Decimal

    @property
    def total_fees(self) -> Decimal:
        return self.client_fee + self.freelancer_fee

    def payout(self, action: SettlementAction) -> Decimal:
        """Amount the ledger moves to the payee for a terminal action."""
        if action is SettlementAction.RELEASE:
            return self.freelancer_receives
        return self.raw_amount

    def platform_retained(self, action: SettlementAction) -> Decimal:
        """Fees the platform keeps once the action has settled."""
        if action is SettlementAction.RELEASE:
            return self.total_fees
        return self.client_fee

    def to_dict(self) -> dict:
        return {
            "rawAmount": str(self.raw_amount),
            "clientFeeRate": str(self.client_fee_rate),
            "freelancerFeeRate": str(self.freelancer_fee_rate),
            "clientFeePercent": _percent(self.client_fee_rate),
            "freelancerFeePercent": _percent(self.freelancer_fee_rate),
            "clientFee": str(self.client_fee),
            "freelancerFee": str(self.freelancer_fee),
            "totalFees": str(self.total_fees),
            "clientPays": str(self.client_pays),
            "freelancerReceives": str(self.freelancer_receives),
        }


def _percent(rate: Decimal) -> str:
    return format((rate * 100).normalize(), "f")


def to_amount(value: object) -> Decimal:
    """Coerce user input into a positive Decimal with at most 6 decimal places.

    Raises:
        InvalidAmountError: if the value is not a finite number > 0 or has
            sub-minor-unit precision.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmountError(value)
    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, float):
            amount = Decimal(str(value))
        elif isinstance(value, (int, str)):
            amount = Decimal(str(value).strip())
        else:
            raise InvalidAmountError(value)
        if not amount.is_finite() or amount <= 0:
            raise InvalidAmountError(value)
        if amount != amount.quantize(MINOR_UNIT):
            raise InvalidAmountError(value)
    except InvalidOperation as exc:
        raise InvalidAmountError(value) from exc
    return amount


def _check_rate(rate: Decimal, field: str) -> Decimal:
    rate = Decimal(str(rate))
    if not rate.is_finite() or rate < 0 or rate >= 1:
        raise ValidationError(f"{field} must be in [0, 1), got {rate}", field=field)
    return rate


def _fee(amount: Decimal, rate: Decimal) -> Decimal:
    return (amount * rate).quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


def compute_fees(
    amount: object,
    client_rate: Decimal = DEFAULT_CLIENT_FEE_RATE,
    freelancer_rate: Decimal = DEFAULT_FREELANCER_FEE_RATE,
) -> FeeBreakdown:
    """Build the fee breakdown for a raw escrow amount.

    Pure and deterministic: the same inputs always yield an equal breakdown.

    Args:
        amount: Raw escrow amount (Decimal, int, str or float; must be > 0).
        client_rate: Fraction charged to the client on top of the amount.
        freelancer_rate: Fraction deducted from the freelancer's payout.

    Raises:
        InvalidAmountError: amount <= 0 or not representable in minor units.
        ValidationError: a rate outside [0, 1).
    """
    raw = to_amount(amount)
    client_rate = _check_rate(client_rate, "client_fee_rate")
    freelancer_rate = _check_rate(freelancer_rate, "freelancer_fee_rate")

    client_fee = _fee(raw, client_rate)
    freelancer_fee = _fee(raw, freelancer_rate)
    return FeeBreakdown(
        raw_amount=raw,
        client_fee_rate=client_rate,
        freelancer_fee_rate=freelancer_rate,
        client_fee=client_fee,
        freelancer_fee=freelancer_fee,
        client_pays=raw + client_fee,
        freelancer_receives=raw - freelancer_fee,
    )


def to_minor_units(amount: Decimal) -> int:
    """Convert a currency amount to integer minor units for storage."""
    return int(amount.quantize(MINOR_UNIT).scaleb(CURRENCY_DECIMALS))


def from_minor_units(units: int) -> Decimal:
    """Convert stored integer minor units back to a currency amount."""
    return Decimal(units).scaleb(-CURRENCY_DECIMALS)
