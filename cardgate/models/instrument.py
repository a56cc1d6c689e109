"""Stored card details, as reported by a gateway.

Instances are only built by gateway adapters after a vendor call and are
read-only. Re-fetching through the provider yields a new instance.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional, Union

from cardgate.models.exceptions import InvalidInstrumentError, MissingValueError

if TYPE_CHECKING:
    from cardgate.integrations.payment_gateways.base import PaymentGateway
    from cardgate.models.result import OperationResult


class _Missing:
    """Marker for a field the gateway did not report."""

    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()

FIFTEEN_DIGIT_CARD_TYPES = frozenset({"american_express", "amex"})


def mask_number(number: Optional[Union[str, int]], card_type: Optional[str] = None) -> Optional[str]:
    """Reduce a card number to its display form.

    Accepts a full number, a last-four fragment or an already masked value.
    Only the last four digits survive:

        4111111111111111 -> XXXX-XXXX-XXXX-1111
        378282246310005  -> XXXX-XXXXXX-0005
    """
    if number is None:
        return None

    digits = re.sub(r"\D", "", str(number))
    if not digits:
        return None

    last_four = digits[-4:]
    if len(digits) == 15 or _normalize_card_type(card_type) in FIFTEEN_DIGIT_CARD_TYPES:
        return f"XXXX-XXXXXX-{last_four}"
    return f"XXXX-XXXX-XXXX-{last_four}"


def derive_expired(
    month: Optional[Union[str, int]],
    year: Optional[Union[str, int]],
    today: Optional[date] = None,
) -> Optional[bool]:
    """Work out expiry from the card's month and year.

    A card is expired when its year is in the past, or its year is the
    current one and its month is in the past. Returns None when month or
    year is absent or not numeric.
    """
    try:
        month_number = int(month)  # type: ignore[arg-type]
        year_number = int(year)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None

    today = today or datetime.now(timezone.utc).date()
    if year_number < today.year:
        return True
    return year_number == today.year and month_number < today.month


def _normalize_card_type(card_type: Optional[str]) -> Optional[str]:
    if card_type is None:
        return None
    return str(card_type).strip().lower().replace(" ", "_")


class PaymentInstrument:
    """A tokenized card held in a gateway's vault.

    `valid` and `expired` are tri-state: True, False, or never reported.
    Reading an unreported one raises MissingValueError rather than returning
    a falsy default.

    The provider reference is only used for dispatch: `card.authorize(10)`
    forwards to `provider.authorize_via_instrument(card, 10)`.
    """

    __slots__ = (
        "_provider",
        "_id",
        "_number",
        "_last_four",
        "_expiration_month",
        "_expiration_year",
        "_cvv",
        "_card_type",
        "_holder_name",
        "_valid",
        "_expired",
        "_raw",
    )

    def __init__(
        self,
        provider: PaymentGateway,
        id: str,
        *,
        number: Optional[Union[str, int]] = None,
        expiration_month: Optional[Union[str, int]] = None,
        expiration_year: Optional[Union[str, int]] = None,
        cvv: Optional[str] = None,
        card_type: Optional[str] = None,
        holder_name: Optional[str] = None,
        valid: Any = MISSING,
        expired: Any = MISSING,
        raw: Any = None,
    ) -> None:
        self._provider = provider
        self._id = id
        self._number = mask_number(number, card_type)
        self._last_four = self._number[-4:] if self._number else None
        self._expiration_month = expiration_month
        self._expiration_year = expiration_year
        self._cvv = cvv
        self._card_type = card_type
        self._holder_name = holder_name
        self._valid = valid
        self._expired = expired
        self._raw = raw

    @property
    def provider(self) -> PaymentGateway:
        return self._provider

    @property
    def id(self) -> str:
        return self._id

    @property
    def number(self) -> Optional[str]:
        """Masked display number, e.g. XXXX-XXXX-XXXX-1111."""
        return self._number

    @property
    def last_four(self) -> Optional[str]:
        return self._last_four

    @property
    def expiration_month(self) -> Optional[Union[str, int]]:
        return self._expiration_month

    @property
    def expiration_year(self) -> Optional[Union[str, int]]:
        return self._expiration_year

    @property
    def cvv(self) -> Optional[str]:
        return self._cvv

    @property
    def card_type(self) -> Optional[str]:
        return self._card_type

    @property
    def holder_name(self) -> Optional[str]:
        return self._holder_name

    @property
    def raw(self) -> Any:
        """Vendor payload the instrument was built from. Diagnostics only."""
        return self._raw

    @property
    def valid(self) -> bool:
        if self._valid is MISSING:
            raise MissingValueError("valid", self)
        return self._valid

    @property
    def expired(self) -> bool:
        if self._expired is MISSING:
            raise MissingValueError("expired", self)
        return self._expired

    @property
    def has_validity(self) -> bool:
        return self._valid is not MISSING

    @property
    def has_expiry(self) -> bool:
        return self._expired is not MISSING

    @property
    def can_credit(self) -> bool:
        return self.provider.supports_credit and self._chargeable

    @property
    def can_authorize(self) -> bool:
        return self.provider.supports_authorize and self._chargeable

    @property
    def can_purchase(self) -> bool:
        return self.provider.supports_purchase and self._chargeable

    @property
    def can_delete(self) -> bool:
        return self.provider.supports_delete

    @property
    def _chargeable(self) -> bool:
        return self.valid and not self.expired

    def authorize(self, amount: Union[Decimal, int, str]) -> OperationResult:
        """Authorize `amount` against this card. The funds must be captured later.

        Raises:
            InvalidInstrumentError: The card is invalid or expired.
            NotSupportedError: The gateway cannot authorize.
        """
        self._ensure_chargeable("authorize")
        return self.provider.authorize_via_instrument(self, amount)

    def purchase(self, amount: Union[Decimal, int, str]) -> OperationResult:
        """Charge `amount` to this card in a single step."""
        self._ensure_chargeable("purchase")
        return self.provider.purchase_via_instrument(self, amount)

    def credit(self, amount: Union[Decimal, int, str]) -> OperationResult:
        """Send `amount` to this card, independent of any earlier charge."""
        self._ensure_chargeable("credit")
        return self.provider.credit_via_instrument(self, amount)

    def delete(self) -> OperationResult:
        """Remove the card from the gateway's vault."""
        return self.provider.delete_instrument(self)

    def retain(self) -> OperationResult:
        """Keep the card in the gateway's vault beyond its default lifetime."""
        return self.provider.retain_instrument(self)

    def _ensure_chargeable(self, action: str) -> None:
        if not self._chargeable:
            raise InvalidInstrumentError(self.id, action)

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and other.id == self.id  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self), self._id))

    def __repr__(self) -> str:
        return f"PaymentInstrument(id={self._id!r}, number={self._number!r}, card_type={self._card_type!r})"
