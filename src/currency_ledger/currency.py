"""Denomination registry and fixed-point amount handling.

Amounts are :class:`decimal.Decimal` values with at most
``CurrencyConfig.decimal_places`` fractional digits.  Nothing in the ledger
rounds: an input with more precision than the registry allows is rejected
with :exc:`~currency_ledger.errors.InvalidAmount`, so repeated credit/debit
cycles never drift.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, getcontext

from currency_ledger.errors import InvalidAmount, UnknownDenomination

ZERO = Decimal("0")


@dataclass(frozen=True, slots=True)
class CurrencyConfig:
    """Closed, ordered set of denominations plus amount precision.

    Built once at startup (see :func:`currency_ledger.facade.build_ledger`)
    and passed by reference to the engine and token codec.

    Attributes:
        denominations: Lower-case denomination names in display order.
        decimal_places: Maximum fractional digits accepted in an amount.
    """

    denominations: tuple[str, ...]
    decimal_places: int = 2

    def __post_init__(self) -> None:
        if not self.denominations:
            raise ValueError("CurrencyConfig requires at least one denomination.")
        normalized = tuple(name.strip().lower() for name in self.denominations)
        if any(not name for name in normalized):
            raise ValueError("Denomination names must be non-empty.")
        if len(set(normalized)) != len(normalized):
            raise ValueError(f"Duplicate denominations in {self.denominations!r}.")
        if self.decimal_places < 0:
            raise ValueError("decimal_places must be >= 0.")
        object.__setattr__(self, "denominations", normalized)

    @classmethod
    def from_names(cls, names: Iterable[str], decimal_places: int = 2) -> CurrencyConfig:
        return cls(denominations=tuple(names), decimal_places=decimal_places)

    def denomination(self, value: object) -> str:
        """Return the normalized denomination name or raise ``UnknownDenomination``."""
        if not isinstance(value, str):
            raise UnknownDenomination(value, self.denominations)
        name = value.strip().lower()
        if name not in self.denominations:
            raise UnknownDenomination(value, self.denominations)
        return name

    @property
    def max_amount(self) -> Decimal:
        """Largest amount or balance held exactly in the decimal context.

        One digit of headroom below the context precision keeps the sum of
        two bounded values exact, so a credit can be checked after adding.
        """
        integer_digits = getcontext().prec - self.decimal_places - 1
        return Decimal(10) ** integer_digits - Decimal(1).scaleb(-self.decimal_places)

    def within_limit(self, amount: Decimal) -> bool:
        return abs(amount) <= self.max_amount

    def is_known(self, value: object) -> bool:
        return isinstance(value, str) and value.strip().lower() in self.denominations

    def parse_amount(self, value: object) -> Decimal:
        """Convert ``value`` to a Decimal within the configured precision.

        Accepts ``Decimal``, ``int``, numeric ``str`` and ``float`` (converted
        through ``str`` so ``0.1`` stays ``0.1``).  Sign is not checked here;
        use :meth:`positive_amount` for operation inputs.

        Raises:
            InvalidAmount: For booleans, unparseable text, NaN/infinity, too
                many fractional digits, or a magnitude above :attr:`max_amount`.
        """
        if isinstance(value, bool):
            raise InvalidAmount(f"Amount must be numeric, got {value!r}")
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, (int, float, str)):
            try:
                amount = Decimal(str(value).strip())
            except InvalidOperation:
                raise InvalidAmount(f"Amount {value!r} is not a number") from None
        else:
            raise InvalidAmount(f"Amount must be numeric, got {type(value).__name__}")

        if not amount.is_finite():
            raise InvalidAmount(f"Amount {value!r} is not finite")
        exponent = amount.normalize().as_tuple().exponent
        if isinstance(exponent, int) and -exponent > self.decimal_places:
            raise InvalidAmount(
                f"Amount {value!r} has more than {self.decimal_places} decimal places"
            )
        if abs(amount) > self.max_amount:
            raise InvalidAmount(f"Amount {value!r} exceeds the maximum of {self.max_amount}")
        return amount

    def positive_amount(self, value: object) -> Decimal:
        """Parse ``value`` and require it to be strictly positive."""
        amount = self.parse_amount(value)
        if amount <= ZERO:
            raise InvalidAmount(f"Amount must be greater than zero, got {value!r}")
        return amount

    def format_amount(self, amount: Decimal) -> str:
        """Canonical text form used for storage and token payloads."""
        quantum = Decimal(1).scaleb(-self.decimal_places)
        return str(amount.quantize(quantum))
