"""Cash token codec: ledger balance ⇄ portable token payload.

A token payload is a flat set of namespaced string entries that the host
game attaches to a transportable object (an item's persistent data, for
example).  With the default namespace it looks like::

    currency_ledger:cash       "1"
    currency_ledger:coin_type  "gold"
    currency_ledger:amount     "25.00"
    currency_ledger:checksum   "sha256:9c1f..."

The checksum covers the three value entries.  It is an HMAC-SHA256 keyed by
the configured token secret when one is set, and a plain SHA-256 otherwise.
A payload is honoured only when every entry is present and valid; anything
partial is rejected as corrupt.

The codec never sees the physical object.  After a successful
:meth:`CashTokenCodec.cash_in` the caller must consume the object exactly
once; the ledger does not track which payloads have been redeemed.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, NamedTuple

from currency_ledger.currency import ZERO, CurrencyConfig
from currency_ledger.errors import CorruptToken, InvalidAmount, NotAToken
from currency_ledger.records import TOKEN_PARTY, TransactionKind

if TYPE_CHECKING:
    from currency_ledger.engine import LedgerEngine

logger = logging.getLogger(__name__)

MARKER_VALUE = "1"


class CashToken(NamedTuple):
    """Decoded token contents."""

    denomination: str
    amount: Decimal


@dataclass(frozen=True, slots=True, eq=False)
class TokenPayload(Mapping[str, str]):
    """Immutable key/value payload carried by a transportable object."""

    entries: tuple[tuple[str, str], ...]

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, object]) -> TokenPayload:
        if isinstance(mapping, TokenPayload):
            return mapping
        return cls(tuple(sorted((str(key), str(value)) for key, value in mapping.items())))

    def __getitem__(self, key: str) -> str:
        for entry_key, value in self.entries:
            if entry_key == key:
                return value
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        return (key for key, _ in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __hash__(self) -> int:
        return hash(self.entries)

    def as_dict(self) -> dict[str, str]:
        return dict(self.entries)


class CashTokenCodec:
    """Encode, decode, issue and redeem cash tokens.

    Args:
        currencies: The denomination registry shared with the engine.
        namespace: Prefix for payload keys.
        secret: Optional HMAC key; tokens signed with one secret do not
            verify under another.
    """

    def __init__(
        self,
        currencies: CurrencyConfig,
        *,
        namespace: str = "currency_ledger",
        secret: str | None = None,
    ) -> None:
        if not namespace:
            raise ValueError("Token namespace must be non-empty.")
        self.currencies = currencies
        self.namespace = namespace
        self._secret = secret.encode("utf-8") if secret else None
        self.marker_key = f"{namespace}:cash"
        self.denomination_key = f"{namespace}:coin_type"
        self.amount_key = f"{namespace}:amount"
        self.checksum_key = f"{namespace}:checksum"

    def _checksum(self, marker: str, denomination: str, amount_text: str) -> str:
        body = json.dumps(
            {"amount": amount_text, "cash": marker, "coin_type": denomination},
            sort_keys=True,
        ).encode("utf-8")
        if self._secret is not None:
            digest = hmac.new(self._secret, body, hashlib.sha256).hexdigest()
        else:
            digest = hashlib.sha256(body).hexdigest()
        return f"sha256:{digest}"

    def is_token(self, payload: Mapping[str, object]) -> bool:
        """True when the payload carries this codec's cash marker."""
        return self.marker_key in payload

    def encode(self, denomination: str, amount: object) -> TokenPayload:
        """Build a payload for ``amount`` of ``denomination``. Pure."""
        denomination = self.currencies.denomination(denomination)
        amount_text = self.currencies.format_amount(self.currencies.positive_amount(amount))
        return TokenPayload.from_mapping(
            {
                self.marker_key: MARKER_VALUE,
                self.denomination_key: denomination,
                self.amount_key: amount_text,
                self.checksum_key: self._checksum(MARKER_VALUE, denomination, amount_text),
            }
        )

    def decode(self, payload: Mapping[str, object]) -> CashToken:
        """Validate ``payload`` and return its denomination and amount.

        Raises:
            NotAToken: The marker entry is absent.
            CorruptToken: The marker is present but another entry is missing
                or invalid, or the checksum does not match.
        """
        if not isinstance(payload, Mapping):
            raise NotAToken(f"Payload must be a mapping, got {type(payload).__name__}.")
        entries = TokenPayload.from_mapping(payload)
        if self.marker_key not in entries:
            raise NotAToken("Payload does not carry a cash marker.")

        missing = [
            key
            for key in (self.denomination_key, self.amount_key, self.checksum_key)
            if not entries.get(key)
        ]
        if missing:
            raise CorruptToken(f"Cash token is missing {', '.join(missing)}.")

        marker = entries[self.marker_key]
        denomination = entries[self.denomination_key]
        amount_text = entries[self.amount_key]

        expected = self._checksum(marker, denomination, amount_text)
        if not hmac.compare_digest(expected, entries[self.checksum_key]):
            raise CorruptToken("Cash token checksum does not match its contents.")

        if not self.currencies.is_known(denomination):
            raise CorruptToken(f"Cash token has unknown denomination {denomination!r}.")
        try:
            amount = self.currencies.parse_amount(amount_text)
        except InvalidAmount as exc:
            raise CorruptToken(f"Cash token amount is invalid: {exc}") from exc
        if amount <= ZERO:
            raise CorruptToken(f"Cash token amount must be positive, got {amount_text!r}.")

        return CashToken(self.currencies.denomination(denomination), amount)

    def cash_out(
        self,
        engine: LedgerEngine,
        account_id: str,
        denomination: str,
        amount: object,
    ) -> TokenPayload:
        """Debit the account, record a ``cash-out`` and return the token payload.

        The payload is built before the debit so invalid input never touches
        the ledger; if the debit fails no payload is returned.
        """
        denomination = self.currencies.denomination(denomination)
        amount = self.currencies.positive_amount(amount)
        payload = self.encode(denomination, amount)
        engine.withdraw(
            account_id,
            denomination,
            amount,
            kind=TransactionKind.CASH_OUT,
            counterparty=TOKEN_PARTY,
        )
        logger.debug("Issued cash token: %s %s from %s", amount, denomination, account_id)
        return payload

    def cash_in(
        self,
        engine: LedgerEngine,
        account_id: str,
        payload: Mapping[str, object],
    ) -> Decimal:
        """Redeem ``payload`` into the account and record a ``cash-in``.

        Returns:
            The credited amount.  The caller must now consume the object that
            carried the payload.
        """
        token = self.decode(payload)
        engine.deposit(
            account_id,
            token.denomination,
            token.amount,
            kind=TransactionKind.CASH_IN,
            counterparty=TOKEN_PARTY,
        )
        logger.debug(
            "Redeemed cash token: %s %s into %s", token.amount, token.denomination, account_id
        )
        return token.amount
