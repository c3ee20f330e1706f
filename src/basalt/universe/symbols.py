"""Symbols — Composite and universe identities.

A composite (e.g. an ETF) keeps one immutable SecurityIdentifier for its
whole life; renames only append TickerMapping entries. The universe derived
from its holdings gets a synthetic identity that depends on nothing but the
namespace tag, the composite's security type and its market, so it survives
renames and is identical every time it is resolved.
"""

import hashlib
from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


# Namespace tag carried by every constituents-universe identity
UNIVERSE_TAG = "universe-etf-constituents"

DEFAULT_MARKET = "usa"


class SecurityType(str, Enum):
    """Instrument type of a composite or constituent."""

    EQUITY = "equity"
    ETF = "etf"
    INDEX = "index"
    FUTURE = "future"
    CRYPTO = "crypto"


@dataclass(frozen=True)
class SecurityIdentifier:
    """Immutable identity of an instrument.

    ``symbol`` is the ticker at first listing and never changes.
    """

    symbol: str
    security_type: SecurityType = SecurityType.EQUITY
    market: str = DEFAULT_MARKET

    def __post_init__(self) -> None:
        object.__setattr__(self, "symbol", self.symbol.upper())
        object.__setattr__(self, "market", self.market.lower())

    def __str__(self) -> str:
        return f"{self.symbol} {self.security_type.value} {self.market}"


@dataclass(frozen=True, order=True)
class TickerMapping:
    """A rename: from ``effective`` on, the instrument trades as ``ticker``."""

    effective: datetime
    ticker: str


@dataclass(frozen=True)
class CompositeIdentity:
    """The instrument whose holdings drive a universe.

    Equality and hashing use the SecurityIdentifier only, so the identity
    before and after a rename compares equal.

    Usage:
        qqq = CompositeIdentity.create("QQQQ", SecurityType.ETF)
        qqq = qqq.mapped("QQQ", datetime(2011, 3, 23))
        qqq.ticker_at(datetime(2011, 1, 3))  # "QQQQ"
        qqq.ticker                           # "QQQ"
    """

    sid: SecurityIdentifier
    mappings: tuple[TickerMapping, ...] = field(default=(), compare=False)

    @classmethod
    def create(
        cls,
        ticker: str,
        security_type: SecurityType = SecurityType.ETF,
        market: str = DEFAULT_MARKET,
    ) -> "CompositeIdentity":
        """Create a composite identity listed under ``ticker``."""
        return cls(sid=SecurityIdentifier(ticker, security_type, market))

    @property
    def security_type(self) -> SecurityType:
        return self.sid.security_type

    @property
    def market(self) -> str:
        return self.sid.market

    @property
    def ticker(self) -> str:
        """Latest known ticker."""
        if self.mappings:
            return self.mappings[-1].ticker
        return self.sid.symbol

    @property
    def aliases(self) -> frozenset[str]:
        """Every ticker this composite has traded under."""
        return frozenset([self.sid.symbol, *(m.ticker for m in self.mappings)])

    def ticker_at(self, when: datetime) -> str:
        """Return the ticker in force at ``when``."""
        idx = bisect_right([m.effective for m in self.mappings], when)
        if idx == 0:
            return self.sid.symbol
        return self.mappings[idx - 1].ticker

    def mapped(self, ticker: str, effective: datetime) -> "CompositeIdentity":
        """Return this identity with a rename to ``ticker`` at ``effective``."""
        ticker = ticker.upper()
        if ticker == self.ticker_at(effective):
            return self
        history = tuple(sorted((*self.mappings, TickerMapping(effective, ticker))))
        return CompositeIdentity(sid=self.sid, mappings=history)

    def __str__(self) -> str:
        return self.ticker


def _identifier_token(tag: str, security_type: SecurityType, market: str) -> str:
    """Stable short token for (tag, type, market)."""
    raw = f"{tag}|{security_type.value}|{market}".encode("utf-8")
    return hashlib.sha1(raw).hexdigest()[:12].upper()


@dataclass(frozen=True)
class UniverseIdentity:
    """Synthetic identity of a constituents universe.

    ``sid`` is derived from the namespace tag, security type and market only.
    ``underlying`` links back to the composite's immutable identifier.
    """

    sid: SecurityIdentifier
    token: str
    underlying: SecurityIdentifier

    @property
    def value(self) -> str:
        return self.sid.symbol

    def __str__(self) -> str:
        return f"{self.sid.symbol.lower()} {self.token} ({self.underlying.symbol})"


def is_universe_identity(identity: CompositeIdentity | UniverseIdentity) -> bool:
    """True if ``identity`` already carries the universe namespace tag."""
    return identity.sid.symbol == UNIVERSE_TAG.upper()


def resolve_universe_identity(
    composite: CompositeIdentity | UniverseIdentity,
) -> UniverseIdentity:
    """Derive the universe identity for ``composite``.

    Pure and idempotent: an identity already carrying the universe tag is
    returned unchanged, or keeps its identifier if it is a plain composite.
    """
    if is_universe_identity(composite):
        if isinstance(composite, UniverseIdentity):
            return composite
        return UniverseIdentity(
            sid=composite.sid,
            token=_identifier_token(UNIVERSE_TAG, composite.sid.security_type, composite.sid.market),
            underlying=composite.sid,
        )
    if isinstance(composite, UniverseIdentity):
        underlying = composite.underlying
    else:
        underlying = composite.sid
    security_type, market = composite.sid.security_type, composite.sid.market
    return UniverseIdentity(
        sid=SecurityIdentifier(UNIVERSE_TAG, security_type, market),
        token=_identifier_token(UNIVERSE_TAG, security_type, market),
        underlying=underlying,
    )


class CompositeSymbolResolver:
    """Resolves composite identities into universe identities.

    Holds no state besides the namespace tag; kept as a class so callers can
    inject it where an object seam is expected.
    """

    tag = UNIVERSE_TAG

    def resolve(
        self,
        composite: CompositeIdentity | UniverseIdentity,
    ) -> UniverseIdentity:
        return resolve_universe_identity(composite)

    def is_universe(self, identity: CompositeIdentity | UniverseIdentity) -> bool:
        """True if ``identity`` already carries the universe namespace tag."""
        return is_universe_identity(identity)
