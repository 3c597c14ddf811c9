"""
Luno REST client - one method per API endpoint.

Every public method validates its arguments synchronously and returns an
awaitable from the request executor, so a bad call raises
``LunoArgumentError`` at the call site before anything touches the network::

    client = LunoClient(key="...", secret="...")
    ticker = await client.get_ticker()
    order = await client.post_order("bid", "0.01", "1200000")

Failures:
- ``LunoArgumentError``: missing/empty required argument or bad enum value
- ``LunoAPIError`` (and subclasses): non-2xx response, ``status``/``message``
- ``httpx.TransportError``: network failure, propagated as raised
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Dict, Optional, Tuple, Union
from urllib.parse import quote

import httpx

from luno.core.logger import get_logger
from luno.exchange.exceptions import LunoArgumentError
from luno.exchange.request import (
    BodyEncoding,
    RequestDescriptor,
    RequestExecutor,
    build_header_template,
)

if TYPE_CHECKING:
    from luno.core.config import LunoConfig

logger = get_logger("luno.client")

DEFAULT_BASE_URL = "https://api.mybitx.com"
DEFAULT_PAIR = "XBTZAR"

LIMIT_ORDER_TYPES = ("BID", "ASK")
MARKET_SIDES = ("BUY", "SELL")

# Unit used when a datetime is passed as ``since``. The two trade endpoints
# differ upstream and must not be unified.
TRADES_SINCE_UNIT = "ms"
TRADES_LIST_SINCE_UNIT = "s"

Since = Union[int, float, str, datetime, date, None]


# ---------------------------------------------------------------------------
# Argument helpers
# ---------------------------------------------------------------------------

def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _require(operation: str, name: str, value: Any) -> Any:
    if _is_missing(value):
        raise LunoArgumentError(operation, f"{name} is required")
    return value


def _choice(operation: str, name: str, value: Any, allowed: Tuple[str, ...]) -> str:
    normalized = "" if value is None else str(value).strip().upper()
    if normalized not in allowed:
        raise LunoArgumentError(operation, f"{name} should be {' or '.join(allowed)}")
    return normalized


def _segment(value: Any) -> str:
    return quote(str(value).strip(), safe="")


def to_timestamp(value: Since, unit: str) -> Any:
    """Convert a datetime/date to a Unix timestamp in ``unit`` ("s" or "ms").

    Other values pass through untouched. Dates are taken as UTC midnight.
    """
    if isinstance(value, datetime):
        ts = value.timestamp()
    elif isinstance(value, date):
        ts = datetime(value.year, value.month, value.day, tzinfo=timezone.utc).timestamp()
    else:
        return value
    if unit == "ms":
        return int(round(ts * 1000))
    return int(ts)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class LunoClient:
    """Async client for the Luno exchange REST API."""

    def __init__(
        self,
        key: Optional[str] = None,
        secret: Optional[str] = None,
        *,
        default_pair: Optional[str] = None,
        version: Union[str, int] = "1",
        base_url: str = DEFAULT_BASE_URL,
        body_encoding: Union[BodyEncoding, str] = BodyEncoding.FORM,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        key = (key or "").strip()
        secret = (secret or "").strip()
        if bool(key) != bool(secret):
            raise LunoArgumentError("LunoClient", "key and secret must be supplied together")

        self.default_pair = (default_pair or DEFAULT_PAIR).strip() or DEFAULT_PAIR
        self.version = str(version).strip()
        self.base_url = f"{(base_url or DEFAULT_BASE_URL).rstrip('/')}/api/{self.version}"
        self._executor = RequestExecutor(
            self.base_url,
            build_header_template(key, secret),
            encoding=BodyEncoding(body_encoding),
            timeout=timeout,
            transport=transport,
        )
        logger.debug(
            "Luno client created",
            base_url=self.base_url,
            default_pair=self.default_pair,
            authenticated=bool(key),
            body_encoding=self._executor.encoding.value,
        )

    @classmethod
    def from_config(
        cls,
        config: "LunoConfig",
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "LunoClient":
        return cls(
            key=config.credentials.key,
            secret=config.credentials.secret,
            default_pair=config.exchange.default_pair,
            version=config.exchange.version,
            base_url=config.exchange.base_url,
            body_encoding=config.exchange.body_encoding,
            timeout=config.exchange.timeout_seconds,
            transport=transport,
        )

    @property
    def authenticated(self) -> bool:
        return "Authorization" in self._executor.headers

    @property
    def body_encoding(self) -> BodyEncoding:
        return self._executor.encoding

    async def initialize(self) -> None:
        """Open a pooled HTTP client shared by subsequent calls."""
        await self._executor.initialize()

    async def close(self) -> None:
        await self._executor.close()

    async def __aenter__(self) -> "LunoClient":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _request(
        self,
        path: str,
        *,
        method: Optional[str] = None,
        query: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Awaitable[Any]:
        return self._executor.execute(
            RequestDescriptor(path=path, method=method, query=query, data=data)
        )

    def _pair(self, pair: Optional[str]) -> str:
        return self.default_pair if _is_missing(pair) else str(pair).strip()

    # ------------------------------------------------------------------
    # Market data
    # ------------------------------------------------------------------

    def get_ticker(self, pair: Optional[str] = None) -> Awaitable[Any]:
        """Latest ticker indicators for ``pair`` (default pair if omitted)."""
        return self._request("/ticker", query={"pair": self._pair(pair)})

    def get_all_tickers(self) -> Awaitable[Any]:
        """Latest ticker indicators from all active Luno exchanges."""
        return self._request("/tickers")

    def get_order_book(self, pair: Optional[str] = None) -> Awaitable[Any]:
        return self._request("/orderbook", query={"pair": self._pair(pair)})

    def get_trades(self, since: Since = None, pair: Optional[str] = None) -> Awaitable[Any]:
        """
        Most recent public trades, at most 100 per call.

        ``since`` may be a datetime/date (sent as Unix milliseconds) or an
        already-encoded timestamp.
        """
        return self._request(
            "/trades",
            query={"pair": self._pair(pair), "since": to_timestamp(since, TRADES_SINCE_UNIT)},
        )

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def create_account(self, name: str, currency: str) -> Awaitable[Any]:
        """Create an additional account for ``currency`` labelled ``name``."""
        op = "create_account"
        _require(op, "name", name)
        _require(op, "currency", currency)
        return self._request("/accounts", data={"currency": currency, "name": name})

    def get_balances(self) -> Awaitable[Any]:
        return self._request("/balance")

    def get_transactions(
        self,
        account_id: Union[str, int],
        min_row: Union[str, int] = -100,
        max_row: Union[str, int] = 0,
    ) -> Awaitable[Any]:
        """
        Transaction entries for an account, by row range.

        ``min_row`` is inclusive and ``max_row`` exclusive; the defaults fetch
        the 100 most recent rows.
        """
        _require("get_transactions", "account_id", account_id)
        return self._request(
            f"/accounts/{_segment(account_id)}/transactions",
            query={"min_row": min_row, "max_row": max_row},
        )

    def get_pending_transactions(self, account_id: Union[str, int]) -> Awaitable[Any]:
        _require("get_pending_transactions", "account_id", account_id)
        return self._request(f"/accounts/{_segment(account_id)}/pending")

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def get_order_list(self, state: Optional[str] = None, pair: Optional[str] = None) -> Awaitable[Any]:
        """Most recently placed orders, optionally filtered by state and pair."""
        return self._request("/listorders", query={"state": state, "pair": pair})

    def post_order(
        self,
        type: str,
        volume: Union[str, int, float],
        price: Union[str, int, float],
        pair: Optional[str] = None,
    ) -> Awaitable[Any]:
        """
        Place a limit order.

        Args:
            type: "BID" (buy) or "ASK" (sell), case-insensitive.
            volume: Amount of the base currency as a decimal string, e.g. "1.423".
            price: Limit price in the counter currency, e.g. "1200".
            pair: Currency pair; defaults to the client's default pair.
        """
        op = "post_order"
        order_type = _choice(op, "type", type, LIMIT_ORDER_TYPES)
        _require(op, "volume", volume)
        _require(op, "price", price)
        return self._request(
            "/postorder",
            data={
                "type": order_type,
                "volume": volume,
                "price": price,
                "pair": self._pair(pair),
            },
        )

    def post_market_order(
        self,
        type: str,
        volume: Union[str, int, float],
        pair: Optional[str] = None,
    ) -> Awaitable[Any]:
        """
        Place a market order.

        For "BUY" ``volume`` is the counter currency amount to spend
        (``counter_volume``); for "SELL" it is the base currency amount to sell
        (``base_volume``).
        """
        op = "post_market_order"
        side = _choice(op, "type", type, MARKET_SIDES)
        _require(op, "volume", volume)
        data: Dict[str, Any] = {"type": side, "pair": self._pair(pair)}
        if side == "BUY":
            data["counter_volume"] = volume
        else:
            data["base_volume"] = volume
        return self._request("/marketorder", data=data)

    def stop_order(self, order_id: str) -> Awaitable[Any]:
        _require("stop_order", "order_id", order_id)
        return self._request("/stoporder", data={"order_id": order_id})

    def get_order(self, order_id: str) -> Awaitable[Any]:
        _require("get_order", "order_id", order_id)
        return self._request(f"/orders/{_segment(order_id)}")

    def get_trades_list(
        self,
        since: Since = None,
        limit: Optional[int] = None,
        pair: Optional[str] = None,
    ) -> Awaitable[Any]:
        """
        Your own recent trades for a pair, oldest first.

        A datetime/date ``since`` is sent as Unix seconds, unlike
        ``get_trades``.
        """
        return self._request(
            "/listtrades",
            query={
                "pair": self._pair(pair),
                "since": to_timestamp(since, TRADES_LIST_SINCE_UNIT),
                "limit": limit,
            },
        )

    def get_fee_info(self, pair: Optional[str] = None) -> Awaitable[Any]:
        """Fees and 30 day trading volume for a pair."""
        return self._request("/fee_info", query={"pair": self._pair(pair)})

    # ------------------------------------------------------------------
    # Receive addresses
    # ------------------------------------------------------------------

    def get_receive_address(self, asset: str, address: Optional[str] = None) -> Awaitable[Any]:
        """
        Receive address for ``asset`` with the amounts received through it.

        The default address is used unless ``address`` is given.
        """
        _require("get_receive_address", "asset", asset)
        return self._request("/funding_address", query={"asset": asset, "address": address})

    def create_receive_address(self, asset: str) -> Awaitable[Any]:
        _require("create_receive_address", "asset", asset)
        return self._request("/funding_address", data={"asset": asset})

    # ------------------------------------------------------------------
    # Withdrawals and sends
    # ------------------------------------------------------------------

    def get_withdrawal_requests(self) -> Awaitable[Any]:
        return self._request("/withdrawals")

    def request_withdrawal(
        self,
        type: str,
        amount: Union[str, int, float],
        beneficiary_id: Optional[str] = None,
    ) -> Awaitable[Any]:
        """
        Create a withdrawal request, e.g. ``request_withdrawal("ZAR_EFT", 1000)``.

        ``beneficiary_id`` selects the bank account and is only sent when given.
        """
        op = "request_withdrawal"
        _require(op, "type", type)
        _require(op, "amount", amount)
        data: Dict[str, Any] = {"type": type, "amount": amount}
        if not _is_missing(beneficiary_id):
            data["beneficiary_id"] = beneficiary_id
        return self._request("/withdrawals", data=data)

    def get_withdrawal_status(self, withdrawal_id: Union[str, int]) -> Awaitable[Any]:
        _require("get_withdrawal_status", "withdrawal_id", withdrawal_id)
        return self._request(f"/withdrawals/{_segment(withdrawal_id)}")

    def cancel_withdrawal_request(self, withdrawal_id: Union[str, int]) -> Awaitable[Any]:
        """Cancel a withdrawal; only possible while it is still PENDING."""
        _require("cancel_withdrawal_request", "withdrawal_id", withdrawal_id)
        return self._request(f"/withdrawals/{_segment(withdrawal_id)}", method="DELETE")

    def send(
        self,
        amount: Union[str, int, float],
        currency: str,
        address: str,
        description: Optional[str] = None,
        message: Optional[str] = None,
    ) -> Awaitable[Any]:
        """
        Send funds to a crypto address or email address.

        ``description`` is recorded on the account statement and ``message`` is
        delivered to email recipients; both are only sent when given.
        """
        op = "send"
        _require(op, "amount", amount)
        _require(op, "currency", currency)
        _require(op, "address", address)
        data: Dict[str, Any] = {"amount": amount, "currency": currency, "address": address}
        if not _is_missing(description):
            data["description"] = description
        if not _is_missing(message):
            data["message"] = message
        return self._request("/send", data=data)

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    def create_quote(
        self,
        type: str,
        amount: Union[str, int, float],
        pair: Optional[str] = None,
    ) -> Awaitable[Any]:
        """Create a quote to BUY or SELL ``amount`` of the pair's base currency."""
        op = "create_quote"
        side = _choice(op, "type", type, MARKET_SIDES)
        _require(op, "amount", amount)
        return self._request(
            "/quotes",
            data={"type": side, "base_amount": amount, "pair": self._pair(pair)},
        )

    def get_quote(self, quote_id: Union[str, int]) -> Awaitable[Any]:
        _require("get_quote", "quote_id", quote_id)
        return self._request(f"/quotes/{_segment(quote_id)}")

    def exercise_quote(self, quote_id: Union[str, int]) -> Awaitable[Any]:
        """Exercise a quote; fails upstream if expired or underfunded."""
        _require("exercise_quote", "quote_id", quote_id)
        return self._request(f"/quotes/{_segment(quote_id)}", method="PUT")

    def discard_quote(self, quote_id: Union[str, int]) -> Awaitable[Any]:
        _require("discard_quote", "quote_id", quote_id)
        return self._request(f"/quotes/{_segment(quote_id)}", method="DELETE")
