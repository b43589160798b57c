"""Tabular store adapter: HTTP client for the ledger / plan endpoints.

The store exposes three read endpoints returning ``{headers, rows}`` and
two write endpoints.  Every failure (transport error, non-2xx status, or
a JSON body carrying an ``error`` field) is raised as
:class:`~household_budget.errors.StoreError` with the server's message
kept verbatim.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

import requests

from . import config
from .errors import StoreError
from .grid import TableResponse
from .logging_setup import get_logger

logger = get_logger(__name__)

TRANSACTIONS_PATH = '/api/transactions'
PLAN_PATH = '/api/plan'
FORECAST_WRITE_PATH = '/api/forecastWrite'
PLAN_WRITE_PATH = '/api/planWrite'

APP_KEY_HEADER = 'x-app-key'

CellValue = Union[float, int, str]


def column_letter(col: int) -> str:
    """1-based column index to spreadsheet letters (1 -> A, 27 -> AA)."""
    if col < 1:
        raise ValueError(f"Column index must be positive, got {col}")
    letters = ''
    n = col
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord('A') + rem) + letters
    return letters


def a1_notation(sheet: str, row: int, col: int) -> str:
    """``PLAN!C14`` style address for a 1-based row/column."""
    return f"{sheet}!{column_letter(col)}{row}"


@dataclass(frozen=True)
class CellUpdate:
    """One cell write; ``row`` and ``col`` are 1-based (column A = 1)."""

    row: int
    col: int
    value: CellValue

    def validate(self) -> None:
        for name, index in (('row', self.row), ('col', self.col)):
            if isinstance(index, bool) or not isinstance(index, (int, float)):
                raise StoreError(f"bad_update_shape: {name}={index!r}")
            if not math.isfinite(index) or index < 1:
                raise StoreError(f"bad_update_shape: {name}={index!r}")

    def to_payload(self) -> Dict[str, Any]:
        return {'row': int(self.row), 'col': int(self.col), 'value': self.value}


class SheetStoreClient:
    """Client for the household spreadsheet service.

    Args:
        base_url: Service root, defaults to ``HOUSEHOLD_BUDGET_API_URL``
        app_key: Shared secret sent as ``x-app-key``; omitted when empty
        timeout: Per-request timeout in seconds
        session: Optional ``requests.Session`` (tests pass a fake)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        app_key: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or config.get_api_base_url()).rstrip('/')
        self.app_key = config.APP_KEY if app_key is None else app_key
        self.timeout = config.REQUEST_TIMEOUT if timeout is None else timeout
        self.session = session or requests.Session()

    def _headers(self, json_body: bool = False) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if json_body:
            headers['Content-Type'] = 'application/json'
        if self.app_key:
            headers[APP_KEY_HEADER] = self.app_key
        return headers

    @staticmethod
    def _cache_buster() -> Dict[str, int]:
        return {'cb': int(time.time() * 1000)}

    def _send(self, method: str, url: str, prefix: str, **kwargs: Any) -> requests.Response:
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise StoreError(f"{prefix} request failed: {exc}") from exc
        if not response.ok:
            detail = (response.text or '').strip()
            message = f"{prefix} HTTP {response.status_code}"
            if detail:
                message = f"{message} {detail}"
            raise StoreError(message, status_code=response.status_code)
        return response

    def _json(self, response: requests.Response, prefix: str) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise StoreError(f"{prefix} returned invalid JSON") from exc
        if isinstance(payload, dict) and payload.get('error'):
            raise StoreError(str(payload['error']), status_code=response.status_code)
        return payload if isinstance(payload, dict) else {}

    def _read_table(self, path: str, prefix: str) -> TableResponse:
        response = self._send(
            'GET', f"{self.base_url}{path}", prefix,
            headers=self._headers(), params=self._cache_buster(),
        )
        table = TableResponse.from_payload(self._json(response, prefix))
        logger.info("Read %d rows from %s", len(table.rows), path)
        return table

    def read_transactions(self) -> TableResponse:
        """All rows of the transactions range."""
        return self._read_table(TRANSACTIONS_PATH, 'LEDGER')

    def read_plan_table(self) -> TableResponse:
        """The PLAN worksheet as a free-form ``{headers, rows}`` grid."""
        return self._read_table(PLAN_PATH, 'PLAN')

    def read_published_csv(self, url: Optional[str] = None) -> str:
        """Fetch a published-to-web CSV export (the plan sheet) as text."""
        target = url or config.PLAN_CSV_URL
        if not target:
            raise StoreError("No published plan CSV URL configured")
        response = self._send('GET', target, 'PLAN', params=self._cache_buster())
        return response.text

    def write_cells(self, updates: Iterable[CellUpdate]) -> Dict[str, Any]:
        """Write a batch of cell updates in one request.

        The whole batch is validated before anything is sent, so a bad
        address never produces a partial write.
        """
        batch: List[CellUpdate] = list(updates)
        if not batch:
            raise StoreError("missing_updates")
        for update in batch:
            update.validate()

        response = self._send(
            'POST', f"{self.base_url}{FORECAST_WRITE_PATH}", 'WRITE',
            headers=self._headers(json_body=True),
            params=self._cache_buster(),
            json={'updates': [u.to_payload() for u in batch]},
        )
        result = self._json(response, 'WRITE')
        logger.info("Wrote %d cells", len(batch))
        return result

    def write_plan_inputs(
        self,
        add_income: CellValue = '',
        add_fixed: CellValue = '',
        weekly_earner_pay: CellValue = '',
        biweekly_earner_pay: CellValue = '',
        add_disc: CellValue = '',
    ) -> Dict[str, Any]:
        """Overwrite the five plan input cells (income, fixed, two pay rates, discretionary)."""
        body = {
            'addInc': add_income,
            'addFix': add_fixed,
            'austinPay': weekly_earner_pay,
            'jennaPay': biweekly_earner_pay,
            'descrAdd': add_disc,
        }
        response = self._send(
            'POST', f"{self.base_url}{PLAN_WRITE_PATH}", 'PLAN WRITE',
            headers=self._headers(json_body=True),
            json=body,
        )
        return self._json(response, 'PLAN WRITE')
