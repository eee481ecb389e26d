"""
Provider clients for the two external data sources:
- AppSheet ``OTs`` table (work orders: failure request and repair dates)
- Google Sheets ``USO MAQUINA POR DIA`` tab (daily operating minutes), read
  through the gviz CSV export

Both clients raise ConfigurationError before any request when a required
identifier is missing, and RetrievalError for anything that goes wrong on
the wire. Neither retries.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from maintenance_kpis.config import WORK_ORDER_FIELDS
from maintenance_kpis.errors import ConfigurationError, RetrievalError
from maintenance_kpis.services.kpi_service import UsageRecord
from maintenance_kpis.services.parsing import normalize_header, parse_csv_line, parse_minutes

logger = logging.getLogger(__name__)


@dataclass
class RecordSnapshot:
    """Raw records from both providers, fetched together."""
    work_orders: List[Dict[str, Any]]
    usage: List[UsageRecord]
    fetched_at: datetime = field(default_factory=datetime.now)


class AppSheetClient:
    """Reads work orders through the AppSheet ``Find`` action."""

    provider = 'AppSheet'

    def __init__(
        self,
        app_id: str,
        access_key: Optional[str],
        table: str = 'OTs',
        base_url: str = 'https://api.appsheet.com/api/v2',
        timeout: int = 30,
        session: Optional[requests.Session] = None
    ):
        self.app_id = app_id
        self.access_key = access_key
        self.table = table
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, config: Dict[str, Any], session: Optional[requests.Session] = None) -> 'AppSheetClient':
        return cls(
            app_id=config.get('APPSHEET_APP_ID'),
            access_key=config.get('APPSHEET_ACCESS_KEY'),
            table=config.get('APPSHEET_TABLE', 'OTs'),
            base_url=config.get('APPSHEET_BASE_URL', 'https://api.appsheet.com/api/v2'),
            timeout=config.get('REQUEST_TIMEOUT', 30),
            session=session
        )

    @property
    def action_url(self) -> str:
        return f"{self.base_url}/apps/{self.app_id}/tables/{quote(self.table)}/Action"

    def fetch_work_orders(self) -> List[Dict[str, Any]]:
        """Fetch the columns the KPI calculation needs."""
        return self._find({'Locale': 'en-US', 'Fields': WORK_ORDER_FIELDS})

    def fetch_all_rows(self) -> List[Dict[str, Any]]:
        """Fetch every column of every row (diagnostics only)."""
        return self._find({'Locale': 'en-US'})

    def _find(self, properties: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not self.access_key:
            raise ConfigurationError("APPSHEET_ACCESS_KEY environment variable is not set")
        if not self.app_id:
            raise ConfigurationError("APPSHEET_APP_ID environment variable is not set")

        try:
            response = self._session.post(
                self.action_url,
                headers={
                    'ApplicationAccessKey': self.access_key,
                    'Content-Type': 'application/json',
                    'Accept': 'application/json'
                },
                json={'Action': 'Find', 'Properties': properties, 'Rows': []},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise RetrievalError(f"AppSheet request failed: {e}", self.provider) from e

        body = response.text or ''
        logger.info(f"AppSheet status: {response.status_code} | length: {len(body)}")

        if not body.strip():
            raise RetrievalError(
                f"AppSheet returned an empty response (status {response.status_code}). "
                f"Key used: ...{self.access_key[-6:]}",
                self.provider,
                response.status_code
            )

        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise RetrievalError(
                f"AppSheet returned invalid JSON (status {response.status_code}): {body[:400]}",
                self.provider,
                response.status_code
            ) from e

        if not response.ok:
            raise RetrievalError(
                f"AppSheet error {response.status_code}: {json.dumps(data)[:400]}",
                self.provider,
                response.status_code
            )

        if isinstance(data, list):
            return data
        if isinstance(data, dict) and isinstance(data.get('Rows'), list):
            return data['Rows']
        raise RetrievalError(f"AppSheet returned an unexpected format: {json.dumps(data)[:300]}", self.provider)


class SheetsClient:
    """Reads the daily usage tab of a Google Sheet as CSV."""

    provider = 'Google Sheets'

    def __init__(
        self,
        sheet_id: Optional[str],
        sheet_name: str = 'USO MAQUINA POR DIA',
        timeout: int = 30,
        session: Optional[requests.Session] = None
    ):
        self.sheet_id = sheet_id
        self.sheet_name = sheet_name
        self.timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, config: Dict[str, Any], session: Optional[requests.Session] = None) -> 'SheetsClient':
        return cls(
            sheet_id=config.get('SHEET_ID'),
            sheet_name=config.get('USAGE_SHEET_NAME', 'USO MAQUINA POR DIA'),
            timeout=config.get('REQUEST_TIMEOUT', 30),
            session=session
        )

    @property
    def export_url(self) -> str:
        return (
            f"https://docs.google.com/spreadsheets/d/{self.sheet_id}/gviz/tq"
            f"?tqx=out:csv&sheet={quote(self.sheet_name, safe='')}"
        )

    def fetch_usage(self) -> List[UsageRecord]:
        if not self.sheet_id:
            raise ConfigurationError("SHEET_ID environment variable is not set")

        try:
            response = self._session.get(self.export_url, timeout=self.timeout)
        except requests.RequestException as e:
            raise RetrievalError(f"Google Sheets request failed: {e}", self.provider) from e

        if not response.ok:
            raise RetrievalError(f"Google Sheets {response.status_code}", self.provider, response.status_code)

        records = parse_usage_csv(response.text or '')
        logger.info(f"Google Sheets usage rows: {len(records)}")
        return records


def _find_column(headers: List[str], contains: str, equals: str) -> int:
    for index, header in enumerate(headers):
        if contains in header or header == equals:
            return index
    return -1


def parse_usage_csv(csv_text: str) -> List[UsageRecord]:
    """
    Turn the usage export into records.

    Columns are located by header name rather than position; rows without a
    date or machine are skipped and unreadable minutes count as 0.
    """
    lines = csv_text.strip().splitlines()
    if not lines:
        raise RetrievalError("Google Sheets returned an empty body", SheetsClient.provider)
    if len(lines) < 2:
        return []

    headers = [normalize_header(h) for h in parse_csv_line(lines[0])]
    date_idx = _find_column(headers, 'fecha', 'date')
    machine_idx = _find_column(headers, 'maquina', 'machine')
    time_idx = _find_column(headers, 'tiempo', 'time')

    if date_idx < 0 or machine_idx < 0:
        raise RetrievalError(
            f"Google Sheets usage tab is missing a date or machine column: {lines[0][:200]}",
            SheetsClient.provider
        )

    def cell(values: List[str], index: int) -> str:
        return values[index] if 0 <= index < len(values) else ''

    records = []
    for line in lines[1:]:
        values = parse_csv_line(line)
        date = cell(values, date_idx).strip()
        machine = cell(values, machine_idx).strip()
        if date and machine:
            records.append(UsageRecord(date=date, machine=machine, minutes=parse_minutes(cell(values, time_idx))))
    return records


def fetch_snapshot(appsheet: AppSheetClient, sheets: SheetsClient) -> RecordSnapshot:
    """Fetch both sources in parallel; a failure in either aborts the whole fetch."""
    with ThreadPoolExecutor(max_workers=2) as executor:
        work_orders_future = executor.submit(appsheet.fetch_work_orders)
        usage_future = executor.submit(sheets.fetch_usage)
        work_orders = work_orders_future.result()
        usage = usage_future.result()

    logger.info(f"Fetched {len(work_orders)} work orders and {len(usage)} usage rows")
    return RecordSnapshot(work_orders=work_orders, usage=usage)
