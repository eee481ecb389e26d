"""
Pytest fixtures for the maintenance KPI service tests.
"""
import os
import sys
import pytest

# Add the project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from maintenance_kpis.services.kpi_service import UsageRecord


class FakeAppSheetClient:
    """Stand-in for AppSheetClient that serves fixed rows."""

    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.calls = 0

    def fetch_work_orders(self):
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.rows)

    def fetch_all_rows(self):
        return self.fetch_work_orders()


class FakeSheetsClient:
    """Stand-in for SheetsClient that serves fixed usage records."""

    def __init__(self, records=None, error=None):
        self.records = records or []
        self.error = error
        self.calls = 0

    def fetch_usage(self):
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.records)


@pytest.fixture
def work_orders():
    """Work orders as AppSheet returns them (mixed column spellings and date formats)."""
    return [
        {"Maquina": "Estufa", "Prioridad": "1",
         "Fecha Pedido": "2024-06-10 08:00:00", "Fecha Reparacion": "2024-06-10 14:00:00"},
        # trailing space still matches; same-day repair gives no usable repair time
        {"Maquina": "Estufa ", "Prioridad": "3",
         "Fecha Pedido": "15/06/2024", "Fecha Reparacion": "15/06/2024"},
        {"MAQUINA": "Guillotina - PS - GT 01", "PRIORIDAD": "2",
         "FECHA PEDIDO": "2024-07-01", "FECHA REPARACION": "2024-07-03"},
        # case differs from the machine key, never matched
        {"Maquina": "estufa", "Prioridad": "2", "Fecha Pedido": "2024-06-11"},
        # repaired "before" it was requested
        {"Maquina": "Estufa", "Fecha Pedido": "2023-12-20", "Fecha Reparacion": "2023-12-19"},
    ]


@pytest.fixture
def usage_records():
    return [
        UsageRecord(date="2024-06-10", machine="Estufa", minutes=600),
        UsageRecord(date="15/06/2024", machine="Estufa", minutes=300),
        UsageRecord(date="2024-07-01", machine="Guillotina - PS - GT 01", minutes=1200),
        UsageRecord(date="2023-12-20", machine="Estufa", minutes=120),
    ]


@pytest.fixture
def appsheet_client(work_orders):
    return FakeAppSheetClient(rows=work_orders)


@pytest.fixture
def sheets_client(usage_records):
    return FakeSheetsClient(records=usage_records)


@pytest.fixture
def app(appsheet_client, sheets_client):
    """Create and configure a test application instance."""
    from maintenance_kpis import create_app

    flask_app = create_app('testing', appsheet_client=appsheet_client, sheets_client=sheets_client)
    flask_app.config.update({
        'TESTING': True,
    })

    yield flask_app


@pytest.fixture
def client(app):
    """Create a test client for the application."""
    return app.test_client()
