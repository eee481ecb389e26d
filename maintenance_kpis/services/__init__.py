"""Data retrieval and KPI computation services."""
