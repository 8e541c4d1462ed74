"""Run Kusto queries from notebooks and infer charts from their results."""

__version__ = "0.1.0"
