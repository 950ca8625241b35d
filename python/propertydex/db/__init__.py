"""PropertyDex storage layer.

A DuckDB-backed key-value table stands in for browser local storage;
the snapshot store layers the five JSON collections (profiles, roles,
investments, orders, transactions) on top of it.
"""
