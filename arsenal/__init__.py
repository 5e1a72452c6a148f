"""Normalized weapon statistics: schema, ingestion, and query layers.

The `arsenal` app owns the seven relational tables, the one-pass ingestion
pipeline that fills them from a nested source document, and the lazily
evaluated query engine that feeds the pure `analysis` package.
"""
