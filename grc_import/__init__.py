"""Tabular import pipeline for GRC / vendor-risk data (controls, vendors, questions, backups)."""

__version__ = "0.1.0"
