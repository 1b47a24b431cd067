"""Presence / timesheet reconciliation engine.

This package is organized by feature modules (conversion, imports, coherence,
resolution, sync, ...) with a thin Flask controller layer on top of
service/repository layers.
"""
