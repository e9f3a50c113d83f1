"""
Logging module for the test runner.
This module provides the console formatter setup and the optional Grafana Loki handler.
"""

from .setup import setup_logging

__all__ = ["setup_logging"]
