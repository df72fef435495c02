"""Utilities shared by hosts of the form engine."""

from .diagnostics import DiagnosticCollector
from .logging_setup import configure_logging

__all__ = ['DiagnosticCollector', 'configure_logging']
