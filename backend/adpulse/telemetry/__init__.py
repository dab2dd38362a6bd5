"""
Telemetry Module
================

Observability for adpulse: Sentry error tracking. Logging uses the stdlib
`logging` module with one logger per file.

Usage:
    from adpulse.telemetry import init_sentry, capture_exception
"""

from adpulse.telemetry.sentry import capture_exception, init_sentry

__all__ = ["capture_exception", "init_sentry"]
