"""
ExamDash - admin client for the test-preparation platform

Offline-first API access: mutations made without a connection are queued
and replayed on reconnect, GET responses are cached with an expiry.
"""

__version__ = "1.0.0"
