"""Observability helpers: structured logging configuration."""

from src.donation_sync.observability.logging import configure_structlog

__all__ = ["configure_structlog"]
