"""Checkr screening provider."""

from .provider import PACKAGES, CheckrProvider, parse_report

__all__ = ["PACKAGES", "CheckrProvider", "parse_report"]
