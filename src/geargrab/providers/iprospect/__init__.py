"""iProspectCheck screening provider."""

from .provider import (
    PACKAGE_CODES,
    IProspectCheckProvider,
    build_report_payload,
    parse_report,
)

__all__ = ["PACKAGE_CODES", "IProspectCheckProvider", "build_report_payload", "parse_report"]
