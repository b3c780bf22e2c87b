"""Compliance notices sent to screened candidates."""

from .notifier import (
    ComplianceNotifier,
    NoticeSettings,
    OutboxComplianceNotifier,
    OutboxMessage,
    SendGridComplianceNotifier,
    create_compliance_notifier,
)
from .templates import RenderedNotice, render_pre_adverse_notice

__all__ = [
    "ComplianceNotifier",
    "NoticeSettings",
    "OutboxComplianceNotifier",
    "OutboxMessage",
    "RenderedNotice",
    "SendGridComplianceNotifier",
    "create_compliance_notifier",
    "render_pre_adverse_notice",
]
