"""Audit trail: models, storage, best-effort logger, and query CLI."""

from dealflow.audit.cli import build_parser
from dealflow.audit.logger import AuditLogger
from dealflow.audit.models import SYSTEM_ACTOR, AuditEntry, EventKind
from dealflow.audit.store import (
    close_audit_db,
    init_audit_db,
    insert_audit_entry,
    query_audit_trail,
)

__all__ = [
    "SYSTEM_ACTOR",
    "AuditEntry",
    "AuditLogger",
    "EventKind",
    "build_parser",
    "close_audit_db",
    "init_audit_db",
    "insert_audit_entry",
    "query_audit_trail",
]
