# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Data layer: audit records and their stores.
"""

from .models import RequestRecord, ResponseRecord, TokenUsageRecord, ToolCallRecord
from .store import AuditStore, InMemoryAuditStore, create_audit_store

__all__ = [
    "RequestRecord",
    "ResponseRecord",
    "TokenUsageRecord",
    "ToolCallRecord",
    "AuditStore",
    "InMemoryAuditStore",
    "create_audit_store",
]
