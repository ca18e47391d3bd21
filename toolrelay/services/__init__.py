# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Services: chat completions, token analysis, audit recording.
"""

from .analysis import TokenAnalysisService
from .audit import AuditRecorder
from .container import ServiceContainer
from .emitter import AtomicEmitter, IncrementalEmitter
from .orchestrator import ChatCompletionService, ChatRequest

__all__ = [
    "AtomicEmitter",
    "AuditRecorder",
    "ChatCompletionService",
    "ChatRequest",
    "IncrementalEmitter",
    "ServiceContainer",
    "TokenAnalysisService",
]
