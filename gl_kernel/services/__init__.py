"""Services for the GL kernel (write side)."""

from gl_kernel.services.account_registry import AccountRegistry
from gl_kernel.services.gl_posting_service import (
    GLPostingService,
    PostingResult,
    ResultStatus,
)
from gl_kernel.services.journal_builder import JournalBuilder
from gl_kernel.services.posting_engine import PostingEngine, PostingOutcome, PostingStatus
from gl_kernel.services.reversal_engine import ReversalEngine

__all__ = [
    "AccountRegistry",
    "GLPostingService",
    "JournalBuilder",
    "PostingEngine",
    "PostingOutcome",
    "PostingResult",
    "PostingStatus",
    "ResultStatus",
    "ReversalEngine",
]
