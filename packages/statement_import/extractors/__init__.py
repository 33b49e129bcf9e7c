"""Extraction collaborators.

An extractor turns one statement payload plus the category lookup into the
collaborator's raw text response. It does not validate rows; that happens in
:mod:`statement_import.extraction`. Two implementations ship:

- :class:`OpenAIStatementExtractor` calls the OpenAI Responses API directly.
- :class:`HttpStatementExtractor` posts to a remote extraction service.
"""

from __future__ import annotations

from .base import ExtractionRequest, StatementExtractor
from .http_extractor import HttpStatementExtractor
from .openai_extractor import OpenAIStatementExtractor

__all__ = [
    "ExtractionRequest",
    "StatementExtractor",
    "HttpStatementExtractor",
    "OpenAIStatementExtractor",
]
