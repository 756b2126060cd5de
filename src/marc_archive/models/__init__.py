"""Data models for marc-archive.

This module contains Pydantic models for the records extracted from the archive.
"""

from marc_archive.models.records import MailingList, MessageContent, MessageStub

__all__ = ["MailingList", "MessageContent", "MessageStub"]
