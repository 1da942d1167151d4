"""Services for external integrations."""

from studyhub.services.accounts import AccountService
from studyhub.services.pdf_processor import pdf_processor
from studyhub.services.storage import NoteStorage, get_storage

__all__ = ["AccountService", "NoteStorage", "get_storage", "pdf_processor"]
