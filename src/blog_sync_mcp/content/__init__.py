"""Local document storage and the front-matter codec."""

from .models import Document, FrontMatter, ReconcileReport
from .store import ContentStore

__all__ = ["ContentStore", "Document", "FrontMatter", "ReconcileReport"]
