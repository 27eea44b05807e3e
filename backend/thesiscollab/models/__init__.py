from .document import Document
from .document_collaborator import DocumentCollaborator
from .document_version import DocumentVersion
from .comment import VersionComment
from .document_event import DocumentEvent

__all__ = [
    "Document",
    "DocumentCollaborator",
    "DocumentVersion",
    "VersionComment",
    "DocumentEvent",
]
