"""Error taxonomy shared by every layer.

Each error carries the HTTP status the serving layer maps it to, so the
core never imports FastAPI and the transport never inspects messages.
"""

from __future__ import annotations


class SessionRAGError(Exception):
    """Base class for all handled failures."""

    status_code: int = 500

    def __init__(self, message: str = "") -> None:
        if not message:
            # Default message is the first docstring line.
            message = (type(self).__doc__ or type(self).__name__).strip().splitlines()[0]
        super().__init__(message)
        self.message = message


class ValidationError(SessionRAGError):
    """Bad input shape."""

    status_code = 400


class UnsupportedFileType(ValidationError):
    """Invalid file type. Only PDF and DOCX files are allowed."""

    def __init__(self, extension: str) -> None:
        super().__init__(
            f"Invalid file type: {extension or '<none>'!r}. Only PDF and DOCX files are allowed."
        )
        self.extension = extension


class SessionNotFound(SessionRAGError):
    """Session not found or expired."""

    status_code = 404

    def __init__(self, session_id: str = "") -> None:
        super().__init__("Session not found or expired")
        self.session_id = session_id


class NoDocumentsUploaded(SessionRAGError):
    """No documents uploaded. Please upload documents first."""

    status_code = 400


class NoDocumentsLoaded(SessionRAGError):
    """No documents could be loaded."""

    status_code = 400


class ProviderError(SessionRAGError):
    """Embedding, generation or vector-index backend failure."""

    status_code = 500
    public_message = "An unexpected error occurred"


class ResourceCleanupError(SessionRAGError):
    """A file owned by a session could not be deleted.

    Only ever logged; never surfaced to a client.
    """
