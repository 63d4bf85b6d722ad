"""Document loaders — thin wrappers around LangChain document loaders.

Only PDF and DOCX uploads are supported.  The extension is checked for
every path before any file is opened, so a batch containing an
unsupported file fails fast without touching the disk.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from langchain_community.document_loaders import Docx2txtLoader, PyPDFLoader

from session_rag.errors import NoDocumentsLoaded, UnsupportedFileType

if TYPE_CHECKING:
    from langchain_core.documents import Document

logger = logging.getLogger(__name__)

# Extension → loader class.  Each loader takes a path and exposes ``load()``.
LOADERS = {
    ".pdf": PyPDFLoader,
    ".docx": Docx2txtLoader,
}

SUPPORTED_EXTENSIONS = frozenset(LOADERS)


def is_supported(filename: str | Path) -> bool:
    """Return ``True`` when *filename* has a PDF or DOCX extension."""
    return Path(filename).suffix.lower() in SUPPORTED_EXTENSIONS


def check_supported(paths: list[str | Path]) -> None:
    """Raise :class:`UnsupportedFileType` for the first unsupported path."""
    for path in paths:
        if not is_supported(path):
            raise UnsupportedFileType(Path(path).suffix.lower())


def load_document(path: str | Path) -> list[Document]:
    """Load a single PDF or DOCX file.

    PDFs yield one ``Document`` per page; DOCX files yield one.  The
    ``source`` metadata always holds the file path.
    """
    path = Path(path)
    loader_cls = LOADERS.get(path.suffix.lower())
    if loader_cls is None:
        raise UnsupportedFileType(path.suffix.lower())

    documents = loader_cls(str(path)).load()
    for doc in documents:
        doc.metadata["source"] = str(path)
    logger.info("Loaded %d document part(s) from %s", len(documents), path.name)
    return documents


def load_documents(paths: list[str | Path]) -> tuple[list[Document], list[Path]]:
    """Load every file in *paths*, skipping the ones that fail.

    Returns
    -------
    tuple[list[Document], list[Path]]
        All loaded documents, and the paths that loaded successfully.

    Raises
    ------
    UnsupportedFileType
        If any path has an unsupported extension (checked up front).
    NoDocumentsLoaded
        If no file could be loaded.
    """
    check_supported(paths)

    documents: list[Document] = []
    loaded: list[Path] = []
    for path in paths:
        try:
            docs = load_document(path)
        except Exception:
            logger.warning("Failed to load %s, skipping", path, exc_info=True)
            continue
        if not any(doc.page_content.strip() for doc in docs):
            logger.warning("No text extracted from %s, skipping", path)
            continue
        documents.extend(docs)
        loaded.append(Path(path))

    logger.info("Total documents loaded: %d from %d files", len(loaded), len(paths))
    if not loaded:
        raise NoDocumentsLoaded()
    return documents, loaded
