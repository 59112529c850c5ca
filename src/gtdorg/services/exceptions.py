"""Exceptions raised by gtdorg services."""


class FileModifiedError(Exception):
    """Raised when a document changed on disk after it was read.

    gtdorg reads a whole document, computes the new lines and writes them
    back. If another program (usually the editor) saved the file in between,
    writing would silently drop that change, so the write is refused.

    Attributes:
        path: Path to the document that changed
        message: Human-readable error message
    """

    def __init__(self, path: str, message: str = "Document changed on disk since it was read"):
        self.path = path
        self.message = message
        super().__init__(f"{message}: {path}")


class DocumentNotFoundError(FileNotFoundError):
    """Raised when a document named on the command line or in config is missing."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Document not found: {path}")
