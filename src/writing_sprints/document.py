"""Document text sources and word-count approximation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from .exceptions import DocumentUnavailableError

# Average characters per word, spaces included
CHARS_PER_WORD = 5


def approximate_word_count(text: str) -> float:
    """Approximate the number of words in ``text`` from its length.

    Tokenizing the whole document on every poll is too expensive, so the
    length divided by a fixed average word size stands in for a real count.
    """
    return len(text) / CHARS_PER_WORD


class DocumentSource(ABC):
    """Abstract base class for the text of a tracked document."""

    @abstractmethod
    def get_text(self) -> str:
        """Return the full current document text.

        Raises:
            DocumentUnavailableError: The text cannot be read
        """


class StaticDocument(DocumentSource):
    """In-memory document whose text the host updates directly."""

    def __init__(self, text: str = ""):
        self.text = text

    def get_text(self) -> str:
        return self.text


class TextFileDocument(DocumentSource):
    """Document read from a text file on every poll."""

    def __init__(self, path: Path, encoding: str = "utf-8"):
        self.path = path
        self.encoding = encoding

    def get_text(self) -> str:
        try:
            return self.path.read_text(encoding=self.encoding)
        except (OSError, UnicodeDecodeError) as err:
            raise DocumentUnavailableError(f"Cannot read document {self.path}: {err}") from err
