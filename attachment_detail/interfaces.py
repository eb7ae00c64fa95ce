# ============================================================================
# attachment_detail/interfaces.py
# ============================================================================

from abc import ABC, abstractmethod
from typing import Optional, Tuple
from email.message import Message


class EmailFormatParser(ABC):
    """Interface for format-specific email parsers."""

    @abstractmethod
    def can_parse(self, data: bytes, filename: Optional[str] = None) -> Tuple[bool, float]:
        """Check if this parser can handle the data. Returns (can_parse, confidence)."""
        pass

    @abstractmethod
    def parse(self, data: bytes, filename: Optional[str] = None) -> Optional[Message]:
        """Parse the data into an email Message object."""
        pass


class MimePart(ABC):
    """Interface for one node of a message's MIME tree as seen by the extractor."""

    @abstractmethod
    def get_header(self, name: str) -> Optional[str]:
        """Return the raw, undecoded value of the named header, or None when absent.

        Header names are matched case-insensitively.
        """
        pass
