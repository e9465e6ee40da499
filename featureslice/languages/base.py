"""Protocol for source extractors."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from featureslice.languages.models import ParseResult


class LanguageParser(Protocol):
    """Extracts exports and import specifiers from one module.

    ``relative`` is the POSIX path under the source root. It drives kind
    inference (a file under ``pages/`` is a page) and is echoed back in
    parse errors, so callers pass it for both disk and staged text.
    """

    def parse(self, file: Path, relative: str) -> ParseResult:
        """Read ``file`` as UTF-8 and extract it."""
        ...

    def parse_text(self, text: str, relative: str) -> ParseResult:
        """Extract from text already in memory, e.g. a rewritten module."""
        ...

    def supports(self, file: Path) -> bool:
        """True when ``file`` has an extension this extractor reads."""
        ...
