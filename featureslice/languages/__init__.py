"""
Language extractors: pull exports, imports and call arguments from source.

This module provides the extraction layer that converts source files into
structured data (exported symbols and import statements) for indexing.

Components:
    - LanguageParser: Protocol defining the parser interface
    - TypeScriptParser: Extractor for .ts/.tsx/.js/.jsx modules
    - ParseResult: Container for extracted exports, imports and file kind

The extractor finds:
    - Exports: declarations, default exports, export lists
    - Imports: static, type-only, re-exports, side-effect and dynamic imports,
      each with the character span of its specifier for in-place rewriting
    - Kinds: component/page/hook/context/type/util/api-call per symbol

Adding a new language:
    1. Create a new parser class implementing LanguageParser protocol
    2. Implement parse() and parse_text() to return ParseResult
    3. Implement supports() to check file extensions
"""

from featureslice.languages.base import LanguageParser
from featureslice.languages.models import ParsedExport, ParsedImport, ParseResult
from featureslice.languages.typescript import SOURCE_EXTENSIONS, TypeScriptParser

__all__ = [
    "LanguageParser",
    "ParsedExport",
    "ParsedImport",
    "ParseResult",
    "SOURCE_EXTENSIONS",
    "TypeScriptParser",
]
