# src/a11ygraph/dom/builder.py
import logging
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from ..errors import FragmentParseFailure
from .core import DOMFragment, FragmentAssembler
from .models import MarkupDocument

logger = logging.getLogger(__name__)

# Elements whose content is not markup
SKIPPED_TAGS = {"script", "style", "template", "noscript"}
MAX_TEXT_LENGTH = 200


class _Positions:
    """Converts parser (line, column) positions into byte offsets of the source text."""

    def __init__(self, text: str):
        self.lines = text.split("\n")
        self.line_bytes: List[int] = []
        total = 0
        for line in self.lines:
            self.line_bytes.append(total)
            total += len(line.encode("utf-8")) + 1

    def span(self, line: Optional[int], column: Optional[int]) -> Tuple[int, int]:
        if not line or line > len(self.lines):
            return 0, 0
        column = column or 0
        src_line = self.lines[line - 1]
        start = self.line_bytes[line - 1] + len(src_line[:column].encode("utf-8"))
        # The span covers the opening tag only
        close = src_line.find(">", column)
        if close < 0:
            return start, start
        return start, self.line_bytes[line - 1] + len(src_line[:close + 1].encode("utf-8"))


class MarkupBuilder:
    """
    Builds a MarkupDocument from HTML text with BeautifulSoup.

    Every top-level element becomes an independently-rooted fragment; a full
    page (<html> root) therefore yields exactly one fragment.
    """

    def parse_doc(self, source_file: str, html: str) -> MarkupDocument:
        """
        Parses raw HTML into a MarkupDocument.

        Raises:
            FragmentParseFailure: when the parser cannot process the text.
        """
        if not html or not html.strip():
            return MarkupDocument(source_file=source_file)

        # Basic cleanup of potentially dirty HTML (e.g., BOM)
        clean_html = html.replace('\ufeff', '')
        try:
            soup = BeautifulSoup(clean_html, 'html.parser')
        except Exception as e:
            raise FragmentParseFailure(source_file, str(e)) from e

        positions = _Positions(clean_html)
        roots = [c for c in soup.contents if isinstance(c, Tag) and c.name not in SKIPPED_TAGS]

        fragments = []
        for i, root in enumerate(roots):
            fragment_id = f"{source_file}#{i}"
            assembler = FragmentAssembler(fragment_id, source_file)
            self._build_tree(root, assembler, positions, parent=None)
            fragments.append(assembler.build())

        logger.debug("Parsed %s into %d fragment(s)", source_file, len(fragments))
        return MarkupDocument(source_file=source_file, fragments=tuple(fragments))

    def parse_fragment(self, source_file: str, html: str) -> DOMFragment:
        """Parses text that is expected to hold exactly one root element."""
        doc = self.parse_doc(source_file, html)
        if len(doc.fragments) != 1:
            raise FragmentParseFailure(source_file, f"expected one root element, found {len(doc.fragments)}")
        return doc.fragments[0]

    def _build_tree(
            self, tag: Tag, assembler: FragmentAssembler, positions: _Positions, parent: Optional[str]
    ) -> str:
        """Recursively adds a bs4 Tag and its element children to the assembler."""
        line = getattr(tag, "sourceline", None) or 1
        column = getattr(tag, "sourcepos", None) or 0
        node_id = assembler.add(
            tag.name,
            attrs=self._flatten_attrs(tag.attrs),
            parent=parent,
            text=self._direct_text(tag),
            line=line,
            column=column,
            span=positions.span(line, column),
        )
        for child in tag.children:
            if isinstance(child, Tag) and child.name not in SKIPPED_TAGS:
                self._build_tree(child, assembler, positions, parent=node_id)
        return node_id

    @staticmethod
    def _flatten_attrs(attrs: Dict) -> Dict[str, str]:
        """bs4 returns multi-valued attributes (class, rel) as lists."""
        return {k: " ".join(v) if isinstance(v, list) else ("" if v is None else str(v)) for k, v in attrs.items()}

    @staticmethod
    def _direct_text(tag: Tag) -> str:
        parts = [
            str(child).strip() for child in tag.children
            if isinstance(child, NavigableString) and not isinstance(child, Comment)
        ]
        return " ".join(p for p in parts if p)[:MAX_TEXT_LENGTH]
