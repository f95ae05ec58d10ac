# src/a11ygraph/dom/index.py
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .core import DOMElement, DOMFragment
from .selectors import SelectorList, SelectorMatcher, exact_key, parse_selector

logger = logging.getLogger(__name__)

ElementKey = Tuple[str, str]  # (fragment_id, node_id)


class SelectorIndex:
    """
    Index over every element of every fragment in a merge.

    Elements live in one flat arena (fragments in load order, document order
    inside a fragment); everything else refers to them by arena position.
    Exact keys are '#id', '.class', the tag name and '[role="value"]'.
    """

    def __init__(self, fragments: Sequence[DOMFragment]):
        self.fragments: Dict[str, DOMFragment] = {f.fragment_id: f for f in fragments}
        self.elements: Tuple[DOMElement, ...] = tuple(el for f in fragments for el in f.elements)
        self._position: Dict[ElementKey, int] = {
            (el.fragment_id, el.node_id): i for i, el in enumerate(self.elements)
        }
        self._exact: Dict[str, List[int]] = defaultdict(list)
        for i, el in enumerate(self.elements):
            for key in self.keys_for(el):
                self._exact[key].append(i)
        self._matcher = SelectorMatcher(self)
        logger.debug("Indexed %d elements from %d fragments (%d keys)",
                     len(self.elements), len(self.fragments), len(self._exact))

    @staticmethod
    def keys_for(element: DOMElement) -> List[str]:
        """All exact lookup keys an element is filed under."""
        keys = []
        if element.element_id:
            keys.append(f"#{element.element_id}")
        for cls in dict.fromkeys(element.classes):
            keys.append(f".{cls}")
        keys.append(element.tag)
        if "role" in element.attrs:
            keys.append(f'[role="{element.attrs["role"]}"]')
        return keys

    def __len__(self) -> int:
        return len(self.elements)

    def position(self, element: DOMElement) -> int:
        return self._position[(element.fragment_id, element.node_id)]

    def lookup(self, key: str) -> List[DOMElement]:
        """O(1) exact-key lookup; returns elements in arena order."""
        return [self.elements[i] for i in self._exact.get(key, ())]

    def lookup_positions(self, key: str) -> List[int]:
        return list(self._exact.get(key, ()))

    # --- ElementTree protocol used by the matcher ---

    def parent(self, element: DOMElement) -> Optional[DOMElement]:
        fragment = self.fragments.get(element.fragment_id)
        return fragment.parent_of(element) if fragment else None

    def previous_siblings(self, element: DOMElement) -> List[DOMElement]:
        """Preceding siblings, nearest first."""
        parent = self.parent(element)
        if parent is None:
            return []
        fragment = self.fragments[element.fragment_id]
        siblings = fragment.children_of(parent)
        idx = next(i for i, s in enumerate(siblings) if s.node_id == element.node_id)
        return list(reversed(siblings[:idx]))

    # --- General matching ---

    def matches(self, selector: Union[str, SelectorList], element: DOMElement) -> bool:
        """Raises MalformedSelectorError for unsupported selector strings."""
        parsed = parse_selector(selector) if isinstance(selector, str) else selector
        return self._matcher.matches(parsed, element)

    def match_condition(self, selector: Union[str, SelectorList], element: DOMElement) -> Optional[bool]:
        parsed = parse_selector(selector) if isinstance(selector, str) else selector
        return self._matcher.match_condition(parsed, element)

    def select(self, selector: str) -> List[int]:
        """
        Arena positions of every element the selector matches.
        Single exact tests go through the hash maps; everything else is a scan.
        """
        parsed = parse_selector(selector.strip())
        key = exact_key(selector)
        if key is not None:
            return self.lookup_positions(key)
        return [i for i, el in enumerate(self.elements) if self._matcher.matches(parsed, el)]
