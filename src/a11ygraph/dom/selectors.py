# src/a11ygraph/dom/selectors.py
"""
A small CSS selector engine.

Supports type/universal, #id, .class, [attr] and [attr=value] tests, the
pseudo-classes :focus, :focus-visible, :hover, :disabled and :not(...), and
the descendant, child (>), adjacent sibling (+) and general sibling (~)
combinators. Anything else raises MalformedSelectorError.
"""
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Protocol, Sequence, Tuple

from ..errors import MalformedSelectorError
from .core import DOMElement

Specificity = Tuple[int, int, int]

PSEUDO_CLASSES = {"focus", "focus-visible", "hover", "disabled"}
# Pseudo-classes that depend on user interaction rather than markup
DYNAMIC_PSEUDO_CLASSES = {"focus", "focus-visible", "hover"}

_IDENT = re.compile(r"-?[_a-zA-Z][_a-zA-Z0-9-]*")
_NAME = re.compile(r"[_a-zA-Z0-9-]+")
_BARE_VALUE = re.compile(r"[^\s\]\"']+")


@dataclass(frozen=True)
class AttributeTest:
    name: str
    value: Optional[str] = None  # None means presence only


@dataclass(frozen=True)
class Compound:
    tag: Optional[str] = None  # None or '*' matches any tag
    ids: Tuple[str, ...] = ()
    classes: Tuple[str, ...] = ()
    attributes: Tuple[AttributeTest, ...] = ()
    pseudos: Tuple[str, ...] = ()
    negations: Tuple["SelectorList", ...] = ()

    @property
    def specificity(self) -> Specificity:
        a = len(self.ids)
        b = len(self.classes) + len(self.attributes) + len(self.pseudos)
        c = 1 if self.tag not in (None, "*") else 0
        for negation in self.negations:
            na, nb, nc = negation.specificity
            a, b, c = a + na, b + nb, c + nc
        return a, b, c

    @property
    def is_dynamic(self) -> bool:
        return any(p in DYNAMIC_PSEUDO_CLASSES for p in self.pseudos)


@dataclass(frozen=True)
class ComplexSelector:
    """Compounds left to right; combinators[i] joins compounds[i] and compounds[i + 1]."""
    compounds: Tuple[Compound, ...]
    combinators: Tuple[str, ...] = ()

    @property
    def subject(self) -> Compound:
        return self.compounds[-1]

    @property
    def specificity(self) -> Specificity:
        a = b = c = 0
        for compound in self.compounds:
            ca, cb, cc = compound.specificity
            a, b, c = a + ca, b + cb, c + cc
        return a, b, c

    @property
    def is_dynamic(self) -> bool:
        return any(c.is_dynamic for c in self.compounds)


@dataclass(frozen=True)
class SelectorList:
    source: str
    selectors: Tuple[ComplexSelector, ...]

    @property
    def specificity(self) -> Specificity:
        """A selector list counts as its most specific member."""
        return max(s.specificity for s in self.selectors)


class _Parser:

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def error(self, reason: str):
        raise MalformedSelectorError(self.text, reason, self.pos)

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def skip_ws(self) -> bool:
        start = self.pos
        while self.peek() and self.peek().isspace():
            self.pos += 1
        return self.pos > start

    def match(self, pattern: re.Pattern, what: str) -> str:
        m = pattern.match(self.text, self.pos)
        if not m:
            self.error(f"expected {what}")
        self.pos = m.end()
        return m.group(0)

    def parse(self) -> SelectorList:
        if not self.text.strip():
            self.error("empty selector")
        selectors = self.parse_list(closing="")
        return SelectorList(source=self.text, selectors=tuple(selectors))

    def parse_list(self, closing: str) -> List[ComplexSelector]:
        selectors = []
        while True:
            self.skip_ws()
            selectors.append(self.parse_complex(closing))
            self.skip_ws()
            ch = self.peek()
            if ch == ",":
                self.pos += 1
                continue
            if ch == closing:
                return selectors
            self.error(f"unexpected character {ch!r}")

    def parse_complex(self, closing: str) -> ComplexSelector:
        compounds = [self.parse_compound()]
        combinators = []
        while True:
            had_space = self.skip_ws()
            ch = self.peek()
            if ch in (">", "+", "~") and ch:
                self.pos += 1
                self.skip_ws()
                combinators.append(ch)
                compounds.append(self.parse_compound())
            elif ch == "," or ch == closing:
                break
            elif had_space:
                combinators.append(" ")
                compounds.append(self.parse_compound())
            else:
                self.error(f"unexpected character {ch!r}")
        return ComplexSelector(compounds=tuple(compounds), combinators=tuple(combinators))

    def parse_compound(self) -> Compound:
        tag = None
        ids, classes, attributes, pseudos, negations = [], [], [], [], []
        if self.peek() == "*":
            self.pos += 1
            tag = "*"
        elif _IDENT.match(self.text, self.pos):
            tag = self.match(_IDENT, "tag name").lower()
        consumed = tag is not None

        while True:
            ch = self.peek()
            if ch == "#":
                self.pos += 1
                ids.append(self.match(_NAME, "id"))
            elif ch == ".":
                self.pos += 1
                classes.append(self.match(_NAME, "class name"))
            elif ch == "[":
                attributes.append(self.parse_attribute())
            elif ch == ":":
                self.pos += 1
                if self.peek() == ":":
                    self.error("pseudo-elements are not supported")
                name = self.match(_IDENT, "pseudo-class").lower()
                if name == "not":
                    if self.peek() != "(":
                        self.error("expected '(' after :not")
                    self.pos += 1
                    inner = self.parse_list(closing=")")
                    self.pos += 1
                    negations.append(SelectorList(source=self.text, selectors=tuple(inner)))
                elif name in PSEUDO_CLASSES:
                    pseudos.append(name)
                else:
                    self.error(f"unsupported pseudo-class ':{name}'")
            else:
                break
            consumed = True

        if not consumed:
            self.error("expected a selector")
        return Compound(
            tag=tag,
            ids=tuple(ids),
            classes=tuple(classes),
            attributes=tuple(attributes),
            pseudos=tuple(pseudos),
            negations=tuple(negations),
        )

    def parse_attribute(self) -> AttributeTest:
        self.pos += 1  # '['
        self.skip_ws()
        name = self.match(_IDENT, "attribute name").lower()
        self.skip_ws()
        ch = self.peek()
        if ch == "]":
            self.pos += 1
            return AttributeTest(name=name)
        if ch != "=":
            self.error("only [attr] and [attr=value] tests are supported")
        self.pos += 1
        self.skip_ws()
        quote = self.peek()
        if quote in ("'", '"') and quote:
            end = self.text.find(quote, self.pos + 1)
            if end < 0:
                self.error("unterminated string")
            value = self.text[self.pos + 1:end]
            self.pos = end + 1
        else:
            value = self.match(_BARE_VALUE, "attribute value")
        self.skip_ws()
        if self.peek() != "]":
            self.error("expected ']'")
        self.pos += 1
        return AttributeTest(name=name, value=value)


@lru_cache(maxsize=4096)
def parse_selector(text: str) -> SelectorList:
    """Parses a selector string. Raises MalformedSelectorError on unsupported syntax."""
    return _Parser(text).parse()


def specificity_of(text: str) -> Specificity:
    return parse_selector(text).specificity


def exact_key(text: str) -> Optional[str]:
    """
    Returns the index key for selectors that are a single exact test
    ('#id', '.class', 'tag' or '[role="value"]'), otherwise None.
    """
    try:
        parsed = parse_selector(text.strip())
    except MalformedSelectorError:
        return None
    if len(parsed.selectors) != 1 or len(parsed.selectors[0].compounds) != 1:
        return None
    c = parsed.selectors[0].subject
    parts = [c.tag not in (None, "*"), len(c.ids), len(c.classes), len(c.attributes),
             len(c.pseudos), len(c.negations)]
    if sum(int(p) for p in parts) != 1:
        return None
    if c.ids:
        return f"#{c.ids[0]}"
    if c.classes:
        return f".{c.classes[0]}"
    if c.tag not in (None, "*"):
        return c.tag
    attr = c.attributes[0] if c.attributes else None
    if attr is not None and attr.name == "role" and attr.value is not None:
        return f'[role="{attr.value}"]'
    return None


class ElementTree(Protocol):
    """Navigation the matcher needs; implemented by the SelectorIndex."""

    def parent(self, element: DOMElement) -> Optional[DOMElement]: ...

    def previous_siblings(self, element: DOMElement) -> Sequence[DOMElement]: ...


class SelectorMatcher:
    """Evaluates parsed selectors against elements of an ElementTree."""

    def __init__(self, tree: ElementTree):
        self.tree = tree

    def matches(self, selector: SelectorList, element: DOMElement) -> bool:
        return any(self._match_from(cx, len(cx.compounds) - 1, element) for cx in selector.selectors)

    def match_condition(self, selector: SelectorList, element: DOMElement) -> Optional[bool]:
        """
        None if the selector cannot match the element, False if it matches without
        any interaction state, True if it matches only under :hover / :focus.
        """
        matched = [cx for cx in selector.selectors if self._match_from(cx, len(cx.compounds) - 1, element)]
        if not matched:
            return None
        return all(cx.is_dynamic for cx in matched)

    def _match_from(self, cx: ComplexSelector, i: int, element: DOMElement) -> bool:
        if not self._match_compound(cx.compounds[i], element):
            return False
        if i == 0:
            return True
        combinator = cx.combinators[i - 1]
        if combinator == ">":
            parent = self.tree.parent(element)
            return parent is not None and self._match_from(cx, i - 1, parent)
        if combinator == " ":
            ancestor = self.tree.parent(element)
            while ancestor is not None:
                if self._match_from(cx, i - 1, ancestor):
                    return True
                ancestor = self.tree.parent(ancestor)
            return False
        siblings = self.tree.previous_siblings(element)
        if combinator == "+":
            return bool(siblings) and self._match_from(cx, i - 1, siblings[0])
        return any(self._match_from(cx, i - 1, s) for s in siblings)

    def _match_compound(self, c: Compound, el: DOMElement) -> bool:
        if c.tag not in (None, "*") and el.tag != c.tag:
            return False
        if c.ids and any(el.element_id != i for i in c.ids):
            return False
        if c.classes:
            classes = set(el.classes)
            if not all(cls in classes for cls in c.classes):
                return False
        for attr in c.attributes:
            if attr.name not in el.attrs:
                return False
            if attr.value is not None and el.attrs[attr.name] != attr.value:
                return False
        for pseudo in c.pseudos:
            if not self._match_pseudo(pseudo, el):
                return False
        for negation in c.negations:
            if self.matches(negation, el):
                return False
        return True

    @staticmethod
    def _match_pseudo(pseudo: str, el: DOMElement) -> bool:
        semantics = el.semantics
        if pseudo in ("focus", "focus-visible"):
            # Static reading: could this element ever hold focus?
            return semantics.naturally_focusable or semantics.tabindex is not None
        if pseudo == "disabled":
            return semantics.disabled
        return True  # :hover applies to any rendered element
