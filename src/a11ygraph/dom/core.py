# src/a11ygraph/dom/core.py
from typing import Dict, Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from ..model import SourceLocation

# Tags whose 'disabled' attribute actually disables them
FORM_CONTROL_TAGS = {"button", "input", "select", "textarea", "optgroup", "option", "fieldset"}
HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6"}

_INPUT_ROLES = {
    "button": "button",
    "submit": "button",
    "reset": "button",
    "image": "button",
    "checkbox": "checkbox",
    "radio": "radio",
    "range": "slider",
    "number": "spinbutton",
    "search": "searchbox",
    "email": "textbox",
    "tel": "textbox",
    "text": "textbox",
    "url": "textbox",
    "password": "textbox",
}

_TAG_ROLES = {
    "article": "article",
    "aside": "complementary",
    "button": "button",
    "datalist": "listbox",
    "details": "group",
    "dialog": "dialog",
    "fieldset": "group",
    "footer": "contentinfo",
    "form": "form",
    "header": "banner",
    "hr": "separator",
    "li": "listitem",
    "main": "main",
    "menu": "list",
    "nav": "navigation",
    "ol": "list",
    "ul": "list",
    "optgroup": "group",
    "option": "option",
    "output": "status",
    "progress": "progressbar",
    "section": "region",
    "table": "table",
    "tbody": "rowgroup",
    "thead": "rowgroup",
    "tfoot": "rowgroup",
    "tr": "row",
    "td": "cell",
    "th": "columnheader",
    "textarea": "textbox",
}


def _parse_tabindex(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def implicit_role(tag: str, attrs: Dict[str, str]) -> Optional[str]:
    """Returns the role a native element carries without an explicit role attribute."""
    if tag in ("a", "area"):
        return "link" if "href" in attrs else None
    if tag in HEADING_TAGS:
        return "heading"
    if tag == "img":
        return "presentation" if attrs.get("alt") == "" else "img"
    if tag == "input":
        input_type = attrs.get("type", "text").strip().lower()
        if input_type == "hidden":
            return None
        role = _INPUT_ROLES.get(input_type, "textbox")
        if role == "textbox" and "list" in attrs:
            return "combobox"
        return role
    if tag == "select":
        size = _parse_tabindex(attrs.get("size"))
        if "multiple" in attrs or (size is not None and size > 1):
            return "listbox"
        return "combobox"
    return _TAG_ROLES.get(tag)


class SemanticFacet(BaseModel):
    """
    Accessibility facts derived purely from tag name and attributes.
    Never depends on handlers or style rules.
    """
    model_config = ConfigDict(frozen=True)

    implicit_role: Optional[str] = None
    explicit_role: Optional[str] = None
    naturally_focusable: bool = False
    native_control: bool = False  # natively keyboard operable (button, link, form control)
    disabled: bool = False
    tabindex: Optional[int] = None

    @property
    def role(self) -> Optional[str]:
        return self.explicit_role or self.implicit_role

    @classmethod
    def from_markup(cls, tag: str, attrs: Dict[str, str]) -> "SemanticFacet":
        tag = tag.lower()
        explicit = (attrs.get("role") or "").strip().lower().split()
        disabled = tag in FORM_CONTROL_TAGS and "disabled" in attrs

        native_control = False
        if tag in ("a", "area"):
            native_control = "href" in attrs
        elif tag == "input":
            native_control = attrs.get("type", "text").strip().lower() != "hidden"
        elif tag in ("button", "select", "textarea", "summary"):
            native_control = True

        naturally_focusable = native_control and not disabled
        if tag == "iframe":
            naturally_focusable = True
        elif tag in ("audio", "video") and "controls" in attrs:
            naturally_focusable = True
        elif attrs.get("contenteditable", "false").strip().lower() in ("", "true", "plaintext-only"):
            naturally_focusable = True

        return cls(
            implicit_role=implicit_role(tag, attrs),
            explicit_role=explicit[0] if explicit else None,
            naturally_focusable=naturally_focusable,
            native_control=native_control,
            disabled=disabled,
            tabindex=_parse_tabindex(attrs.get("tabindex")),
        )


class ModelNode(BaseModel):
    """
    Base shape shared by every node of every Source Model.
    Immutable once constructed; 'metadata' holds the dialect-specific payload.
    """
    model_config = ConfigDict(frozen=True)

    node_id: str
    location: SourceLocation
    metadata: Dict[str, Any] = Field(default_factory=dict)


class DOMElement(ModelNode):
    """
    A markup element inside one fragment.
    Parent and children are node ids within the same fragment, never object references.
    """
    fragment_id: str
    tag: str
    attrs: Dict[str, str] = Field(default_factory=dict)
    text: str = ""
    parent_id: Optional[str] = None
    child_ids: Tuple[str, ...] = ()

    @field_validator('tag')
    @classmethod
    def lower_tag(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator('attrs')
    @classmethod
    def lower_attr_names(cls, v: Dict[str, str]) -> Dict[str, str]:
        """HTML attribute names are case-insensitive; the first spelling wins on collision."""
        out: Dict[str, str] = {}
        for key, value in v.items():
            out.setdefault(key.lower(), "" if value is None else str(value))
        return out

    @property
    def element_id(self) -> Optional[str]:
        """The value of the 'id' attribute, if any."""
        value = self.attrs.get("id")
        return value.strip() if value and value.strip() else None

    @property
    def classes(self) -> List[str]:
        return [c for c in self.attrs.get("class", "").split() if c]

    @property
    def semantics(self) -> SemanticFacet:
        return SemanticFacet.from_markup(self.tag, self.attrs)

    def describe(self) -> str:
        """Short human-readable label such as <div id="menu">."""
        if self.element_id:
            return f'<{self.tag} id="{self.element_id}">'
        if self.classes:
            return f'<{self.tag} class="{" ".join(self.classes)}">'
        return f"<{self.tag}>"


class DOMFragment(BaseModel):
    """
    One independently-rooted markup tree.
    Elements are stored flat, in document order; the first parentless element is the root.
    """
    model_config = ConfigDict(frozen=True)

    fragment_id: str
    source_file: str
    elements: Tuple[DOMElement, ...] = ()

    _by_id: Dict[str, DOMElement] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        self._by_id = {el.node_id: el for el in self.elements}

    @property
    def root(self) -> Optional[DOMElement]:
        for el in self.elements:
            if el.parent_id is None:
                return el
        return None

    def get(self, node_id: Optional[str]) -> Optional[DOMElement]:
        if node_id is None:
            return None
        return self._by_id.get(node_id)

    def parent_of(self, element: DOMElement) -> Optional[DOMElement]:
        return self.get(element.parent_id)

    def children_of(self, element: DOMElement) -> List[DOMElement]:
        return [self._by_id[c] for c in element.child_ids if c in self._by_id]

    def validate_shape(self) -> List[str]:
        """
        Checks structural consistency of the fragment.
        Returns a list of problems; an empty list means the fragment is usable.
        """
        problems = []
        seen = set()
        roots = 0
        for el in self.elements:
            if el.node_id in seen:
                problems.append(f"duplicate node id '{el.node_id}'")
            seen.add(el.node_id)
            if el.fragment_id != self.fragment_id:
                problems.append(f"node '{el.node_id}' belongs to fragment '{el.fragment_id}'")
            if el.parent_id is None:
                roots += 1
            elif el.parent_id not in self._by_id:
                problems.append(f"node '{el.node_id}' has unknown parent '{el.parent_id}'")
            elif el.node_id not in self._by_id[el.parent_id].child_ids:
                problems.append(f"node '{el.node_id}' is not listed as a child of '{el.parent_id}'")
            for child_id in el.child_ids:
                child = self._by_id.get(child_id)
                if child is None or child.parent_id != el.node_id:
                    problems.append(f"node '{el.node_id}' lists inconsistent child '{child_id}'")
        if self.elements and roots != 1:
            problems.append(f"fragment must have exactly one root, found {roots}")
        return problems


class FragmentAssembler:
    """
    Incrementally assembles an immutable DOMFragment.
    Used by the markup builder and handy for constructing fragments in code.
    """

    def __init__(self, fragment_id: str, source_file: str):
        self.fragment_id = fragment_id
        self.source_file = source_file
        self._order: List[str] = []
        self._fields: Dict[str, Dict[str, Any]] = {}
        self._children: Dict[str, List[str]] = {}

    def add(
            self,
            tag: str,
            attrs: Optional[Dict[str, str]] = None,
            parent: Optional[str] = None,
            text: str = "",
            line: int = 1,
            column: int = 0,
            span: Tuple[int, int] = (0, 0),
            node_id: Optional[str] = None,
    ) -> str:
        """Adds an element and returns its node id."""
        if parent is not None and parent not in self._fields:
            raise KeyError(f"Unknown parent node '{parent}'")
        node_id = node_id or f"{self.fragment_id}/{len(self._order)}"
        self._order.append(node_id)
        self._children[node_id] = []
        self._fields[node_id] = {
            "node_id": node_id,
            "fragment_id": self.fragment_id,
            "tag": tag.lower(),
            "attrs": dict(attrs or {}),
            "text": text,
            "parent_id": parent,
            "location": SourceLocation(file=self.source_file, line=line, column=column, span=span),
        }
        if parent is not None:
            self._children[parent].append(node_id)
        return node_id

    def append_text(self, node_id: str, text: str) -> None:
        current = self._fields[node_id]["text"]
        self._fields[node_id]["text"] = f"{current} {text}".strip() if current else text.strip()

    def build(self) -> DOMFragment:
        elements = tuple(
            DOMElement(child_ids=tuple(self._children[nid]), **self._fields[nid])
            for nid in self._order
        )
        return DOMFragment(fragment_id=self.fragment_id, source_file=self.source_file, elements=elements)
