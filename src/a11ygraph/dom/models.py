# src/a11ygraph/dom/models.py
from typing import Any, Dict, List, Literal, Tuple

from pydantic import BaseModel, ConfigDict

from .core import DOMElement, DOMFragment


class MarkupDocument(BaseModel):
    """
    Markup Source Model for one file.

    A file may contribute several independently-rooted fragments (a component
    template with sibling roots, or a page split into partials).
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["markup"] = "markup"
    source_file: str
    dialect: str = "html"
    fragments: Tuple[DOMFragment, ...] = ()

    def all_elements(self) -> List[DOMElement]:
        return [el for fragment in self.fragments for el in fragment.elements]

    def validate_shape(self) -> List[str]:
        problems = []
        seen = set()
        for fragment in self.fragments:
            if fragment.fragment_id in seen:
                problems.append(f"duplicate fragment id '{fragment.fragment_id}'")
            seen.add(fragment.fragment_id)
            problems.extend(f"{fragment.fragment_id}: {p}" for p in fragment.validate_shape())
        return problems

    def serialize(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
