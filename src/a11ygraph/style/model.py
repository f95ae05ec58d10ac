# src/a11ygraph/style/model.py
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, model_validator

from ..dom.core import ModelNode
from ..dom.selectors import Specificity, specificity_of
from ..errors import MalformedSelectorError


def parse_declarations(text: Optional[str]) -> Dict[str, str]:
    """
    Parses a declaration block ('display: none; color: red') into an ordered map.
    Later declarations of the same property replace earlier ones.
    """
    declarations: Dict[str, str] = {}
    for chunk in (text or "").split(";"):
        if ":" not in chunk:
            continue
        name, value = chunk.split(":", 1)
        name, value = name.strip().lower(), value.strip()
        if name and value:
            declarations.pop(name, None)
            declarations[name] = value
    return declarations


class StyleRule(ModelNode):
    """
    One style rule as delivered by a stylesheet parser.

    'source_order' increases monotonically across all style sources in load
    order. Specificity is computed on construction; a selector the engine
    cannot parse gets (0, 0, 0) and keeps the reason in 'selector_error'.
    """
    selector: str
    properties: Dict[str, str]
    source_order: int
    specificity: Specificity = (0, 0, 0)
    selector_error: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def compute_specificity(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "selector" not in data:
            return data
        data = dict(data)
        data["properties"] = {str(k).strip().lower(): str(v).strip() for k, v in dict(data.get("properties") or {}).items()}
        if "specificity" not in data:
            try:
                data["specificity"] = specificity_of(str(data["selector"]).strip())
            except MalformedSelectorError as e:
                data["specificity"] = (0, 0, 0)
                data["selector_error"] = e.reason
        return data

    @property
    def cascade_key(self) -> Tuple[int, int, int, int]:
        """Higher sorts first: specificity, then later source order."""
        return self.specificity + (self.source_order,)


class Stylesheet(BaseModel):
    """Style Source Model: the rules of one stylesheet, in declaration order."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["style"] = "style"
    source_file: str
    rules: Tuple[StyleRule, ...] = ()

    def validate_shape(self) -> List[str]:
        problems = []
        seen = set()
        last_order = None
        for rule in self.rules:
            if rule.node_id in seen:
                problems.append(f"duplicate rule id '{rule.node_id}'")
            seen.add(rule.node_id)
            if last_order is not None and rule.source_order < last_order:
                problems.append(f"rule '{rule.node_id}' breaks source order ({rule.source_order} < {last_order})")
            last_order = rule.source_order
        return problems

    def serialize(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
