# src/a11ygraph/behavior/model.py
from typing import List, Literal, Tuple, Dict, Any

from pydantic import BaseModel, ConfigDict

from .nodes import ActionBase, ActionNode, EventHandler, walk


class ActionLanguageModel(BaseModel):
    """
    Behaviour Source Model: the ActionLanguage trees extracted from one source file.

    Root nodes mirror the top level of the file; nested nodes keep the function,
    conditional and loop structure they were found in.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["behavior"] = "behavior"
    source_file: str
    dialect: str = "vanilla"
    nodes: Tuple[ActionNode, ...] = ()

    def flatten(self) -> List[ActionBase]:
        return [node for node, _ in walk(self.nodes)]

    def event_handlers(self) -> List[EventHandler]:
        return [n for n in self.flatten() if isinstance(n, EventHandler)]

    def validate_shape(self) -> List[str]:
        """Checks node id uniqueness and that every referencing node has a selector."""
        problems = []
        seen = set()
        for node in self.flatten():
            if node.node_id in seen:
                problems.append(f"duplicate action id '{node.node_id}'")
            seen.add(node.node_id)
            if node.kind != "block" and not (node.target or "").strip():
                problems.append(f"action '{node.node_id}' has an empty selector")
        return problems

    def serialize(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
