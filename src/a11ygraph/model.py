# src/a11ygraph/model.py
from typing import Optional, List, Dict, Any, Tuple, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Severity = Literal["error", "warning", "info"]
ConfidenceBand = Literal["HIGH", "MEDIUM", "LOW"]

# Finding categories
CATEGORY_STRUCTURAL = "structural-reference"
CATEGORY_KEYBOARD = "keyboard"
CATEGORY_FOCUS = "focus"
CATEGORY_WIDGET = "widget-pattern"


class SourceLocation(BaseModel):
    """
    Position of a node in its source file.
    Lines are 1-based, columns 0-based, the span is a byte offset range.
    """
    model_config = ConfigDict(frozen=True)

    file: str
    line: int = 1
    column: int = 0
    span: Tuple[int, int] = (0, 0)

    def sort_key(self) -> Tuple[str, int, int]:
        return self.file, self.line, self.column

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


class Confidence(BaseModel):
    """Confidence record attached to every finding."""
    model_config = ConfigDict(frozen=True)

    score: float
    band: ConfidenceBand
    reason: str


class ElementRef(BaseModel):
    """Stable pointer to a markup element: fragment id plus node id."""
    model_config = ConfigDict(frozen=True)

    fragment_id: str
    node_id: str
    tag: str


class FixDescriptor(BaseModel):
    """
    Structured, data-only description of a remedy.
    Turning it into text or a patch is left to the reporting layer.
    """
    model_config = ConfigDict(frozen=True)

    action: str  # e.g. 'add-event-handler', 'add-attribute', 'add-element'
    description: str
    target: Optional[str] = None  # selector of the element to change
    location: Optional[SourceLocation] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class Finding(BaseModel):
    """
    A single reported accessibility defect (an 'issue').
    Findings are immutable; confidence is stamped by the session with model_copy().
    """
    model_config = ConfigDict(frozen=True)

    issue_type: str  # e.g. 'mouse-only-click', 'orphaned-handler'
    category: str
    severity: Severity
    wcag: List[str] = Field(default_factory=list)
    message: str
    element: Optional[ElementRef] = None
    locations: List[SourceLocation]
    confidence: Optional[Confidence] = None
    analyzer: str = "merge"
    sub_feature: Optional[str] = None
    pattern: Optional[str] = None
    fix: Optional[FixDescriptor] = None

    @field_validator('locations')
    @classmethod
    def require_location(cls, v: List[SourceLocation]) -> List[SourceLocation]:
        """A finding must point at one or more places in the source."""
        if not v:
            raise ValueError("a finding needs at least one source location")
        return v

    @property
    def location(self) -> SourceLocation:
        return self.locations[0]

    def sort_key(self) -> Tuple[str, int, int, str]:
        """The single ordering key for pooled findings: file, line, column, issue type."""
        loc = self.locations[0]
        return loc.file, loc.line, loc.column, self.issue_type


class Diagnostic(BaseModel):
    """
    Session-level notice that is not a finding about the analyzed UI,
    e.g. a source excluded from the merge or an analyzer that crashed.
    """
    model_config = ConfigDict(frozen=True)

    kind: str  # 'excluded-source', 'analyzer-failure'
    subject: str
    message: str
