# src/a11ygraph/sources.py
import logging
from typing import Annotated, Iterable, List, Literal, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .behavior.model import ActionLanguageModel
from .dom.core import DOMFragment
from .dom.models import MarkupDocument
from .model import Diagnostic
from .style.model import Stylesheet

logger = logging.getLogger(__name__)

AnalysisScope = Literal["single-file", "fragment-set", "full-workspace"]

# Closed union of Source Model dialect containers. Each member offers the same
# capability set: validate_shape() and serialize().
SourceModel = Annotated[
    Union[MarkupDocument, ActionLanguageModel, Stylesheet],
    Field(discriminator="kind"),
]


class SourceFailure(BaseModel):
    """Placeholder for a file whose upstream parser failed."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["failed"] = "failed"
    source_file: str
    reason: str


class DocumentModel(BaseModel):
    """
    Immutable snapshot of the Source Models taking part in one analysis session.
    Rebuilt wholesale whenever any input changes.
    """
    model_config = ConfigDict(frozen=True)

    scope: AnalysisScope = "full-workspace"
    markup: Tuple[MarkupDocument, ...] = ()
    behavior: Tuple[ActionLanguageModel, ...] = ()
    styles: Tuple[Stylesheet, ...] = ()

    @property
    def fragments(self) -> List[DOMFragment]:
        """All fragments in load order."""
        return [f for doc in self.markup for f in doc.fragments]

    @property
    def fragment_count(self) -> int:
        return sum(len(doc.fragments) for doc in self.markup)

    def source_files(self) -> List[str]:
        return [s.source_file for s in (*self.markup, *self.behavior, *self.styles)]

    @classmethod
    def assemble(
            cls,
            sources: Iterable[Union[MarkupDocument, ActionLanguageModel, Stylesheet, SourceFailure]],
            scope: AnalysisScope = "full-workspace",
    ) -> Tuple["DocumentModel", List[Diagnostic]]:
        """
        Builds a snapshot from the given sources, isolating broken ones.

        Failed or inconsistent sources are left out and reported as one
        'excluded-source' diagnostic each; for markup only the offending
        fragment is dropped.
        """
        markup, behavior, styles = [], [], []
        diagnostics: List[Diagnostic] = []
        fragment_ids = set()

        def exclude(subject: str, reason: str):
            logger.warning("Excluding %s from merge: %s", subject, reason)
            diagnostics.append(Diagnostic(kind="excluded-source", subject=subject, message=reason))

        for source in sources:
            if isinstance(source, SourceFailure):
                exclude(source.source_file, source.reason)
                continue

            if isinstance(source, MarkupDocument):
                kept = []
                for fragment in source.fragments:
                    problems = fragment.validate_shape()
                    if fragment.fragment_id in fragment_ids:
                        problems.append(f"fragment id '{fragment.fragment_id}' already loaded")
                    if problems:
                        exclude(fragment.fragment_id, "; ".join(problems))
                        continue
                    fragment_ids.add(fragment.fragment_id)
                    kept.append(fragment)
                markup.append(source.model_copy(update={"fragments": tuple(kept)}))
                continue

            problems = source.validate_shape()
            if problems:
                exclude(source.source_file, "; ".join(problems))
            elif isinstance(source, ActionLanguageModel):
                behavior.append(source)
            else:
                styles.append(source)

        model = cls(scope=scope, markup=tuple(markup), behavior=tuple(behavior), styles=tuple(styles))
        return model, diagnostics
