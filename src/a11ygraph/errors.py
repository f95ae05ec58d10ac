# src/a11ygraph/errors.py


class A11yGraphError(Exception):
    """Base class for all errors raised by the analysis core."""


class MalformedSelectorError(A11yGraphError, ValueError):
    """
    Raised by the selector parser for syntax it does not support.

    The merge path never lets this escape: it is converted into a
    structural finding and the reference is counted as unresolved.
    """

    def __init__(self, selector: str, reason: str, position: int = -1):
        self.selector = selector
        self.reason = reason
        self.position = position
        where = f" at offset {position}" if position >= 0 else ""
        super().__init__(f"Malformed selector {selector!r}{where}: {reason}")


class FragmentParseFailure(A11yGraphError):
    """Raised when a source file cannot be turned into a Source Model."""

    def __init__(self, source_file: str, reason: str):
        self.source_file = source_file
        self.reason = reason
        super().__init__(f"Could not parse {source_file}: {reason}")


class AnalysisCancelled(A11yGraphError):
    """Raised inside a controller run when newer sources superseded the snapshot."""
