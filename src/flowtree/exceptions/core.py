"""
Exception classes for FlowTree document processing.

This module defines the exception types raised for whole-document failures.
Problems with individual steps never raise; they are reported as diagnostics
by the validator or as warnings by the transpiler.
"""


class FlowTreeError(Exception):
    """Base exception for all FlowTree errors."""

    pass


class DocumentLoadError(FlowTreeError):
    """Raised when a document cannot be read or parsed."""

    def __init__(self, source: str, reason: str, location: str = ""):
        """
        Initialize the exception.

        Params:
            source: Short description of the input (file path or "<text>")
            reason: Why the document could not be loaded
            location: Line and column of a syntax error, when known
        """
        self.source = source
        self.reason = reason
        self.location = location
        super().__init__(f"Cannot load document '{source}': {reason}")


class TranspileError(FlowTreeError):
    """Raised when a document cannot be compiled as a whole."""

    def __init__(self, reason: str):
        """
        Initialize the exception.

        Params:
            reason: The whole-document precondition that failed
        """
        self.reason = reason
        super().__init__(f"transpiler: {reason}")


class UnsupportedTemplateError(TranspileError):
    """Raised when an unknown boilerplate template is requested."""

    def __init__(self, template: str, supported: tuple[str, ...]):
        """
        Initialize the exception.

        Params:
            template: The requested template selector
            supported: Template selectors that are available
        """
        self.template = template
        self.supported = supported
        super().__init__(
            f"unsupported template '{template}'. "
            f"Valid templates are: {', '.join(supported)}"
        )
