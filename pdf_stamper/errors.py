"""Exceptions raised by the editor.

Render failures and cancellations are not exceptions; see
:class:`pdf_stamper.rendering.RenderOutcome`.
"""


class EditorError(Exception):
    """Base class for every user-visible editor failure."""


class LoadFailure(EditorError):
    """A document or image could not be read or parsed."""


class ValidationFailure(EditorError):
    """Input was rejected before any I/O took place."""


class ExportFailure(EditorError):
    """Embedding or serializing the output document failed."""
