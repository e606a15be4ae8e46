"""
Color Card Error Taxonomy
Typed failures raised by extraction, the readiness gate and the exporter.
"""


class CardError(Exception):
    """Base class for every failure the card core reports."""

    code = "card_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class InvalidImage(CardError):
    """Source is unreadable or has a zero dimension."""

    code = "invalid_image"


class RenderingUnavailable(CardError):
    """No drawable surface could be obtained."""

    code = "rendering_unavailable"


class ImageLoadFailed(CardError):
    """Decode error, or the source was never decoded."""

    code = "image_load_failed"


class ExportInProgress(CardError):
    """Another export is already running for this card."""

    code = "export_in_progress"


class CompositingFailure(CardError):
    """Unexpected failure while drawing or encoding the card."""

    code = "compositing_failure"
