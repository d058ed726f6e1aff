"""Exception types raised by the battlemap pipeline."""

from __future__ import annotations


class BattlemapError(Exception):
    """Base class for all battlemap generation errors."""


class ValidationError(BattlemapError, ValueError):
    """Raised when caller input is rejected before any generation work."""

    def __init__(self, message: str, *, code: str = "VALIDATION_FAILED") -> None:
        super().__init__(message)
        self.code = code


class UnknownLayerError(ValidationError, KeyError):
    """Raised when a layer or sub-layer name is not registered."""

    def __init__(self, layer: str) -> None:
        super().__init__(f"Unknown layer: {layer}", code="UNKNOWN_LAYER")
        self.layer = layer

    def __str__(self) -> str:
        return self.args[0]


class LayerGenerationFailed(BattlemapError, RuntimeError):
    """Raised when a layer fails for a reason other than invalid input."""

    def __init__(self, layer: str, cause: BaseException) -> None:
        super().__init__(f"{layer} layer generation failed: {cause}")
        self.layer = layer
        self.cause = cause
        self.code = "LAYER_GENERATION_FAILED"
