"""
Error taxonomy for the detection pipeline.

Every stage fails fast with one of these; nothing is retried or masked.
"""


class DetectionError(Exception):
    """Base class for pipeline failures."""


class InvalidInputError(DetectionError):
    """Malformed or zero-area image, or an unsupported channel layout."""


class ModelNotReadyError(DetectionError):
    """Pipeline used before (or without) a successful model load."""


class InferenceError(DetectionError):
    """A model call failed or returned a tensor that breaks the shape contract."""
