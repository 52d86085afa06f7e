"""
Exceptions raised while generating coupon passes.

Every failure inside the pass pipeline is surfaced as a PassGenerationError
so the HTTP layer can turn it into a single failure payload.
"""


class PassGenerationError(Exception):
    """Base class for request-level pass generation failures"""


class ImageProcessingError(PassGenerationError):
    """Strip image could not be decoded, resized or encoded"""


class TemplateError(PassGenerationError):
    """Template pass.json or a fixed icon asset is missing or invalid"""


class SigningError(PassGenerationError):
    """Signing identity missing or the signing step failed"""


class StorageError(PassGenerationError):
    """Signed archive could not be persisted"""
