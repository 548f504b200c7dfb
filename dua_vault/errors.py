"""
Error taxonomy for the extraction, normalization and quota layers.

Every error carries a short ``user_message`` the surrounding application can
show as-is.
"""

from typing import Optional


class DuaVaultError(Exception):
    """Base class for all pipeline errors."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str = "", user_message: Optional[str] = None):
        super().__init__(message or self.user_message)
        if user_message:
            self.user_message = user_message


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

class PreprocessingUnavailable(DuaVaultError):
    """The rendering surface for a variant could not be created."""
    user_message = "Could not read this image. Try another photo."


class EngineInitializationError(DuaVaultError):
    """The OCR engine could not be constructed. Fatal for the request."""
    user_message = "Text recognition is unavailable right now."


class RecognitionError(DuaVaultError):
    """A single recognition pass failed."""
    user_message = "Text recognition failed for this image."


class NoReliableText(DuaVaultError):
    """No variant produced text passing the validity predicate."""
    user_message = "Upload a clearer image to extract text."


ExtractionFailed = NoReliableText


# ---------------------------------------------------------------------------
# Generative backend
# ---------------------------------------------------------------------------

class AiError(DuaVaultError):
    """Base class for generative backend failures."""
    retriable = False
    user_message = "Could not translate right now. Please add the meaning manually."

    def __init__(
        self,
        message: str = "",
        status_code: Optional[int] = None,
        user_message: Optional[str] = None,
    ):
        super().__init__(message, user_message)
        self.status_code = status_code
        self.attempts = 0


class AiTimeout(AiError):
    retriable = True
    user_message = "The translation service took too long. Please try again."


class AiRateLimited(AiError):
    user_message = (
        "Translation service is busy right now. "
        "Please wait a moment and try again."
    )


class AiServiceUnavailable(AiError):
    retriable = True
    user_message = "The translation service is unavailable. Please try again shortly."


class AiMalformedResponse(AiError):
    user_message = "The translation service returned an unexpected answer."


class AiRequestError(AiError):
    """Any other non-retriable backend failure (auth, bad request, ...)."""


# ---------------------------------------------------------------------------
# Quota
# ---------------------------------------------------------------------------

class NotProvisioned(DuaVaultError):
    """Persistence signal: the usage table or function does not exist."""


class QuotaError(DuaVaultError):
    pass


class QuotaCheckFailed(QuotaError):
    user_message = "Could not verify your translation allowance. Please try again."


class QuotaConsumeFailed(QuotaError):
    user_message = "Your translation was saved but usage could not be recorded."


class QuotaExceeded(QuotaError):
    user_message = "You have reached your free monthly translation limit."
