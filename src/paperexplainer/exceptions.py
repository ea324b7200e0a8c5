"""Custom exceptions for the paper explainer."""


class PaperExplainerError(Exception):
    """Base exception for the project."""


class ConfigError(PaperExplainerError):
    """Raised when required configuration is missing or invalid."""


class InvalidReferenceError(PaperExplainerError):
    """Raised when the input is not a supported bioRxiv paper reference."""

    def __init__(
        self,
        message: str = "Invalid bioRxiv URL. Please provide a valid bioRxiv paper URL.",
    ) -> None:
        super().__init__(message)


class DocumentUnavailableError(PaperExplainerError):
    """Raised when paper metadata cannot be fetched from bioRxiv."""

    def __init__(
        self,
        message: str = (
            "Could not fetch this paper from bioRxiv. The paper may not exist or the "
            "API may be temporarily unavailable. Please try again later."
        ),
    ) -> None:
        super().__init__(message)


class UnsupportedStructureError(PaperExplainerError):
    """Raised when the parser recognises no content in the fetched paper."""

    def __init__(
        self,
        message: str = (
            "Could not parse paper content. The paper structure may not be supported."
        ),
    ) -> None:
        super().__init__(message)


class RewriteError(PaperExplainerError):
    """Raised when a single paragraph rewrite fails."""


class CacheCorruptedError(PaperExplainerError):
    """Raised when a cached paper does not match the expected shape."""


class ImageProxyError(PaperExplainerError):
    """Base error for the image proxy."""


class ImageSourceNotAllowedError(ImageProxyError):
    """Raised when an image URL points outside the allowed hosts."""


class ImageFetchError(ImageProxyError):
    """Raised when the upstream image request fails."""

    def __init__(self, message: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.status_code = status_code
