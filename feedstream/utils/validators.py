"""
FeedStream Input Validators
==========================

Validation utilities for feed URLs.
"""

from urllib.parse import urlparse
from typing import List

from .exceptions import ValidationError, ErrorCode


class URLValidator:
    """URL validation utilities."""

    # Allowed schemes for feed sources
    ALLOWED_SCHEMES = {"http", "https"}

    @classmethod
    def validate_feed_url(cls, url: str) -> str:
        """Validate a feed URL.

        The URL is returned stripped but otherwise untouched, since it doubles
        as the source key for deduplication.

        Args:
            url: URL to validate

        Returns:
            Validated URL

        Raises:
            ValidationError: If URL is invalid
        """
        if not url or not isinstance(url, str):
            raise ValidationError(
                "URL is required and must be a string",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="url",
            )

        url = url.strip()

        try:
            parsed = urlparse(url)
        except ValueError as e:
            raise ValidationError(
                f"Invalid URL format: {e}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url",
            ) from e

        if parsed.scheme.lower() not in cls.ALLOWED_SCHEMES:
            raise ValidationError(
                f"URL scheme must be {' or '.join(sorted(cls.ALLOWED_SCHEMES))}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url",
            )

        if not parsed.netloc:
            raise ValidationError(
                "URL must include a hostname",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url",
            )

        return url


def validate_feed_urls(urls: List[str]) -> List[str]:
    """Validate a list of feed URLs, dropping exact duplicates in order.

    Raises:
        ValidationError: If any URL is invalid
    """
    validated = []
    for url in urls:
        checked = URLValidator.validate_feed_url(url)
        if checked not in validated:
            validated.append(checked)
    return validated
