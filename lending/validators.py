import re
from typing import Optional

_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")


class IdValidator:
    """Validation for record ids typed at the console.

    Ids are uuid4 hex strings; the dashed uuid form is accepted and normalized.
    """

    @staticmethod
    def normalize_id(raw: Optional[str]) -> str:
        if raw is None:
            return ""
        return raw.strip().replace("-", "").lower()

    @staticmethod
    def is_valid_id(raw: Optional[str]) -> bool:
        return bool(_ID_PATTERN.match(IdValidator.normalize_id(raw)))


class TextValidator:
    """Basic checks for free-text fields."""

    @staticmethod
    def _is_non_empty_alpha(text: Optional[str]) -> bool:
        if text is None:
            return False
        t = text.strip()
        if not t:
            return False
        # reject purely numeric or punctuation-only values
        return any(c.isalpha() for c in t)

    @staticmethod
    def validate_title(title: Optional[str]) -> bool:
        if title is None:
            return False
        return bool(title.strip())

    @staticmethod
    def validate_author(author: Optional[str]) -> bool:
        # must not be digits only
        if author is None:
            return False
        t = author.strip()
        if not t:
            return False
        return not t.isdigit()

    @staticmethod
    def validate_name(name: Optional[str]) -> bool:
        return TextValidator._is_non_empty_alpha(name)

    @staticmethod
    def sanitize_text(text: Optional[str]) -> str:
        if text is None:
            return ""
        # strip HTML tags and collapse whitespace
        cleaned = re.sub(r"<[^>]*>", "", text)
        return re.sub(r"\s+", " ", cleaned).strip()
