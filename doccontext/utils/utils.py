import hashlib
import math
import re
from functools import wraps
from typing import List, Optional

from doccontext.config import settings
from doccontext.utils.logger import logger


def log_errors(error_prefix: str = "Error"):
    """
    Decorator to handle common error logging pattern.

    Args:
        error_prefix: Prefix for error messages
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logger.error(f"{error_prefix} in {func.__name__}: {e}")
                raise

        return wrapper

    return decorator


class Utils:
    """Text helpers shared by the extractor, scorers and selector.

    Every token count in the package goes through ``estimate_tokens`` so budget
    decisions never mix two different tokenizers.
    """

    @staticmethod
    def estimate_tokens(text: Optional[str], chars_per_token: Optional[int] = None) -> int:
        """Cheap token estimate: ceil(characters / chars_per_token)."""
        if not text:
            return 0
        cpt = chars_per_token or settings.chunking.chars_per_token
        return math.ceil(len(text) / cpt)

    @staticmethod
    def chars_for_tokens(tokens: int, chars_per_token: Optional[int] = None) -> int:
        """Inverse of ``estimate_tokens``: characters that fit in ``tokens``."""
        cpt = chars_per_token or settings.chunking.chars_per_token
        return max(0, int(tokens)) * cpt

    @staticmethod
    def content_hash(text: str) -> str:
        """SHA-256 hex digest of the UTF-8 bytes of ``text``."""
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    @staticmethod
    def normalize_query(query: str) -> str:
        return re.sub(r"\s+", " ", (query or "").strip().lower())

    @staticmethod
    def query_terms(query: str, min_length: Optional[int] = None) -> List[str]:
        """Lowercased whitespace-split terms, dropping short ones."""
        min_len = min_length or settings.retrieval.min_term_length
        return [w for w in Utils.normalize_query(query).split(" ") if len(w) >= min_len]

    @staticmethod
    def count_occurrences(haystack: str, needle: str) -> int:
        """Non-overlapping occurrences of ``needle`` in ``haystack``."""
        if not needle:
            return 0
        return haystack.count(needle)
