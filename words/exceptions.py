# words/exceptions.py
from __future__ import annotations

from typing import Iterable, List


class WordsError(Exception):
    """Base class for word-list errors."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


# --- User input errors (never retried) ---

class InvalidBatchSize(WordsError):
    """Raised when a batch does not hold exactly the required number of words after cleaning."""
    def __init__(self, count: int, required: int):
        self.count = count
        self.required = required
        super().__init__(f"Exactly {required} words required. Received {count}.")


class WordTooLong(WordsError):
    """Raised when cleaned words exceed the stored column length."""
    def __init__(self, words: Iterable[str], max_length: int):
        self.words: List[str] = list(words)
        self.max_length = max_length
        super().__init__(f"Words must be at most {max_length} characters. Too long: {len(self.words)}.")


class BatchConflict(WordsError):
    """Raised when normalized words already exist in the store and/or repeat within the batch."""
    def __init__(self, report, message: str = "Conflicts found. Fix duplicates before submitting."):
        self.report = report
        super().__init__(message)


class RaceConflict(BatchConflict):
    """
    Uniqueness clash only seen at write time, after a clean pre-check.
    Carries the re-queried report, so callers may treat it as a BatchConflict.
    """
    def __init__(self, report, keys: Iterable[str]):
        self.keys: List[str] = list(keys)
        super().__init__(report, "One or more words already exist.")


# --- Store errors ---

class StoreUnavailable(WordsError):
    """Raised when a store read or write fails for infrastructure reasons."""


class DuplicateKey(WordsError):
    """Raised by the store when an ordered insert hits the unique constraint on word_lower."""
    def __init__(self, keys: Iterable[str]):
        self.keys: List[str] = list(keys)
        super().__init__(f"Duplicate word_lower: {', '.join(self.keys)}")
