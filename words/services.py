# words/services.py
from __future__ import annotations

import datetime as dt
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import pytz
from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from .exceptions import BatchConflict, DuplicateKey, InvalidBatchSize, RaceConflict, WordTooLong
from .models import MAX_WORD_LENGTH, Word
from .store import WordStore

logger = logging.getLogger(__name__)

BATCH_SIZE = 10

SORT_ORDERS = {
    "date-desc": ("-added_at", "-id"),
    "date-asc": ("added_at", "id"),
    "alpha-asc": ("word_lower", "id"),
    "alpha-desc": ("-word_lower", "-id"),
}
DEFAULT_SORT = "date-desc"


@dataclass(frozen=True)
class NormalizedBatch:
    cleaned: List[str]
    lowers: List[str]


@dataclass(frozen=True)
class ConflictReport:
    """Normalized words that collide, split by source. Both empty means no conflicts."""
    store: List[str] = field(default_factory=list)
    in_batch: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.store and not self.in_batch

    def as_dict(self) -> Dict[str, List[str]]:
        return {"store": list(self.store), "in_batch": list(self.in_batch)}


@dataclass
class WordListing:
    mine: List[Word]
    all: List[Word]
    owners: Dict[str, str]


def _unique_lower(items) -> List[str]:
    """Lowercase and dedupe, keeping first-occurrence order."""
    return list(dict.fromkeys(s.lower() for s in items))


def normalize_batch(items: Any) -> NormalizedBatch:
    """
    Coerce to text, trim, drop blanks. Anything that is not a list counts as empty.
    Falsy values (None, False, 0, "") are blank; True reads as "true".
    """
    if not isinstance(items, (list, tuple)):
        items = []
    cleaned = []
    for s in items:
        if not s:
            continue
        text = "true" if s is True else str(s)
        text = text.strip()
        if text:
            cleaned.append(text)
    return NormalizedBatch(cleaned=cleaned, lowers=[s.lower() for s in cleaned])


def find_in_batch_duplicates(lowers: List[str]) -> List[str]:
    counts = Counter(lowers)
    return _unique_lower(s for s in lowers if counts[s] > 1)


def detect_conflicts(batch: NormalizedBatch, store: WordStore) -> ConflictReport:
    """In-batch repeats first, then one store read for words that already exist."""
    in_batch = find_in_batch_duplicates(batch.lowers)
    existing = store.existing_lowers(set(batch.lowers))
    return ConflictReport(
        store=_unique_lower(s for s in batch.lowers if s in existing),
        in_batch=in_batch,
    )


def check_batch(items: Any, store: WordStore) -> Tuple[NormalizedBatch, ConflictReport]:
    """
    Count gate, length check, then conflict detection.
    InvalidBatchSize and WordTooLong are raised without touching the store.
    """
    batch = normalize_batch(items)
    if len(batch.cleaned) != BATCH_SIZE:
        raise InvalidBatchSize(len(batch.cleaned), BATCH_SIZE)
    too_long = [w for w in batch.cleaned if len(w) > MAX_WORD_LENGTH]
    if too_long:
        raise WordTooLong(too_long, MAX_WORD_LENGTH)
    return batch, detect_conflicts(batch, store)


def validate_batch(items: Any, store: WordStore | None = None) -> ConflictReport:
    _, report = check_batch(items, store or WordStore())
    return report


def submit_batch(identity, items: Any, store: WordStore | None = None) -> int:
    """
    Persist a clean batch for `identity`, in input order, all or nothing.

    Raises:
      InvalidBatchSize: cleaned batch is not exactly BATCH_SIZE long.
      WordTooLong: a cleaned word does not fit the stored column.
      BatchConflict: pre-check found store or in-batch conflicts.
      RaceConflict: the unique constraint fired on insert; carries a re-queried report.
      StoreUnavailable: the store failed for infrastructure reasons.
    """
    store = store or WordStore()
    batch, report = check_batch(items, store)
    if not report.is_empty:
        raise BatchConflict(report)

    records = [
        Word(user_id=identity.id, word=w, word_lower=w.lower(), added_at=timezone.now())
        for w in batch.cleaned
    ]
    try:
        inserted = store.insert_ordered(records)
    except DuplicateKey as e:
        # Another writer got in between the check and the insert; re-read once, no retry.
        report = detect_conflicts(batch, store)
        if not report.store:
            report = ConflictReport(store=_unique_lower(e.keys), in_batch=report.in_batch)
        logger.warning("Race on word submit for user %s: %s", identity.id, ", ".join(report.store))
        raise RaceConflict(report, e.keys) from e

    logger.info("User %s added %d words", identity.id, len(inserted))
    return len(inserted)


# --- Listing ---

def _to_aware(value: str | None, tz: dt.tzinfo, *, end_of_day: bool = False) -> dt.datetime | None:
    """Parse a date or ISO datetime; naive values are read in `tz`. Returns UTC."""
    if not value:
        return None
    # Bare dates first: parse_datetime would read "2025-03-05" as midnight.
    day = parse_date(value)
    if day is not None:
        d = dt.datetime.combine(day, dt.time.max if end_of_day else dt.time.min)
    else:
        d = parse_datetime(value)
        if d is None:
            raise ValueError("from/to must be YYYY-MM-DD or ISO-8601")
    if timezone.is_naive(d):
        d = tz.localize(d)
    return d.astimezone(dt.timezone.utc)


def build_filters(date_from: str | None, date_to: str | None, q: str, tzname: str) -> Dict:
    """Date range (inclusive, `to` as a bare date covers the whole day) and substring match."""
    try:
        tz = pytz.timezone(tzname)
    except pytz.UnknownTimeZoneError:
        raise ValueError("invalid tz.")
    f_utc = _to_aware(date_from, tz)
    t_utc = _to_aware(date_to, tz, end_of_day=True)
    if f_utc is not None and t_utc is not None and f_utc > t_utc:
        raise ValueError("from must be <= to.")

    filters: Dict[str, Any] = {}
    if f_utc is not None:
        filters["added_at__gte"] = f_utc
    if t_utc is not None:
        filters["added_at__lte"] = t_utc
    if q:
        filters["word_lower__contains"] = q.lower()
    return filters


def list_words(
    identity,
    *,
    date_from: str | None = None,
    date_to: str | None = None,
    q: str = "",
    sort: str = DEFAULT_SORT,
    tz: str | None = None,
    store: WordStore | None = None,
) -> WordListing:
    """Requester's words and everyone's words, filtered and sorted the same way, capped separately."""
    if sort not in SORT_ORDERS:
        raise ValueError("sort must be date-desc|date-asc|alpha-asc|alpha-desc")
    store = store or WordStore()
    filters = build_filters(date_from, date_to, q, tz or settings.TIME_ZONE)
    order_by = SORT_ORDERS[sort]

    mine = store.find(dict(filters, user_id=identity.id), order_by=order_by, limit=settings.WORDS_MINE_LIMIT)
    everyone = store.find(filters, order_by=order_by, limit=settings.WORDS_ALL_LIMIT)

    owners = store.owner_labels({w.user_id for w in mine} | {w.user_id for w in everyone})
    return WordListing(mine=mine, all=everyone, owners=owners)
