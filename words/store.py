# words/store.py
from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Sequence, Set

from django.contrib.auth import get_user_model
from django.db import DatabaseError, IntegrityError, connection, transaction

from .exceptions import DuplicateKey, StoreUnavailable
from .models import WORD_LOWER_UNIQUE, Word

logger = logging.getLogger(__name__)

UNKNOWN_OWNER = "Unknown"


class WordStore:
    """
    Persistent collection of Word records.
    The unique constraint on word_lower is the only cross-request guarantee;
    nothing here locks in-process.
    """

    def find(self, filters: Dict | None = None, *, order_by: Sequence[str] = (), limit: int | None = None) -> List[Word]:
        qs = Word.objects.filter(**(filters or {}))
        if order_by:
            qs = qs.order_by(*order_by)
        if limit is not None:
            qs = qs[:limit]
        try:
            return list(qs)
        except DatabaseError as e:
            raise StoreUnavailable(f"Word query failed: {e}") from e

    def existing_lowers(self, lowers: Iterable[str]) -> Set[str]:
        """Normalized words among `lowers` that are already stored (any owner)."""
        lowers = list(lowers)
        if not lowers:
            return set()
        try:
            found = Word.objects.filter(word_lower__in=lowers).values_list("word_lower", flat=True)
            return {w.lower() for w in found}
        except DatabaseError as e:
            raise StoreUnavailable(f"Word lookup failed: {e}") from e

    def insert_ordered(self, records: Sequence[Word]) -> List[Word]:
        """
        Insert records one by one in the given order, all inside one transaction.
        The first uniqueness violation stops the batch and rolls everything back.
        """
        inserted: List[Word] = []
        current = None
        try:
            with transaction.atomic():
                for rec in records:
                    current = rec
                    rec.save(force_insert=True)
                    inserted.append(rec)
        except IntegrityError as e:
            keys = [current.word_lower] if current is not None else []
            raise DuplicateKey(keys) from e
        except DatabaseError as e:
            raise StoreUnavailable(f"Word insert failed: {e}") from e
        return inserted

    def owner_labels(self, user_ids: Iterable) -> Dict[str, str]:
        """Map str(user id) -> display label (full name, else email, else username)."""
        ids = {str(u) for u in user_ids if u is not None}
        if not ids:
            return {}
        User = get_user_model()
        try:
            owners = list(User.objects.filter(pk__in=ids))
        except DatabaseError as e:
            raise StoreUnavailable(f"Owner lookup failed: {e}") from e
        labels = {}
        for u in owners:
            name = (u.get_full_name() or "").strip()
            labels[str(u.pk)] = name or getattr(u, "email", "") or u.get_username() or UNKNOWN_OWNER
        return labels

    def has_unique_index(self) -> bool:
        """True if the table carries any unique constraint on word_lower alone."""
        with connection.cursor() as cursor:
            constraints = connection.introspection.get_constraints(cursor, Word._meta.db_table)
        return any(c.get("unique") and c.get("columns") == ["word_lower"] for c in constraints.values())

    def ensure_unique_index(self) -> None:
        """Create the unique constraint on word_lower unless the table already has one."""
        table = Word._meta.db_table
        try:
            if self.has_unique_index():
                return
            logger.info("Adding unique constraint %s on %s", WORD_LOWER_UNIQUE.name, table)
            with connection.schema_editor() as editor:
                editor.add_constraint(Word, WORD_LOWER_UNIQUE)
        except DatabaseError as e:
            raise StoreUnavailable(f"Could not ensure unique index on word_lower: {e}") from e


class _IndexState:
    """Process-wide: False at start, True after the first successful ensure, never reset."""
    def __init__(self):
        self.ensured = False
        self.lock = threading.Lock()


_index_state = _IndexState()


def ensure_unique_index_once(store: WordStore | None = None) -> bool:
    """Ensure the word_lower unique index once per process. Failures are logged, not raised."""
    if _index_state.ensured:
        return True
    with _index_state.lock:
        if _index_state.ensured:
            return True
        try:
            (store or WordStore()).ensure_unique_index()
        except StoreUnavailable as e:
            logger.warning("%s (continuing)", e.message)
            return False
        _index_state.ensured = True
    return True
