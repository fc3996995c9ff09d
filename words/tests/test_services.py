# words/tests/test_services.py
import datetime as dt
import logging

import pytest
from django.db import IntegrityError, connection

from words import store as store_module
from words import views
from words.exceptions import (
    BatchConflict,
    DuplicateKey,
    InvalidBatchSize,
    RaceConflict,
    StoreUnavailable,
    WordTooLong,
)
from words.identity import Identity, identify, issue_token
from words.models import MAX_WORD_LENGTH, WORD_LOWER_UNIQUE, Word
from words.services import (
    ConflictReport,
    check_batch,
    find_in_batch_duplicates,
    normalize_batch,
    submit_batch,
    validate_batch,
)
from words.store import WordStore, ensure_unique_index_once

BATCH = ["Cat", "Dog", "Sun", "Sky", "Red", "Blue", "Fast", "Slow", "Up", "Down"]


class SpyStore(WordStore):
    def __init__(self, existing=()):
        self.existing = {w.lower() for w in existing}
        self.reads = 0
        self.writes = 0

    def existing_lowers(self, lowers):
        self.reads += 1
        return {s for s in lowers if s in self.existing}

    def insert_ordered(self, records):
        self.writes += 1
        return list(records)


# --- Batch Normalizer ---

def test_normalize_trims_drops_blanks_and_keeps_order():
    batch = normalize_batch(["  Apple ", "", None, "\tBanana\n", "   ", 42, "CHERRY"])
    assert batch.cleaned == ["Apple", "Banana", "42", "CHERRY"]
    assert batch.lowers == ["apple", "banana", "42", "cherry"]


def test_normalize_treats_falsy_scalars_as_blank():
    batch = normalize_batch(BATCH[:8] + [False, 0, True, 0.0, 7])
    assert batch.cleaned == BATCH[:8] + ["true", "7"]
    assert batch.lowers[-2:] == ["true", "7"]


def test_normalize_non_list_is_empty():
    assert normalize_batch(None).cleaned == []
    assert normalize_batch("Apple").cleaned == []
    assert normalize_batch({"a": 1}).cleaned == []


def test_in_batch_duplicates_reported_once():
    lowers = ["apple", "pear", "apple", "plum", "apple", "pear"]
    assert find_in_batch_duplicates(lowers) == ["apple", "pear"]
    assert find_in_batch_duplicates(["a", "b"]) == []


# --- Count Gate ---

@pytest.mark.parametrize("raw, count", [
    (BATCH[:9], 9),
    (BATCH + ["More"], 11),
    ([], 0),
    (BATCH[:9] + ["", "   ", None], 9),
    (BATCH[:8] + [False, 0], 8),
])
def test_count_gate_rejects_without_touching_store(raw, count):
    spy = SpyStore()
    with pytest.raises(InvalidBatchSize) as exc:
        check_batch(raw, spy)
    assert exc.value.count == count
    assert exc.value.message == f"Exactly 10 words required. Received {count}."
    assert spy.reads == 0

    with pytest.raises(InvalidBatchSize):
        submit_batch(Identity(id="1"), raw, store=spy)
    assert spy.reads == 0
    assert spy.writes == 0


def test_overlong_word_rejected_before_store_read():
    spy = SpyStore()
    long_word = "x" * (MAX_WORD_LENGTH + 1)
    with pytest.raises(WordTooLong) as exc:
        check_batch(BATCH[:9] + [long_word], spy)
    assert exc.value.words == [long_word]
    assert exc.value.max_length == MAX_WORD_LENGTH
    assert spy.reads == 0

    validate_batch(BATCH[:9] + ["x" * MAX_WORD_LENGTH], store=spy)
    assert spy.reads == 1


# --- Conflict Detector ---

def test_validate_clean_batch_is_empty_report():
    report = validate_batch(BATCH, store=SpyStore())
    assert report == ConflictReport()
    assert report.is_empty


def test_validate_splits_conflicts_by_source():
    raw = ["Apple", "apple"] + BATCH[:8]
    report = validate_batch(raw, store=SpyStore(existing=["sun", "RED"]))
    assert report.store == ["sun", "red"]
    assert report.in_batch == ["apple"]
    assert report.as_dict() == {"store": ["sun", "red"], "in_batch": ["apple"]}


def test_word_both_repeated_and_stored_appears_in_both():
    raw = ["Sun", "SUN"] + BATCH[:2] + BATCH[3:9]
    report = validate_batch(raw, store=SpyStore(existing=["sun"]))
    assert report.store == ["sun"]
    assert report.in_batch == ["sun"]


# --- Submitter ---

def test_submit_with_conflicts_never_writes():
    spy = SpyStore(existing=["sun"])
    with pytest.raises(BatchConflict) as exc:
        submit_batch(Identity(id="1"), BATCH, store=spy)
    assert not isinstance(exc.value, RaceConflict)
    assert exc.value.report.store == ["sun"]
    assert spy.writes == 0


@pytest.mark.django_db
def test_submit_persists_batch_for_identity(alice):
    added = submit_batch(Identity(id=str(alice.pk)), BATCH)
    assert added == 10
    rows = Word.objects.order_by("id")
    assert [w.word for w in rows] == BATCH
    assert {w.user_id for w in rows} == {alice.pk}


class VanishingConflictStore(WordStore):
    """Insert clashes, but by the time we look again the other row is gone."""
    def existing_lowers(self, lowers):
        return set()

    def insert_ordered(self, records):
        raise DuplicateKey([records[4].word_lower])


def test_race_falls_back_to_duplicate_key_when_requery_is_empty():
    with pytest.raises(RaceConflict) as exc:
        submit_batch(Identity(id="1"), BATCH, store=VanishingConflictStore())
    assert exc.value.keys == ["red"]
    assert exc.value.report.store == ["red"]
    assert exc.value.report.in_batch == []


@pytest.mark.django_db
def test_insert_ordered_is_all_or_nothing(alice, bob):
    Word.objects.create(user_id=bob.pk, word="Slow", word_lower="slow")
    records = [Word(user_id=alice.pk, word=w, word_lower=w.lower()) for w in BATCH]

    with pytest.raises(DuplicateKey) as exc:
        WordStore().insert_ordered(records)
    assert exc.value.keys == ["slow"]
    assert list(Word.objects.values_list("word_lower", flat=True)) == ["slow"]


@pytest.mark.django_db
def test_owner_labels(alice, bob):
    labels = WordStore().owner_labels([alice.pk, str(bob.pk), 424242, None])
    assert labels == {str(alice.pk): "Alice Liddell", str(bob.pk): "bob@example.com"}


# --- Unique index ensure ---

class CountingStore(WordStore):
    def __init__(self, fail=False):
        self.calls = 0
        self.fail = fail

    def ensure_unique_index(self):
        self.calls += 1
        if self.fail:
            raise StoreUnavailable("Could not ensure unique index on word_lower: boom")


def test_ensure_runs_once_per_process():
    s = CountingStore()
    assert ensure_unique_index_once(s) is True
    assert ensure_unique_index_once(s) is True
    assert s.calls == 1
    assert store_module._index_state.ensured is True


def test_ensure_failure_is_logged_and_retried_later(caplog):
    failing = CountingStore(fail=True)
    with caplog.at_level(logging.WARNING, logger="words.store"):
        assert ensure_unique_index_once(failing) is False
    assert store_module._index_state.ensured is False
    assert "boom" in caplog.text

    ok = CountingStore()
    assert ensure_unique_index_once(ok) is True
    assert ok.calls == 1


@pytest.mark.django_db
def test_ensure_unique_index_leaves_migrated_constraint_alone(monkeypatch):
    added = []
    monkeypatch.setattr(
        connection.SchemaEditorClass, "add_constraint",
        lambda self, model, constraint: added.append(constraint.name),
    )
    store = WordStore()
    assert store.has_unique_index() is True
    store.ensure_unique_index()
    assert added == []


@pytest.mark.django_db(transaction=True)
def test_ensure_unique_index_restores_missing_constraint():
    store = WordStore()
    with connection.schema_editor() as editor:
        editor.remove_constraint(Word, WORD_LOWER_UNIQUE)
    try:
        assert store.has_unique_index() is False
        store.ensure_unique_index()
        assert store.has_unique_index() is True

        Word.objects.create(user_id=1, word="a", word_lower="a")
        with pytest.raises(IntegrityError):
            Word.objects.create(user_id=2, word="A", word_lower="a")
    finally:
        # Leave the schema as migrated for the tests that follow.
        if not store.has_unique_index():
            Word.objects.all().delete()
            with connection.schema_editor() as editor:
                editor.add_constraint(Word, WORD_LOWER_UNIQUE)


@pytest.mark.django_db
def test_ensure_failure_does_not_block_requests(monkeypatch, alice_client):
    def broken(self):
        raise StoreUnavailable("Could not ensure unique index on word_lower: offline")

    monkeypatch.setattr(WordStore, "ensure_unique_index", broken)
    r = alice_client.post("/api/words", {"words": BATCH}, format="json")
    assert r.status_code == 201
    assert store_module._index_state.ensured is False


# --- Identity ---

@pytest.mark.django_db
def test_issued_token_round_trips_to_identity(alice):
    identity = identify(issue_token(alice))
    assert identity == Identity(id=str(alice.pk), email="alice@example.com", name="Alice Liddell")
    assert identity.is_authenticated


def test_identify_rejects_garbage():
    assert identify("not-a-token") is None


# --- Store failures ---

class BrokenStore(WordStore):
    def existing_lowers(self, lowers):
        raise StoreUnavailable("Word lookup failed: connection refused")


@pytest.mark.django_db
def test_store_failure_is_generic_500(monkeypatch, alice_client):
    monkeypatch.setattr(views.WordListCreateView, "store_class", BrokenStore)
    r = alice_client.post("/api/words", {"words": BATCH}, format="json")
    assert r.status_code == 500
    assert r.json() == {"detail": "Insert failed"}
    assert Word.objects.count() == 0


def test_report_for_store_rows_uses_batch_order():
    raw = list(reversed(BATCH))
    report = validate_batch(raw, store=SpyStore(existing=["cat", "down"]))
    assert report.store == ["down", "cat"]


@pytest.mark.django_db
def test_existing_lowers_matches_any_owner(alice, bob):
    Word.objects.create(user_id=bob.pk, word="Sun", word_lower="sun", added_at=dt.datetime(2025, 1, 1, tzinfo=dt.timezone.utc))
    assert WordStore().existing_lowers(["sun", "moon"]) == {"sun"}
    assert WordStore().existing_lowers([]) == set()
