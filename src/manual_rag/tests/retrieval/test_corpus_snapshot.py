import json
import threading

import pytest

from manual_rag.common.errors import NotInitializedError
from manual_rag.retrieval.snapshot import CorpusSnapshot, SnapshotManager, load_chunk_records


def test_build_skips_invalid_and_duplicate_records(caplog):
    records = [
        {"id": 1, "source": "A.pdf", "text": "  primeiro trecho  "},
        {"id": 2, "source": "A.pdf", "text": "   "},
        {"id": 1, "source": "B.pdf", "text": "duplicado"},
        "not a record",
        {"id": "x", "source": "C.pdf", "text": "id inválido"},
        {"source": "", "text": "sem id"},
    ]
    with caplog.at_level("WARNING"):
        snap = CorpusSnapshot.build(records, version=3)

    assert [c.id for c in snap.chunks] == [1, 6]
    assert snap.chunks[0].text == "primeiro trecho"
    assert snap.chunks[1].source == "unknown"
    assert snap.skipped == 4
    assert snap.version == 3
    assert "invalid chunk record" in caplog.text


def test_term_statistics(manual_records):
    snap = CorpusSnapshot.build(manual_records)

    assert len(snap) == 5
    assert len(snap.tokens) == len(snap.chunks)
    assert snap.doc_freqs["para"] == 2
    assert snap.doc_freqs["senha"] == 1
    expected_avg = sum(len(t) for t in snap.tokens) / 5
    assert snap.avg_doc_len == pytest.approx(expected_avg)
    assert snap.bm25 is not None


def test_snapshot_is_frozen(manual_records):
    snap = CorpusSnapshot.build(manual_records)

    with pytest.raises(AttributeError):
        snap.version = 10
    with pytest.raises(TypeError):
        snap.doc_freqs["novo"] = 1


def test_empty_corpus_builds_without_bm25():
    snap = CorpusSnapshot.build([])

    assert len(snap) == 0
    assert snap.bm25 is None
    assert snap.avg_doc_len == 0.0


def test_load_chunk_records_accepts_store_object_and_list(tmp_path, manual_records):
    store = tmp_path / "base.json"
    store.write_text(json.dumps({"createdAt": "now", "meta": {}, "docs": manual_records}), encoding="utf-8")
    assert len(load_chunk_records(store)) == 5

    store.write_text(json.dumps(manual_records[:2]), encoding="utf-8")
    assert len(load_chunk_records(store)) == 2


def test_load_chunk_records_errors(tmp_path):
    with pytest.raises(FileNotFoundError, match="ingestion"):
        load_chunk_records(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        load_chunk_records(bad)


def test_manager_requires_reload_before_use(manual_records):
    manager = SnapshotManager(lambda: manual_records)

    assert manager.is_loaded is False
    with pytest.raises(NotInitializedError):
        manager.current()

    assert manager.reload() == 5
    assert manager.current().version == 1
    assert manager.reload() == 5
    assert manager.current().version == 2


def test_failed_reload_keeps_previous_snapshot(manual_records):
    calls = {"n": 0}

    def loader():
        calls["n"] += 1
        if calls["n"] > 1:
            raise FileNotFoundError("store removed")
        return manual_records

    manager = SnapshotManager(loader)
    manager.reload()
    before = manager.current()

    with pytest.raises(FileNotFoundError):
        manager.reload()
    assert manager.current() is before


def test_from_store_reads_json(tmp_path, manual_records):
    store = tmp_path / "base.json"
    store.write_text(json.dumps({"docs": manual_records}), encoding="utf-8")

    manager = SnapshotManager.from_store(store)
    assert manager.reload() == 5


def test_concurrent_readers_see_whole_snapshots(manual_records):
    small = manual_records[:2]
    state = {"big": True}

    def loader():
        state["big"] = not state["big"]
        return manual_records if state["big"] else small

    manager = SnapshotManager(loader)
    manager.reload()
    seen = []
    stop = threading.Event()

    def reader():
        while not stop.is_set():
            snap = manager.current()
            seen.append((len(snap.chunks), len(snap.tokens)))

    threads = [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    for _ in range(20):
        manager.reload()
    stop.set()
    for t in threads:
        t.join()

    assert seen
    assert all(n_chunks == n_tokens and n_chunks in (2, 5) for n_chunks, n_tokens in seen)
