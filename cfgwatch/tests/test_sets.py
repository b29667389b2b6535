"""Unit tests for cfgwatch.utils.ThreadSafeSet."""

import threading

from cfgwatch.utils import ThreadSafeSet, path_exists


def test_diff_and_emplace_returns_removed_keys():
    ts = ThreadSafeSet()
    for key in ("A", "B", "C"):
        ts.insert(key)

    removed = ts.diff_and_emplace({"B", "C", "D"})

    assert removed == ["A"]
    assert ts.snapshot() == {"B", "C", "D"}


def test_diff_and_emplace_first_generation_removes_nothing():
    ts = ThreadSafeSet()
    assert ts.diff_and_emplace({"M1", "M2"}) == []
    assert len(ts) == 2


def test_diff_and_emplace_with_empty_generation_removes_everything():
    ts = ThreadSafeSet(["M1", "M2"])
    assert ts.diff_and_emplace(set()) == ["M1", "M2"]
    assert len(ts) == 0


def test_new_set_is_copied():
    ts = ThreadSafeSet()
    incoming = {"A"}
    ts.diff_and_emplace(incoming)
    incoming.add("B")
    assert "B" not in ts
    assert "A" in ts


def test_concurrent_inserts_are_not_lost():
    ts = ThreadSafeSet()

    def worker(offset):
        for i in range(250):
            ts.insert(f"k{offset}-{i}")

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(ts) == 1000


def test_concurrent_diffs_account_for_every_key():
    # Each pass replaces the whole generation; every key ever installed is
    # reported removed exactly once, except the keys of the final generation.
    ts = ThreadSafeSet()
    generations = [{f"g{n}"} for n in range(50)]
    removed = []
    lock = threading.Lock()

    def worker(gen):
        out = ts.diff_and_emplace(gen)
        with lock:
            removed.extend(out)

    threads = [threading.Thread(target=worker, args=(g,)) for g in generations]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    final = ts.snapshot()
    assert len(final) == 1
    assert sorted(removed + list(final)) == sorted(k for g in generations for k in g)


def test_path_exists(tmp_path):
    f = tmp_path / "x.json"
    assert not path_exists(str(f))
    f.write_text("{}")
    assert path_exists(str(f))
