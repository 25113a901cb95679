import pytest

from tinylsm.skiplist import SkipList, SkipListIterator


def prefix_predicate(prefix):
    def pred(key):
        head = key[: len(prefix)]
        if head == prefix:
            return 0
        return 1 if head < prefix else -1

    return pred


def collect(begin, end):
    out = []
    it = begin
    while it != end:
        out.append(it.key())
        it.advance()
    return out


def test_put_and_get():
    sl = SkipList(8)
    sl.put("b", "2", 1)
    sl.put("a", "1", 1)
    it = sl.get("a")
    assert it.key() == "a"
    assert it.value() == "1"
    assert it.tranc_id() == 1


def test_get_missing_is_end():
    sl = SkipList(8)
    sl.put("a", "1", 1)
    it = sl.get("zz")
    assert it.is_end()
    assert it == sl.end()
    with pytest.raises(ValueError):
        it.key()


def test_overwrite_same_transaction():
    sl = SkipList(8)
    sl.put("k", "v", 1)
    before = sl.size()
    sl.put("k", "value", 1)
    assert sl.get("k").value() == "value"
    assert sl.size() == before + len("value") - len("v")
    assert len(sl.flush()) == 1


def test_multiversion_visibility():
    sl = SkipList(8)
    sl.put("k", "old", 1)
    sl.put("k", "new", 2)
    assert sl.get("k", 0).value() == "new"
    assert sl.get("k", 1).value() == "old"
    assert sl.get("k", 5).value() == "new"


def test_flush_sorted_newest_first():
    sl = SkipList(8)
    sl.put("c", "3", 1)
    sl.put("a", "1", 1)
    sl.put("a", "1b", 2)
    sl.put("b", "2", 1)
    assert sl.flush() == [("a", "1b", 2), ("a", "1", 1), ("b", "2", 1), ("c", "3", 1)]


def test_iteration_yields_pairs():
    sl = SkipList(4)
    for key in ["x", "y", "w"]:
        sl.put(key, key.upper(), 1)
    assert list(sl) == [("w", "W"), ("x", "X"), ("y", "Y")]


def test_remove_and_size():
    sl = SkipList(8)
    sl.put("a", "1", 1)
    sl.put("b", "2", 1)
    sl.remove("a")
    assert sl.get("a").is_end()
    assert sl.get("b").value() == "2"
    sl.remove("b")
    assert sl.size() == 0
    assert sl.flush() == []


def test_size_counts_key_value_and_id():
    sl = SkipList(8)
    sl.put("ab", "xyz", 1)
    assert sl.size() == len("ab") + len("xyz") + 8


def test_remove_many_keeps_order():
    sl = SkipList(6)
    keys = [f"k{i:03d}" for i in range(200)]
    for key in keys:
        sl.put(key, "v", 1)
    for key in keys[::2]:
        sl.remove(key)
    assert [k for k, _ in sl] == keys[1::2]


def test_clear():
    sl = SkipList(8)
    sl.put("a", "1", 1)
    sl.clear()
    assert sl.size() == 0
    assert sl.begin().is_end()
    assert sl.get("a").is_end()


def test_prefix_bounds():
    sl = SkipList(8)
    for key in ["aa", "ab1", "ab2", "ac"]:
        sl.put(key, "v", 1)
    assert sl.begin_prefix("ab").key() == "ab1"
    assert sl.end_prefix("ab").key() == "ac"
    assert collect(sl.begin_prefix("ab"), sl.end_prefix("ab")) == ["ab1", "ab2"]
    assert sl.end_prefix("ac").is_end()


def test_predicate_range_matches_filter():
    sl = SkipList(8)
    keys = [f"{p}_{i:03d}" for p in ["alpha", "beta", "gamma"] for i in range(60)]
    for key in reversed(keys):
        sl.put(key, "v", 1)
    result = sl.iters_monotony_predicate(prefix_predicate("beta_"))
    assert result is not None
    begin, end = result
    assert collect(begin, end) == [k for k in keys if k.startswith("beta_")]


def test_predicate_no_match():
    sl = SkipList(8)
    sl.put("a", "1", 1)
    assert sl.iters_monotony_predicate(prefix_predicate("zzz")) is None


def test_predicate_range_at_end():
    sl = SkipList(8)
    for key in ["a1", "b1", "b2"]:
        sl.put(key, "v", 1)
    begin, end = sl.iters_monotony_predicate(prefix_predicate("b"))
    assert end.is_end()
    assert collect(begin, end) == ["b1", "b2"]


def test_dump_bottom_level():
    sl = SkipList(1)
    for key in ["c", "a", "b"]:
        sl.put(key, "v", 1)
    assert sl.dump() == "Level 0: a -> b -> c"


def test_iterator_validity():
    assert not SkipListIterator().is_valid()
    sl = SkipList(4)
    sl.put("a", "1", 1)
    assert sl.begin().is_valid()


def test_invalid_max_level():
    with pytest.raises(ValueError):
        SkipList(0)