import pytest

from sockrelay.ppbloom import BloomFilter, PingPongBloom


def _items(prefix, n):
    return [f"{prefix}-{i}".encode() for i in range(n)]


def test_bloom_add_then_check():
    bloom = BloomFilter(1000, 0.001)
    items = _items("nonce", 500)
    for item in items:
        bloom.add(item)
    assert all(bloom.check(item) for item in items)


def test_bloom_add_reports_presence():
    bloom = BloomFilter(1000, 0.001)
    assert bloom.add(b"salt") is False
    assert bloom.add(b"salt") is True


def test_bloom_false_positive_rate_is_low():
    bloom = BloomFilter(1000, 0.001)
    for item in _items("in", 1000):
        bloom.add(item)
    hits = sum(bloom.check(item) for item in _items("out", 1000))
    assert hits < 20


def test_bloom_clear():
    bloom = BloomFilter(100, 0.01)
    bloom.add(b"x")
    bloom.clear()
    assert bloom.check(b"x") is False


@pytest.mark.parametrize("entries,error", [(0, 0.01), (10, 0.0), (10, 1.0)])
def test_bloom_rejects_bad_parameters(entries, error):
    with pytest.raises(ValueError):
        BloomFilter(entries, error)


def test_pingpong_keeps_recent_entries():
    pp = PingPongBloom(2000, 0.001)
    items = _items("recent", 1500)
    for item in items:
        pp.add(item)
    assert all(pp.check(item) for item in items)


def test_pingpong_forgets_old_entries():
    pp = PingPongBloom(2000, 0.001)
    old = _items("old", 1000)
    new = _items("new", 1000)
    for item in old + new:
        pp.add(item)
    assert all(pp.check(item) for item in new)
    assert sum(pp.check(item) for item in old) < 20


def test_pingpong_unseen_not_found():
    pp = PingPongBloom(2000, 0.001)
    pp.add(b"seen")
    assert pp.check(b"seen") is True
    assert pp.check(b"unseen") is False


def test_pingpong_rejects_too_few_entries():
    with pytest.raises(ValueError):
        PingPongBloom(1, 0.01)