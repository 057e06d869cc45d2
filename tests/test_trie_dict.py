import pytest

from bbsboard.trie_dict import (
    TrieDict,
    TrieExhaustedError,
    TrieKeyError,
    TrieNodePool,
)

TEST_VAL = 0xCB429A63A017661F - (1 << 64)

KEYS = [
    "ABCDEFG",
    "abcdefg",
    "../$@^",
    "1234567890",
    "1234657890",
    "HZ测试汉字HZ",
    "P3p4P3z4P_",
    "_bbBBz_Z_",
]


@pytest.fixture
def pool():
    return TrieNodePool(1000)


@pytest.fixture
def populated(pool):
    trie = TrieDict(pool)
    for i, key in enumerate(KEYS):
        assert trie.set(key, TEST_VAL >> i) is True
    return trie


def test_none_key_rejected(pool):
    trie = TrieDict(pool)
    with pytest.raises(TrieKeyError):
        trie.set(None, TEST_VAL)
    with pytest.raises(TrieKeyError):
        trie.delete(None)


def test_empty_key_rejected(pool):
    trie = TrieDict(pool)
    with pytest.raises(TrieKeyError):
        trie.set("", TEST_VAL)
    with pytest.raises(TrieKeyError):
        trie.get("")


def test_get_after_set(populated):
    for i, key in enumerate(KEYS):
        assert populated.get(key) == TEST_VAL >> i
        assert key in populated


def test_items_in_byte_order(populated):
    keys = [key for key, _ in populated.items()]
    assert keys == sorted(k.encode("utf-8") for k in KEYS)
    values = dict(populated.items())
    assert values["HZ测试汉字HZ".encode("utf-8")] == TEST_VAL >> 5


def test_delete_even_and_reset_odd(populated):
    for i, key in enumerate(KEYS):
        if i % 2 == 0:
            assert populated.delete(key) is True
        else:
            assert populated.set(key, TEST_VAL >> i) is False

    for i, key in enumerate(KEYS):
        if i % 2 == 0:
            assert populated.get(key) is None
            assert key not in populated
        else:
            assert populated.get(key) == TEST_VAL >> i

    for i, key in enumerate(KEYS):
        if i % 2 == 0:
            assert populated.delete(key) is False
        else:
            assert populated.set(key, TEST_VAL << i) is True

    for i, key in enumerate(KEYS):
        if i % 2 == 0:
            assert populated.get(key, -1) == -1
        else:
            assert populated.get(key) == TEST_VAL << i

    remaining = [key for key, _ in populated.items()]
    assert remaining == sorted(k.encode("utf-8") for i, k in enumerate(KEYS) if i % 2)


def test_prefix_keys_are_independent(pool):
    trie = TrieDict(pool)
    trie.set("ab", 1)
    trie.set("abc", 2)
    assert trie.get("ab") == 1
    assert trie.get("abc") == 2
    assert trie.get("a") is None
    assert [k for k, _ in trie.items()] == [b"ab", b"abc"]


def test_bytes_and_str_keys_share_storage(pool):
    trie = TrieDict(pool)
    trie.set("汉字", 7)
    assert trie.get("汉字".encode("utf-8")) == 7


def test_destroy_releases_all_nodes(pool, populated):
    assert pool.used_nodes() > 1
    populated.destroy()
    assert pool.used_nodes() == 0
    with pytest.raises(RuntimeError):
        populated.get("ABCDEFG")


def test_repeated_create_destroy_does_not_leak(pool):
    for _ in range(100000):
        TrieDict(pool).destroy()
    assert pool.used_nodes() == 0


def test_exhausted_pool():
    small = TrieNodePool(1)
    trie = TrieDict(small)
    assert trie.set("x", 1) is True
    with pytest.raises(TrieExhaustedError):
        trie.set("xy", 2)
    with pytest.raises(TrieExhaustedError):
        TrieDict(small)


def test_invalid_pool_limit():
    with pytest.raises(ValueError):
        TrieNodePool(0)


def test_release_more_than_used(pool):
    with pytest.raises(ValueError):
        pool.release(1)