import re

import pytest

from mercurehub.topicselector import (
    DEFAULT_TOPIC_SELECTOR_STORE_LRU_MAX_ENTRIES_PER_SHARD,
    ShardedLRUCache,
    TopicSelectorStore,
    new_topic_selector_store_lru,
    template_regexp,
)


def test_match_lru():
    tss = new_topic_selector_store_lru(
        DEFAULT_TOPIC_SELECTOR_STORE_LRU_MAX_ENTRIES_PER_SHARD,
        DEFAULT_TOPIC_SELECTOR_STORE_LRU_MAX_ENTRIES_PER_SHARD,
    )

    assert tss.match("foo", "bar") is False
    assert tss.match("https://example.com/foo/bar", "https://example.com/{foo}/bar") is True

    assert "t_https://example.com/{foo}/bar" in tss.cache
    assert "m_https://example.com/{foo}/bar_https://example.com/foo/bar" in tss.cache

    assert tss.match("https://example.com/foo/bar", "https://example.com/{foo}/bar") is True
    assert tss.match("https://example.com/foo/bar/baz", "https://example.com/{foo}/bar") is False

    assert "t_https://example.com/{foo}/bar" in tss.cache
    assert "m_https://example.com/{foo}/bar_https://example.com/foo/bar" in tss.cache

    assert tss.match(
        "https://example.com/kevin/dunglas", "https://example.com/{fistname}/{lastname}"
    )
    assert tss.match("https://example.com/foo/bar", "*")
    assert tss.match("https://example.com/foo/bar", "https://example.com/foo/bar")
    assert tss.match("foo", "foo")
    assert tss.match("foo", "bar") is False


def test_cached_values():
    tss = new_topic_selector_store_lru(10, 4)
    tss.match("https://example.com/foo/bar", "https://example.com/{foo}/bar")
    assert tss.cache.get("m_https://example.com/{foo}/bar_https://example.com/foo/bar") is True
    assert isinstance(tss.cache.get("t_https://example.com/{foo}/bar"), re.Pattern)
    assert tss.cache.get("missing") is None


def test_lru_without_entries_has_no_cache():
    tss = new_topic_selector_store_lru(0, 0)
    assert tss.cache is None
    assert tss.skip_select is False


def test_lru_default_shard_count():
    tss = new_topic_selector_store_lru(5, 0)
    assert tss.skip_select is True
    assert tss.match("https://example.com/books/1", "https://example.com/books/{id}")


def test_store_without_cache():
    tss = TopicSelectorStore()
    assert tss.match("http://example.com/reviews/22", "http://example.com/reviews/{id}")
    assert not tss.match("http://example.com/books/1", "http://example.com/reviews/{id}")
    assert tss.get_regexp("no-template") is None


def test_faulty_template_is_raw_string():
    tss = TopicSelectorStore()
    selector = "http://example.com/hub?topic=faulty{iri"
    assert tss.get_regexp(selector) is None
    assert tss.match(selector, selector)
    assert not tss.match("http://example.com/hub?topic=faultyiri", selector)


@pytest.mark.parametrize(
    "template",
    ["faulty{iri", "{}", "a}b", "{=foo}", "{foo bar}", "{a{b}"],
)
def test_template_regexp_rejects_invalid(template):
    with pytest.raises(ValueError):
        template_regexp(template)


def test_query_template_matches_escaped_value():
    tss = TopicSelectorStore()
    assert tss.match(
        "https://example.com/users/foo/?topic=https%3A%2F%2Fexample.com%2Fbooks%2F1",
        "https://example.com/users/foo/{?topic}",
    )
    assert not tss.match(
        "https://example.com/users/bar/?topic=https%3A%2F%2Fexample.com%2Fbooks%2F1",
        "https://example.com/users/foo/{?topic}",
    )


def test_path_segment_templates():
    pattern = template_regexp("/.well-known/mercure/subscriptions{/topic}{/subscriber}")
    assert pattern.match("/.well-known/mercure/subscriptions/http%3A%2F%2Fexample.com/urn%3Auuid%3A1")
    assert pattern.match("/.well-known/mercure/subscriptions")
    assert not pattern.match("/.well-known/mercure/other/foo")


def test_simple_expression_excludes_slash():
    pattern = template_regexp("https://example.com/{foo}/bar")
    assert pattern.match("https://example.com/foo/bar")
    assert not pattern.match("https://example.com/a/b/bar")


def test_sharded_lru_evicts_oldest():
    cache = ShardedLRUCache(2, 1)
    cache.set("a", 1, 0)
    cache.set("b", 2, 0)
    assert cache.get("a") == 1
    cache.set("c", 3, 0)
    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3


def test_sharded_lru_rejects_bad_sizes():
    with pytest.raises(ValueError):
        ShardedLRUCache(0, 1)