# tests/test_normalise_dedupe.py
# URL / content normalisation and the backoff helper

from Utils.normalise_dedupe import (
    char_jaccard,
    clean_description,
    clean_text,
    dedupe_articles,
    feature_jaccard,
    generate_content_hash,
    generate_slug,
    generate_url_hash,
    normalize_url,
)
from Utils.proxy_ratelimit import backoff_delay


def test_normalize_url_drops_query_and_fragment():
    assert normalize_url("https://Example.com/News/1?utm=x#top") == "https://example.com/news/1"
    assert normalize_url("https://Example.com") == "https://example.com/"
    assert normalize_url("") == ""


def test_clean_text_keeps_cjk_and_alnum():
    assert clean_text("R134a 冷媒，價格！") == "r134a冷媒價格"


def test_content_hash_ignores_punctuation_and_spacing():
    assert generate_content_hash("汽車 冷媒！") == generate_content_hash("汽車冷媒")
    assert generate_content_hash("汽車冷媒") != generate_content_hash("汽車冷氣")


def test_similarity_helpers():
    assert char_jaccard("abc", "abd") == 0.5
    assert char_jaccard("", "abc") == 0.0
    assert abs(feature_jaccard(["a", "b"], ["b", "c"]) - 1 / 3) < 1e-9
    assert feature_jaccard([], ["a"]) == 0.0


def test_generate_slug():
    assert generate_slug("Toyota RAV4 冷氣 保養!") == "toyota-rav4-冷氣-保養"
    assert len(generate_slug("冷" * 200, limit=90)) == 90


def test_clean_description():
    assert clean_description("<p>汽車\n\n冷媒</p>") == "汽車 冷媒"


def test_dedupe_articles_on_normalised_url():
    articles = [
        {"url": "https://example.com/a?ref=1"},
        {"url": "https://EXAMPLE.com/a"},
        {"url": "https://example.com/b"},
    ]
    result = dedupe_articles(articles)
    assert [a["url"] for a in result] == ["https://example.com/a?ref=1", "https://example.com/b"]
    assert result[0]["url_hash"] == generate_url_hash("https://example.com/a")


def test_backoff_delay():
    assert backoff_delay(1, 2000) == 0.0
    assert backoff_delay(2, 2000) == 2000
    assert backoff_delay(3, 2000) == 4000
    assert backoff_delay(5, 2000, 2, 10000) == 10000
