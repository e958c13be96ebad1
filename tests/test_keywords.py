# tests/test_keywords.py
# Keyword library and SEO text helpers

import pytest

from seo.keywords import (
    KEYWORD_GROUPS,
    check_keyword_density,
    generate_seo_description,
    generate_seo_title,
    get_keyword_group,
    get_keywords_for_page,
    get_meta_template,
    get_related_keywords,
    get_title_template,
    load_keyword_library,
)


def test_library_has_every_group():
    library = load_keyword_library()
    for group in KEYWORD_GROUPS:
        assert library[group], group
    assert "汽車冷媒" in library["primary"]


def test_unknown_group():
    with pytest.raises(ValueError):
        get_keyword_group("nope")


def test_group_is_a_copy():
    get_keyword_group("primary").append("x")
    assert "x" not in get_keyword_group("primary")


def test_keywords_for_page():
    primary = get_keyword_group("primary")
    home = get_keywords_for_page("home")
    assert home[: len(primary)] == primary
    assert home[len(primary):] == get_keyword_group("long_tail")[:5] + get_keyword_group("local")[:3]

    news = get_keywords_for_page("news")
    assert news[-3:] == get_keyword_group("seasonal")[:3]

    assert get_keywords_for_page("unknown") == primary


def test_seo_title_from_template():
    title = generate_seo_title(get_title_template("news"), {"標題": "冷媒漲價", "品牌": "車冷博士"})
    assert title == "冷媒漲價 | 車冷博士汽車冷媒專業資訊 | 最新技術分享"


def test_seo_title_is_truncated():
    title = generate_seo_title("{標題}", {"標題": "冷" * 80})
    assert len(title) == 60
    assert title.endswith("...")


def test_seo_description_is_truncated():
    description = generate_seo_description(get_meta_template("news"), {"摘要": "氣" * 200})
    assert len(description) == 160
    assert description.endswith("...")


def test_keyword_density():
    assert check_keyword_density("冷媒 很 重要 冷媒", "冷媒") == 50.0
    assert check_keyword_density("R134a and r134a", "R134A") == pytest.approx(200 / 3)
    assert check_keyword_density("", "冷媒") == 0.0
    assert check_keyword_density("冷媒", "") == 0.0


def test_related_keywords():
    assert get_related_keywords("汽車冷媒") == ["汽車冷媒種類比較"]

    related = get_related_keywords("冷媒")
    assert len(related) == 10
    assert related[0] == "汽車冷媒"
    assert all("冷媒" in k for k in related)
    assert get_related_keywords("冷媒", limit=2) == related[:2]
