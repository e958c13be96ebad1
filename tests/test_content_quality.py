# tests/test_content_quality.py
# Rule-based article scoring and auto fix

import pytest

from core.content_quality import (
    ArticleData,
    ContentQualityChecker,
    calculate_readability,
    chinese_ratio,
    clean_html,
    count_paragraphs,
    fix_paragraphs,
    generate_excerpt,
    get_quality_checker,
    has_garbled_text,
    has_too_much_html,
)

KEYWORDS = ["汽車冷媒"]


@pytest.fixture(scope="module")
def checker():
    return ContentQualityChecker()


def test_shared_checker_is_singleton():
    assert get_quality_checker() is get_quality_checker()


def test_good_article_scores_high(checker, good_article):
    score = checker.check_quality(good_article, KEYWORDS)

    assert score.issues == []
    assert score.has_title and score.has_author and score.has_date
    assert score.has_images and score.has_tags
    assert score.is_traditional_chinese
    assert score.readability == 90
    assert score.seo_optimization == 100
    assert score.overall >= 90


def test_no_keywords_gives_neutral_seo(checker, good_article):
    assert checker.check_quality(good_article).seo_optimization == 50


def test_poor_article_collects_issues(checker):
    article = ArticleData(title="汽车", content="冷气不冷")
    score = checker.check_quality(article, KEYWORDS)

    assert "標題過短（少於10個字符）" in score.issues
    assert "缺少標籤" in score.issues
    assert "內容過短（少於200字符）" in score.issues
    assert any(i.startswith("包含簡體字") for i in score.issues)
    assert "未找到任何SEO關鍵字" in score.issues
    assert not score.is_traditional_chinese
    assert "將簡體字轉換為繁體字" in score.suggestions
    assert score.overall < 40


def test_keyword_stuffing_is_flagged(checker, good_article):
    good_article.content = "汽車冷媒" * 300
    score = checker.check_quality(good_article, KEYWORDS)
    assert "SEO關鍵字密度過高（可能過度優化）" in score.issues
    assert score.seo_optimization == 40


def test_batch_check(checker, good_article):
    scores = checker.batch_check([good_article, ArticleData(title="", content="")], KEYWORDS)
    assert len(scores) == 2
    assert "缺少標題" in scores[1].issues


def test_auto_fix_converts_and_cleans(checker):
    article = ArticleData(
        title="汽车冷气检修",
        content="<p>冷气系统需要定期检查。</p><script>x()</script><p>第二段&amp;内容</p>",
        tags=["冷媒"],
    )
    fixed = checker.auto_fix(article)

    assert fixed.title == "汽車冷氣檢修"
    assert "<" not in fixed.content
    assert fixed.content == "冷氣系統需要定期檢查。\n\n第二段&內容"
    assert fixed.excerpt == fixed.content
    assert article.title == "汽车冷气检修"
    assert fixed.tags is not article.tags


def test_garbled_text_detection():
    assert has_garbled_text("冷媒\x00壓力")
    assert has_garbled_text("冷媒�壓力")
    assert has_garbled_text("使用R134a冷媒")
    assert not has_garbled_text("冷媒壓力\n\t正常")
    assert not has_garbled_text("使用 R134a 冷媒")


def test_text_helpers():
    assert count_paragraphs("短\n\n" + "冷" * 60 + "\n\n" + "氣" * 51) == 2
    assert calculate_readability("冷" * 30 + "。") == 90
    assert calculate_readability("冷" * 10 + "。") == 70
    assert calculate_readability("冷" * 70) == 50
    assert chinese_ratio("冷媒ab") == 0.5
    assert chinese_ratio("") == 0.0
    assert has_too_much_html("<b><i><u><s><em><span></span></em></s></u></i></b>x")
    assert not has_too_much_html("<p>" + "冷" * 200 + "</p>")


def test_clean_html_keeps_breaks():
    assert clean_html("<p>一</p><p>二<br>三</p>&nbsp;") == "一\n\n二\n三"


def test_fix_paragraphs():
    assert fix_paragraphs("一\n\n\n\n二\n\n\n三") == "一\n\n二\n\n三"


def test_generate_excerpt():
    assert generate_excerpt("冷媒") == "冷媒"
    sentence_end = "冷" * 130 + "。" + "氣" * 50
    assert generate_excerpt(sentence_end) == "冷" * 130 + "。"
    assert generate_excerpt("冷" * 200) == "冷" * 150 + "..."
