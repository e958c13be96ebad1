"""
core/content_quality.py

CONTENT QUALITY SCORER
======================

Scores crawled articles 0-100 before they are saved or published.

Dimensions:
├── Basic fields      (title, author, date, images, tags)
├── Content           (length, paragraphs, readability, garbled text, HTML noise)
├── Language          (Traditional Chinese, CJK share)
└── SEO               (keyword density, keyword in title)

Every failed check appends a human-readable issue (zh-TW) and costs five
points. ``auto_fix`` repairs what can be repaired mechanically.
"""

from __future__ import annotations

import re
import html
import logging
from dataclasses import dataclass, asdict, field, replace
from typing import Any, Dict, Iterable, List, Optional

from Utils.chinese_converter import convert_to_traditional, detect_simplified, is_traditional

LOG = logging.getLogger("content_quality")

MIN_CONTENT_LENGTH = 200
IDEAL_CONTENT_LENGTH = 800
KEYWORD_DENSITY_MIN = 0.01
KEYWORD_DENSITY_MAX = 0.03
ISSUE_PENALTY = 5

_TAG_RE = re.compile(r"<[^>]*>")
_CJK_RE = re.compile(r"[一-龥]")
_GARBLED_PATTERNS = [
    re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]"),
    re.compile("�"),
    re.compile(r"[一-龥][a-zA-Z0-9]{3,}[一-龥]"),
]


# ================================================================================
# DATA MODELS
# ================================================================================


@dataclass
class ArticleData:
    title: str
    content: str
    author: Optional[str] = None
    publish_date: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    cover_image: Optional[str] = None
    excerpt: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArticleData":
        return cls(
            title=data.get("title") or "",
            content=data.get("content") or "",
            author=data.get("author"),
            publish_date=data.get("publish_date"),
            tags=list(data.get("tags") or []),
            cover_image=data.get("cover_image"),
            excerpt=data.get("excerpt"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class QualityScore:
    overall: float = 0.0
    content_length: int = 0
    has_title: bool = False
    has_author: bool = False
    has_date: bool = False
    has_images: bool = False
    has_tags: bool = False
    is_traditional_chinese: bool = False
    readability: int = 0
    seo_optimization: float = 0.0
    issues: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ================================================================================
# CHECKER
# ================================================================================


class ContentQualityChecker:
    """Rule-based article scorer. Stateless; one instance can be shared."""

    def check_quality(self, article: ArticleData, seo_keywords: Iterable[str] = ()) -> QualityScore:
        keywords = [k for k in seo_keywords if k and k.strip()]
        score = QualityScore(content_length=len(article.content or ""))

        self._check_basic(article, score)
        self._check_content(article, score)
        self._check_language(article, score)
        self._check_seo(article, score, keywords)
        self._calculate_overall(score)
        self._generate_suggestions(score)

        LOG.debug(
            "Quality %.1f for %r (%d issues)", score.overall, article.title[:30], len(score.issues)
        )
        return score

    def batch_check(
        self, articles: List[ArticleData], seo_keywords: Iterable[str] = ()
    ) -> List[QualityScore]:
        keywords = list(seo_keywords)
        return [self.check_quality(a, keywords) for a in articles]

    # ------------------------------------------------------------------ #
    # DIMENSIONS
    # ------------------------------------------------------------------ #

    def _check_basic(self, article: ArticleData, score: QualityScore) -> None:
        title = (article.title or "").strip()
        if title:
            score.has_title = True
            if len(title) < 10:
                score.issues.append("標題過短（少於10個字符）")
            elif len(title) > 60:
                score.issues.append("標題過長（超過60個字符）")
        else:
            score.issues.append("缺少標題")

        score.has_author = bool((article.author or "").strip())
        score.has_date = bool((article.publish_date or "").strip())

        content = article.content or ""
        score.has_images = bool((article.cover_image or "").strip()) or (
            "<img" in content or "![" in content
        )

        if article.tags:
            score.has_tags = True
            if len(article.tags) < 3:
                score.issues.append("標籤過少（建議至少3個）")
        else:
            score.issues.append("缺少標籤")

    def _check_content(self, article: ArticleData, score: QualityScore) -> None:
        content = article.content or ""

        if len(content) < MIN_CONTENT_LENGTH:
            score.issues.append(f"內容過短（少於{MIN_CONTENT_LENGTH}字符）")
        elif len(content) < IDEAL_CONTENT_LENGTH:
            score.issues.append(f"內容偏短（建議至少{IDEAL_CONTENT_LENGTH}字符）")

        if count_paragraphs(content) < 3:
            score.issues.append("段落過少（建議至少3個段落）")

        score.readability = calculate_readability(content)
        if score.readability < 60:
            score.issues.append("內容可讀性較差")

        if has_garbled_text(content):
            score.issues.append("內容可能包含亂碼")

        if has_too_much_html(content):
            score.issues.append("內容包含過多HTML標籤")

    def _check_language(self, article: ArticleData, score: QualityScore) -> None:
        full_text = f"{article.title or ''} {article.content or ''}"

        score.is_traditional_chinese = is_traditional(full_text)
        if not score.is_traditional_chinese:
            simplified = detect_simplified(full_text)
            more = "..." if len(simplified) > 10 else ""
            score.issues.append(f"包含簡體字：{', '.join(simplified[:10])}{more}")

        if chinese_ratio(full_text) < 0.5:
            score.issues.append("中文內容比例過低（少於50%）")

    def _check_seo(self, article: ArticleData, score: QualityScore, keywords: List[str]) -> None:
        if not keywords:
            score.seo_optimization = 50
            return

        text = f"{article.title or ''} {article.content or ''}".lower()
        occurrences = 0
        found = 0
        for keyword in keywords:
            hits = text.count(keyword.lower())
            if hits:
                occurrences += hits
                found += 1

        mean_length = sum(len(k) for k in keywords) / len(keywords)
        density = occurrences / (len(text) / mean_length) if text else 0.0

        if found == 0:
            score.seo_optimization = 0
            score.issues.append("未找到任何SEO關鍵字")
        elif density < KEYWORD_DENSITY_MIN:
            score.seo_optimization = 30
            score.issues.append("SEO關鍵字密度過低")
        elif density > KEYWORD_DENSITY_MAX:
            score.seo_optimization = 40
            score.issues.append("SEO關鍵字密度過高（可能過度優化）")
        else:
            score.seo_optimization = 80 + found / len(keywords) * 20

        title = (article.title or "").lower()
        if not any(k.lower() in title for k in keywords):
            score.issues.append("標題未包含SEO關鍵字")

    @staticmethod
    def _calculate_overall(score: QualityScore) -> None:
        total = (
            (10 if score.has_title else 0)
            + (5 if score.has_author else 0)
            + (5 if score.has_date else 0)
            + (10 if score.has_images else 0)
            + (10 if score.has_tags else 0)
        )
        total += min(100.0, score.content_length / IDEAL_CONTENT_LENGTH * 100) * 0.3
        total += score.readability * 0.1
        total += (100 if score.is_traditional_chinese else 50) * 0.1
        total += score.seo_optimization * 0.1
        total -= len(score.issues) * ISSUE_PENALTY
        score.overall = round(max(0.0, min(100.0, total)), 1)

    @staticmethod
    def _generate_suggestions(score: QualityScore) -> None:
        s = score.suggestions
        if not score.has_title:
            s.append("添加有吸引力的標題")
        if not score.has_author:
            s.append("標註文章作者")
        if not score.has_date:
            s.append("添加發布日期")
        if not score.has_images:
            s.append("添加相關圖片以提高吸引力")
        if not score.has_tags or any(i.startswith("標籤過少") for i in score.issues):
            s.append("添加更多相關標籤（建議3-5個）")
        if score.content_length < IDEAL_CONTENT_LENGTH:
            s.append("擴充內容以提供更多價值")
        if not score.is_traditional_chinese:
            s.append("將簡體字轉換為繁體字")
        if score.readability < 70:
            s.append("簡化句子結構，使用更多段落分隔")
        if score.seo_optimization < 50:
            s.append("適當加入SEO關鍵字（但避免過度堆砌）")

    # ------------------------------------------------------------------ #
    # AUTO FIX
    # ------------------------------------------------------------------ #

    def auto_fix(self, article: ArticleData) -> ArticleData:
        """Return a repaired copy of ``article``; the input is not modified."""
        fixed = replace(article, tags=list(article.tags))

        if detect_simplified(f"{fixed.title} {fixed.content}"):
            fixed.content = convert_to_traditional(fixed.content)
            fixed.title = convert_to_traditional(fixed.title)

        fixed.content = fix_paragraphs(clean_html(fixed.content))

        if not fixed.excerpt:
            fixed.excerpt = generate_excerpt(fixed.content)
        return fixed


# ================================================================================
# TEXT HELPERS
# ================================================================================


def count_paragraphs(content: str) -> int:
    text = _TAG_RE.sub("", content or "")
    return sum(1 for p in re.split(r"\n\n+", text) if len(p.strip()) > 50)


def calculate_readability(content: str) -> int:
    """Score from average sentence length; 20-40 chars reads best."""
    text = _TAG_RE.sub("", content or "")
    sentences = [s for s in re.split(r"[。！？]", text) if s.strip()]
    average = len(text) / max(1, len(sentences))
    if 20 <= average <= 40:
        return 90
    if average < 20:
        return 70
    if average > 60:
        return 50
    return 70


def has_garbled_text(content: str) -> bool:
    return any(p.search(content or "") for p in _GARBLED_PATTERNS)


def has_too_much_html(content: str) -> bool:
    tags = re.findall(r"<[^>]+>", content or "")
    text_length = len(_TAG_RE.sub("", content or ""))
    return len(tags) / max(1.0, text_length / 100) > 5


def chinese_ratio(text: str) -> float:
    total = len(re.sub(r"\s", "", text or ""))
    if not total:
        return 0.0
    return len(_CJK_RE.findall(text)) / total


def clean_html(content: str) -> str:
    """Strip markup while keeping paragraph and line breaks."""
    cleaned = re.sub(r"<script[^>]*>[\s\S]*?</script>", "", content or "", flags=re.I)
    cleaned = re.sub(r"<style[^>]*>[\s\S]*?</style>", "", cleaned, flags=re.I)
    cleaned = re.sub(r"<iframe[^>]*>[\s\S]*?</iframe>", "", cleaned, flags=re.I)
    cleaned = re.sub(r"<p(\s[^>]*)?>", "\n\n", cleaned, flags=re.I)
    cleaned = re.sub(r"</p>", "", cleaned, flags=re.I)
    cleaned = re.sub(r"<br\s*/?>", "\n", cleaned, flags=re.I)
    cleaned = re.sub(r"<[^>]+>", "", cleaned)
    cleaned = html.unescape(cleaned).replace("\xa0", " ")
    return cleaned.strip()


def fix_paragraphs(content: str) -> str:
    parts = (p.strip() for p in re.split(r"\n{3,}", content or ""))
    return "\n\n".join(p for p in parts if p)


def generate_excerpt(content: str, length: int = 150) -> str:
    cleaned = clean_html(content)
    if len(cleaned) <= length:
        return cleaned
    truncated = cleaned[:length]
    last_period = truncated.rfind("。")
    if last_period > length * 0.8:
        return truncated[: last_period + 1]
    return truncated + "..."


_checker: Optional[ContentQualityChecker] = None


def get_quality_checker() -> ContentQualityChecker:
    global _checker
    if _checker is None:
        _checker = ContentQualityChecker()
    return _checker


__all__ = [
    "ArticleData",
    "QualityScore",
    "ContentQualityChecker",
    "get_quality_checker",
    "clean_html",
    "fix_paragraphs",
    "generate_excerpt",
    "MIN_CONTENT_LENGTH",
    "IDEAL_CONTENT_LENGTH",
]
