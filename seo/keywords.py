"""
seo/keywords.py

Keyword library for the Taiwan automotive refrigerant market and the small
helpers that turn it into page titles, meta descriptions and suggestions.
The library itself lives in config/seo_keywords.yaml.
"""

from __future__ import annotations

import re
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml

from config.settings import CONFIG_DIR

LOG = logging.getLogger("seo_keywords")

KEYWORDS_PATH = CONFIG_DIR / "seo_keywords.yaml"

KEYWORD_GROUPS = (
    "primary",
    "long_tail",
    "local",
    "brand",
    "technical",
    "problem",
    "seasonal",
    "price",
    "competitor",
)

MAX_TITLE_LENGTH = 60
MAX_DESCRIPTION_LENGTH = 160


@lru_cache(maxsize=4)
def load_keyword_library(path: Path = KEYWORDS_PATH) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    for group in KEYWORD_GROUPS:
        data.setdefault(group, [])
    LOG.debug(
        "Loaded keyword library: %s",
        {g: len(data[g]) for g in KEYWORD_GROUPS},
    )
    return data


def get_keyword_group(group: str) -> List[str]:
    if group not in KEYWORD_GROUPS:
        raise ValueError(f"Unknown keyword group: '{group}'. Valid: {list(KEYWORD_GROUPS)}")
    return list(load_keyword_library()[group])


def get_title_template(name: str) -> str:
    return load_keyword_library().get("title_templates", {})[name]


def get_meta_template(name: str) -> str:
    return load_keyword_library().get("meta_templates", {})[name]


def get_keywords_for_page(page_type: str) -> List[str]:
    """Primary keywords plus the groups that suit ``page_type``."""
    lib = load_keyword_library()
    base = list(lib["primary"])

    if page_type == "home":
        return base + lib["long_tail"][:5] + lib["local"][:3]
    if page_type == "products":
        return base + lib["technical"] + lib["brand"][:5]
    if page_type == "news":
        return base + lib["problem"] + lib["seasonal"][:3]
    if page_type == "services":
        return base + lib["long_tail"] + lib["price"][:3]
    if page_type == "about":
        return base + lib["competitor"] + lib["local"][:5]
    return base


def _fill(template: str, data: Mapping[str, str]) -> str:
    text = template
    for key, value in data.items():
        text = text.replace("{" + key + "}", str(value))
    return text


def generate_seo_title(template: str, data: Mapping[str, str]) -> str:
    title = _fill(template, data)
    if len(title) > MAX_TITLE_LENGTH:
        title = title[: MAX_TITLE_LENGTH - 3] + "..."
    return title


def generate_seo_description(template: str, data: Mapping[str, str]) -> str:
    description = _fill(template, data)
    if len(description) > MAX_DESCRIPTION_LENGTH:
        description = description[: MAX_DESCRIPTION_LENGTH - 3] + "..."
    return description


def check_keyword_density(content: str, keyword: str) -> float:
    """Keyword hits as a percentage of whitespace-separated tokens."""
    tokens = (content or "").split()
    if not tokens or not keyword:
        return 0.0
    hits = len(re.findall(re.escape(keyword), content, flags=re.IGNORECASE))
    return hits / len(tokens) * 100


def get_related_keywords(main_keyword: str, limit: int = 10) -> List[str]:
    """Library keywords sharing a term with ``main_keyword`` (either contains the other)."""
    lib = load_keyword_library()
    pool = lib["primary"] + lib["long_tail"] + lib["technical"] + lib["problem"]
    main_terms = main_keyword.lower().split()

    related: List[str] = []
    for keyword in pool:
        if keyword == main_keyword or keyword in related:
            continue
        terms = keyword.lower().split()
        if any(t in m or m in t for m in main_terms for t in terms):
            related.append(keyword)
    return related[:limit]


__all__ = [
    "KEYWORD_GROUPS",
    "load_keyword_library",
    "get_keyword_group",
    "get_title_template",
    "get_meta_template",
    "get_keywords_for_page",
    "generate_seo_title",
    "generate_seo_description",
    "check_keyword_density",
    "get_related_keywords",
]
