"""Simplified to Traditional Chinese conversion for Taiwan-market content.
Called by content_quality.py, llm_interface.py and the /convert endpoint."""

import re
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

__all__ = [
    "ConversionResult",
    "detect_simplified",
    "convert_to_traditional",
    "ensure_traditional",
    "is_traditional",
    "get_simplified_ratio",
    "batch_convert",
    "generate_conversion_report",
    "SIMPLIFIED_TO_TRADITIONAL",
]

_CJK_RE = re.compile(r"[一-龥]")

_PAIRS = {
    # common vocabulary
    "们": "們", "来": "來", "时": "時", "为": "為", "会": "會",
    "说": "說", "对": "對", "将": "將", "开": "開", "关": "關",
    "进": "進", "这": "這", "过": "過", "还": "還", "经": "經",
    "给": "給", "见": "見", "问": "問", "间": "間", "让": "讓",
    "认": "認", "别": "別", "没": "沒", "发": "發", "当": "當",
    "动": "動", "现": "現", "实": "實", "话": "話", "头": "頭",
    "无": "無", "产": "產", "车": "車", "电": "電", "号": "號",
    "东": "東", "马": "馬", "风": "風", "龙": "龍", "点": "點",
    "业": "業", "资": "資", "价": "價", "尔": "爾", "达": "達",
    "场": "場", "书": "書", "长": "長", "学": "學", "体": "體",
    "机": "機", "国": "國", "从": "從", "后": "後", "应": "應",
    "条": "條", "务": "務", "连": "連", "总": "總", "统": "統",
    "设": "設", "备": "備", "内": "內", "两": "兩", "线": "線",
    "专": "專", "区": "區", "记": "記", "处": "處", "办": "辦",
    "级": "級", "转": "轉", "变": "變", "热": "熱", "标": "標",
    "质": "質", "选": "選", "运": "運", "远": "遠", "环": "環",
    "报": "報", "济": "濟",
    # vehicles
    "轮": "輪", "驾": "駕", "驶": "駛", "载": "載", "辆": "輛",
    "刹": "剎", "档": "檔", "灯": "燈", "钥": "鑰",
    # refrigerant and air conditioning
    "压": "壓", "温": "溫", "冻": "凍", "气": "氣", "缩": "縮",
    "胀": "脹", "阀": "閥",
    # servicing
    "检": "檢", "测": "測", "维": "維", "护": "護", "装": "裝",
    "换": "換", "调": "調", "试": "試", "验": "驗",
    # commerce
    "询": "詢", "购": "購", "销": "銷", "营": "營", "库": "庫",
}

# identical pairs would make every traditional text look simplified
SIMPLIFIED_TO_TRADITIONAL: dict[str, str] = {
    s: t for s, t in _PAIRS.items() if s != t
}
_TRANSLATION_TABLE = str.maketrans(SIMPLIFIED_TO_TRADITIONAL)


@dataclass
class ConversionResult:
    text: str
    has_simplified: bool = False
    simplified_chars: list[str] = field(default_factory=list)
    converted: bool = False


def detect_simplified(text: str) -> list[str]:
    """Return the distinct simplified characters in ``text``, first-seen order."""
    if not text:
        return []
    seen: dict[str, None] = {}
    for char in text:
        if char in SIMPLIFIED_TO_TRADITIONAL:
            seen.setdefault(char, None)
    return list(seen)


def convert_to_traditional(text: str) -> str:
    """Replace every known simplified character with its traditional form."""
    if not text:
        return text or ""
    return text.translate(_TRANSLATION_TABLE)


def ensure_traditional(text: str) -> ConversionResult:
    """Convert ``text`` only when it contains simplified characters."""
    simplified = detect_simplified(text)
    if not simplified:
        return ConversionResult(text=text)
    return ConversionResult(
        text=convert_to_traditional(text),
        has_simplified=True,
        simplified_chars=simplified,
        converted=True,
    )


def is_traditional(text: str) -> bool:
    return not detect_simplified(text)


def get_simplified_ratio(text: str) -> float:
    """Share of CJK characters in ``text`` that are simplified (0.0-1.0)."""
    chars = _CJK_RE.findall(text or "")
    if not chars:
        return 0.0
    simplified = sum(1 for c in chars if c in SIMPLIFIED_TO_TRADITIONAL)
    return simplified / len(chars)


def batch_convert(texts: list[str]) -> list[str]:
    return [convert_to_traditional(t) for t in texts]


def generate_conversion_report(text: str) -> dict[str, Any]:
    """Build a detailed report of what conversion would change in ``text``."""
    simplified = detect_simplified(text)
    report = {
        "original_text": text,
        "converted_text": convert_to_traditional(text),
        "simplified_chars": simplified,
        "simplified_count": len(simplified),
        "total_chinese_chars": len(_CJK_RE.findall(text or "")),
        "simplified_ratio": get_simplified_ratio(text),
        "conversion_map": {c: SIMPLIFIED_TO_TRADITIONAL[c] for c in simplified},
    }
    if simplified:
        logger.debug(
            "generate_conversion_report: %d simplified chars found",
            len(simplified),
        )
    return report
