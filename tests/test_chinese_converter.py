# tests/test_chinese_converter.py
# Simplified -> Traditional conversion helpers

from Utils.chinese_converter import (
    SIMPLIFIED_TO_TRADITIONAL,
    batch_convert,
    convert_to_traditional,
    detect_simplified,
    ensure_traditional,
    generate_conversion_report,
    get_simplified_ratio,
    is_traditional,
)


def test_table_has_no_identity_pairs():
    assert all(s != t for s, t in SIMPLIFIED_TO_TRADITIONAL.items())


def test_detect_simplified_distinct_in_order():
    assert detect_simplified("这辆车的车灯") == ["这", "辆", "车", "灯"]
    assert detect_simplified("") == []


def test_convert_to_traditional():
    assert convert_to_traditional("汽车冷气压缩机检测") == "汽車冷氣壓縮機檢測"
    assert convert_to_traditional("") == ""


def test_ensure_traditional_leaves_traditional_text_alone():
    result = ensure_traditional("汽車冷媒")
    assert result.text == "汽車冷媒"
    assert not result.has_simplified
    assert not result.converted


def test_ensure_traditional_converts():
    result = ensure_traditional("冷气维修")
    assert result.text == "冷氣維修"
    assert result.converted
    assert result.simplified_chars == ["气", "维"]


def test_is_traditional_and_ratio():
    assert is_traditional("汽車冷媒 R134a")
    assert not is_traditional("汽车")
    assert get_simplified_ratio("车車") == 0.5
    assert get_simplified_ratio("R134a") == 0.0


def test_batch_convert():
    assert batch_convert(["电动车", "冷媒"]) == ["電動車", "冷媒"]


def test_conversion_report():
    report = generate_conversion_report("电车")
    assert report["converted_text"] == "電車"
    assert report["simplified_count"] == 2
    assert report["total_chinese_chars"] == 2
    assert report["simplified_ratio"] == 1.0
    assert report["conversion_map"] == {"电": "電", "车": "車"}
