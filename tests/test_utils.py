import sys
from pathlib import Path

import pytest

from scrapekit.utils import (
    append_unique,
    combine_url,
    csv_to_dicts,
    encode_params,
    get_exec_dir,
    lists_to_dict,
    replace_chars,
    sanitize_filename,
    tidy_html_text,
)


@pytest.mark.parametrize(
    "base, suffix, params, expected",
    [
        ("https://example.com/api/", "/items", None, "https://example.com/api/items"),
        ("https://example.com/s?b=2", "", {"a": "1"}, "https://example.com/s?a=1&b=2"),
        ("https://example.com/s", "", {"q": ["x", "y"], "p": 1}, "https://example.com/s?p=1&q=x&q=y"),
        ("https://example.com/s", "", [("z", "1"), ("a", "b c")], "https://example.com/s?a=b+c&z=1"),
        ("https://example.com/s?keep=1", "", None, "https://example.com/s?keep=1"),
    ],
)
def test_combine_url(base, suffix, params, expected):
    assert combine_url(base, suffix, params) == expected


def test_encode_params_keeps_order_of_repeated_keys():
    assert encode_params([("k", "2"), ("a", "x"), ("k", "1")]) == "a=x&k=2&k=1"


def test_tidy_html_text():
    raw = "\n   Price:  12,50   EUR \r\n"
    assert tidy_html_text(raw) == "Price: 12,50 EUR"


def test_sanitize_filename():
    assert sanitize_filename("Report: Q1/Q2 (final)*.pdf") == "Report__Q1_Q2__final__.pdf"
    assert replace_chars("a-b-c", "-", "") == "abc"


def test_append_unique():
    items = ["a"]
    append_unique(items, "b")
    append_unique(items, "a")
    assert items == ["a", "b"]


def test_lists_to_dict():
    assert lists_to_dict(["a", "b"], ["1", "2"]) == {"a": "1", "b": "2"}
    with pytest.raises(ValueError):
        lists_to_dict(["a", "b"], ["1"])


def test_csv_to_dicts(tmp_path: Path):
    path = tmp_path / "rows.csv"
    path.write_text('name,city\nAnn,"Kyiv, UA"\nBob,Lviv\n', encoding="utf-8")

    assert csv_to_dicts(path) == [
        {"name": "Ann", "city": "Kyiv, UA"},
        {"name": "Bob", "city": "Lviv"},
    ]


def test_csv_to_dicts_empty_file(tmp_path: Path):
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")

    assert csv_to_dicts(path) == []


def test_get_exec_dir(monkeypatch, tmp_path: Path):
    script = tmp_path / "bin" / "scraper.py"
    monkeypatch.setattr(sys, "argv", [str(script), "--verbose"])

    assert get_exec_dir() == (tmp_path / "bin").resolve()
