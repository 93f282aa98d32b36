"""Tests for CSV export rendering."""

from datetime import date

from commentdesk.exporting import EXPORT_FIELDS, export_filename, parse_csv, render_csv


def test_header_and_column_order():
    text = render_csv([])
    assert text.splitlines() == [",".join(EXPORT_FIELDS)]


def test_missing_values_and_booleans():
    text = render_csv(
        [{"id": "s-1", "user_name": "Jane Doe", "recaptcha_verified": True, "final_comment": None}]
    )
    row = parse_csv(text)[0]
    assert row["id"] == "s-1"
    assert row["recaptcha_verified"] == "true"
    assert row["final_comment"] is None
    assert row["user_email"] is None


def test_letters_with_commas_quotes_and_newlines_survive():
    letter = 'Dear CFPB,\n\nI "strongly" oppose this rule, for my family.\n'
    rows = parse_csv(render_csv([{"id": "s-1", "generated_comment": letter}]))
    assert rows[0]["generated_comment"] == letter


def test_extra_columns_dropped():
    rows = parse_csv(render_csv([{"id": "s-1", "ip_address": "203.0.113.7"}]))
    assert "ip_address" not in rows[0]


def test_custom_fieldnames():
    text = render_csv([{"a": 1, "b": 2}], fieldnames=["b"])
    assert text.splitlines() == ["b", "2"]


def test_export_filename():
    assert export_filename(date(2025, 9, 1)) == "submissions_2025-09-01.csv"
