from __future__ import annotations

from sheet_sync.db.fallback_columns import FallbackColumns
from sheet_sync.services.column_mapper import (
    EXACT,
    SUBSTRING,
    SYNONYM,
    UNDERSCORE,
    MappingEditor,
    auto_map,
    greedy_auto_map,
    rank_sources,
    suggest,
)


def test_tiers():
    assert rank_sources("tour_date", ["TOUR_DATE"]) == [("TOUR_DATE", EXACT)]
    assert rank_sources("price", ["unit price"]) == [("unit price", SUBSTRING)]
    assert rank_sources("customer_email", ["customeremail"]) == [("customeremail", UNDERSCORE)]
    assert rank_sources("adults", ["성인수"]) == [("성인수", SYNONYM)]


def test_exact_match_is_first_even_when_listed_last():
    sources = ["tour_date_old", "my_tour_date", "Tour_Date"]
    assert suggest("tour_date", sources)[0] == "Tour_Date"


def test_suggestions_capped_at_five_and_unique():
    sources = [f"price_{i}" for i in range(8)] + ["price", "price_0"]
    result = suggest("price", sources)
    assert len(result) == 5
    assert result[0] == "price"
    assert len(set(result)) == 5


def test_blank_headers_never_match():
    # 빈 헤더는 모든 이름의 부분 문자열이지만 후보가 되면 안 됨
    assert suggest("id", ["", "  ", "ID"]) == ["ID"]


def test_korean_headers_against_reservations_fallback():
    destinations = [c.name for c in FallbackColumns().get("reservations")]
    mapping = auto_map(destinations, ["예약번호", "고객명"])
    assert mapping == {"예약번호": "id", "고객명": "customer_name"}


def test_auto_map_never_claims_a_source_twice():
    # customer_email and email both want "Email"
    mapping = auto_map(["email", "customer_email"], ["Email", "이메일 주소"])
    assert len(set(mapping.values())) == len(mapping)
    assert mapping["Email"] == "email"  # exact tier wins
    assert mapping["이메일 주소"] == "customer_email"


def test_auto_map_prefers_better_tier_over_schema_order():
    # "name" appears first in the schema but only matches as a substring,
    # "customer_name" matches exactly and must keep its header
    mapping = auto_map(["name", "customer_name"], ["customer_name"])
    assert mapping == {"customer_name": "customer_name"}


def test_greedy_auto_map_last_writer_wins():
    mapping = greedy_auto_map(["email", "customer_email"], ["Email"])
    assert mapping == {"Email": "customer_email"}


def test_auto_map_skips_unmatched_destinations():
    assert auto_map(["id", "status"], ["전혀 다른 열"]) == {}


def test_editor_keeps_destinations_unique():
    editor = MappingEditor({"예약번호": "id"})
    editor.assign("Reservation No", "id")
    assert editor.mapping == {"Reservation No": "id"}
    editor.assign("고객명", "customer_name")
    editor.assign("고객명", "")  # empty destination unassigns
    assert "고객명" not in editor.mapping
    assert len(editor) == 1


def test_editor_constructor_dedupes_destinations():
    editor = MappingEditor({"a": "id", "b": "id"})
    assert editor.mapping == {"b": "id"}


def test_editor_mapping_is_a_copy():
    editor = MappingEditor({"a": "id"})
    editor.mapping["x"] = "y"
    assert editor.mapping == {"a": "id"}
    editor.clear_destination("id")
    assert editor.mapping == {}
