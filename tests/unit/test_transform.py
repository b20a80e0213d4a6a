from __future__ import annotations

from datetime import datetime

import pytest

from sheet_sync.services.transform import (
    apply_mapping,
    convert_data_types,
    optimal_batch_size,
    to_array,
    transform_row,
    validate_row,
)


def test_apply_mapping_leaves_out_blank_cells():
    row = {"예약번호": "R1", "고객명": "", "성인": None, "unmapped": "x"}
    mapping = {"예약번호": "id", "고객명": "customer_name", "성인": "adults"}
    assert apply_mapping(row, mapping) == {"id": "R1"}


def test_numbers():
    out = convert_data_types({"price": "1,200원", "adults": "abc", "unit_price": 2.5, "rooms": 3.0}, "tours")
    assert out["price"] == 1200
    assert out["adults"] == 0
    assert out["unit_price"] == 2.5
    assert out["rooms"] == 3 and isinstance(out["rooms"], int)


def test_ids_read_as_floats_become_integer_text():
    out = convert_data_types({"id": 1024.0, "product_id": "P-1"}, "tours")
    assert out == {"id": "1024", "product_id": "P-1", "tour_status": "Recruiting"}


@pytest.mark.parametrize("raw, expected", [("TRUE", True), ("1", True), ("no", False), (True, True), ("0", False)])
def test_booleans(raw, expected):
    assert convert_data_types({"is_private_tour": raw}, "tours")["is_private_tour"] is expected


def test_dates_default_and_hotel_overrides():
    assert convert_data_types({"tour_date": "2024/03/05"}, "reservations")["tour_date"] == "2024-03-05"
    assert convert_data_types({"tour_date": datetime(2024, 3, 5, 9, 30)}, "tours")["tour_date"] == "2024-03-05"
    hotel = convert_data_types(
        {"check_in_date": "2024-03-05 00:00:00", "tour_date": "2024/03/05"}, "tour_hotel_bookings"
    )
    assert hotel["check_in_date"] == "2024-03-05"
    assert hotel["tour_date"] == "2024/03/05"  # not a date field for this table


def test_blank_tour_id_becomes_none():
    assert convert_data_types({"tour_id": "   "}, "ticket_bookings")["tour_id"] is None
    assert convert_data_types({"tour_id": " T1 "}, "ticket_bookings")["tour_id"] == "T1"


def test_arrays_and_legacy_key_rename():
    assert to_array('["a", "b"]') == ["a", "b"]
    assert to_array("ko, en ,") == ["ko", "en"]
    assert to_array("") is None
    out = convert_data_types({"reservations_ids": "R1,R2", "languages": "ko"}, "tours")
    assert out["reservation_ids"] == ["R1", "R2"]
    assert "reservations_ids" not in out
    assert out["languages"] == ["ko"]


def test_jsonb_invalid_becomes_empty_object():
    out = convert_data_types({"selected_options": "{bad", "selected_option_prices": '{"a": 1}'}, "reservations")
    assert out["selected_options"] == {}
    assert out["selected_option_prices"] == {"a": 1}


def test_table_defaults_only_fill_missing():
    assert transform_row({}, {}, "reservations") == {"status": "pending"}
    assert transform_row({"상태": "confirmed"}, {"상태": "status"}, "reservations")["status"] == "confirmed"
    assert transform_row({}, {}, "customers") == {"language": "ko"}


def test_validate_row_required_fields():
    assert validate_row({"name_ko": "김"}, "team") == ["email"]
    assert validate_row({"id": "P1"}, "reservation_pricing") == ["reservation_id"]
    assert validate_row({}, "reservations") == []


@pytest.mark.parametrize("total, size", [(10, 200), (6000, 400), (15000, 500), (30000, 800), (60000, 1000)])
def test_optimal_batch_size(total, size):
    assert optimal_batch_size(total) == size
