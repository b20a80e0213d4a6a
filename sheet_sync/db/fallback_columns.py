from __future__ import annotations

from ..models.sheet_info import ColumnInfo

"""Static column lists used when live schema introspection is unavailable.

Keeps the mapping editor usable in degraded mode. Entries are
(name, type, nullable, default) and mirror the production tables as of the
last schema review; live introspection always wins when it answers.
"""

__all__ = ["FALLBACK_TABLES", "FallbackColumns"]

_TS = ("created_at", "timestamp", False, "now()"), ("updated_at", "timestamp", False, "now()")
_TSTZ = (
    ("created_at", "timestamp with time zone", True, "now()"),
    ("updated_at", "timestamp with time zone", True, "now()"),
)

_Row = tuple[str, str, bool, "str | None"]

FALLBACK_TABLES: dict[str, tuple[_Row, ...]] = {
    "pickup_hotels": (
        ("id", "text", False, None),
        ("hotel", "text", False, None),
        ("pick_up_location", "text", False, None),
        ("address", "text", True, None),
        ("pin", "text", True, None),
        ("link", "text", True, None),
        ("media", "text[]", True, None),
        ("description_ko", "text", True, None),
        ("description_en", "text", True, None),
        *_TS,
    ),
    "reservations": (
        ("id", "uuid", False, None),
        ("customer_id", "text", True, None),
        ("product_id", "text", True, None),
        ("tour_id", "text", True, None),
        ("customer_name", "text", True, None),
        ("customer_email", "text", True, None),
        ("customer_phone", "text", True, None),
        ("adults", "integer", True, None),
        ("child", "integer", True, None),
        ("infant", "integer", True, None),
        ("total_people", "integer", True, None),
        ("tour_date", "date", True, None),
        ("tour_time", "text", True, None),
        ("pickup_hotel", "text", True, None),
        ("pickup_time", "text", True, None),
        ("channel", "text", True, None),
        ("channel_rn", "text", True, None),
        ("added_by", "text", True, None),
        ("status", "text", True, "pending"),
        ("event_note", "text", True, None),
        ("is_private_tour", "boolean", True, "false"),
        *_TS,
    ),
    "tours": (
        ("id", "text", False, None),
        ("product_id", "text", True, None),
        ("tour_date", "date", True, None),
        ("tour_status", "text", True, "Recruiting"),
        ("tour_guide_id", "uuid", True, None),
        ("assistant_id", "uuid", True, None),
        ("tour_car_id", "uuid", True, None),
        ("is_private_tour", "boolean", True, "false"),
        *_TS,
    ),
    "customers": (
        ("id", "text", False, None),
        ("name", "text", True, None),
        ("email", "text", True, None),
        ("phone", "text", True, None),
        ("language", "text", True, "ko"),
        *_TS,
    ),
    "reservation_options": (
        ("id", "text", False, None),
        ("reservation_id", "text", False, None),
        ("option_id", "text", False, None),
        ("ea", "integer", False, "1"),
        ("price", "decimal", False, "0"),
        ("total_price", "decimal", False, "0"),
        ("status", "text", True, "active"),
        ("note", "text", True, None),
        *_TS,
    ),
    "products": (
        ("id", "text", False, None),
        ("name", "text", True, None),
        ("description", "text", True, None),
        ("price", "numeric", True, None),
        *_TS,
    ),
    "ticket_bookings": (
        ("id", "text", False, None),
        ("category", "text", True, None),
        ("submit_on", "date", True, None),
        ("submitted_by", "text", True, None),
        ("check_in_date", "date", True, None),
        ("time", "time", True, None),
        ("company", "text", True, None),
        ("ea", "integer", True, None),
        ("expense", "numeric", True, None),
        ("income", "numeric", True, None),
        ("payment_method", "text", True, None),
        ("rn_number", "text", True, None),
        ("tour_id", "text", True, None),
        ("note", "text", True, None),
        ("status", "text", True, None),
        ("season", "text", True, None),
        *_TS,
        ("reservation_id", "text", True, None),
    ),
    "tour_hotel_bookings": (
        ("id", "text", False, "gen_random_uuid()::text"),
        ("tour_id", "text", True, None),
        ("event_date", "date", False, None),
        ("submit_on", "timestamp", True, "now()"),
        ("check_in_date", "date", False, None),
        ("check_out_date", "date", False, None),
        ("reservation_name", "text", False, None),
        ("submitted_by", "text", True, None),
        ("cc", "text", True, None),
        ("rooms", "integer", False, "1"),
        ("city", "text", False, None),
        ("hotel", "text", False, None),
        ("room_type", "text", True, None),
        ("unit_price", "numeric", True, "0.00"),
        ("total_price", "numeric", True, "0.00"),
        ("payment_method", "text", True, None),
        ("website", "text", True, None),
        ("rn_number", "text", True, None),
        ("status", "text", True, "pending"),
        *_TS,
    ),
    "vehicles": (
        ("id", "text", False, None),
        ("vehicle_number", "text", True, None),
        ("vin", "text", True, None),
        ("vehicle_type", "text", True, None),
        ("capacity", "integer", True, None),
        ("year", "integer", True, None),
        ("mileage_at_purchase", "integer", True, None),
        ("purchase_amount", "numeric", True, None),
        ("purchase_date", "date", True, None),
        ("memo", "text", True, None),
        ("engine_oil_change_cycle", "integer", True, None),
        ("current_mileage", "integer", True, None),
        ("recent_engine_oil_change_mileage", "integer", True, None),
        ("vehicle_status", "text", True, None),
        ("front_tire_size", "text", True, None),
        ("rear_tire_size", "text", True, None),
        ("windshield_wiper_size", "text", True, None),
        ("headlight_model", "text", True, None),
        ("headlight_model_name", "text", True, None),
        ("is_installment", "boolean", True, "false"),
        ("installment_amount", "numeric", True, None),
        ("interest_rate", "numeric", True, None),
        ("monthly_payment", "numeric", True, None),
        ("additional_payment", "numeric", True, None),
        ("payment_due_date", "date", True, None),
        ("installment_start_date", "date", True, None),
        *_TS,
    ),
    "tour_expenses": (
        ("id", "text", False, None),
        ("tour_id", "text", False, None),
        ("submit_on", "timestamp", True, "now()"),
        ("paid_to", "text", True, None),
        ("paid_for", "text", False, None),
        ("amount", "numeric", False, None),
        ("payment_method", "text", True, None),
        ("note", "text", True, None),
        ("tour_date", "date", False, None),
        ("product_id", "text", True, None),
        ("submitted_by", "text", False, None),
        ("image_url", "text", True, None),
        ("file_path", "text", True, None),
        ("audited_by", "text", True, None),
        ("checked_by", "text", True, None),
        ("checked_on", "timestamp", True, None),
        ("status", "text", True, "pending"),
        *_TS,
    ),
    "team": (
        ("email", "text", False, None),
        ("name_ko", "text", False, None),
        ("name_en", "text", True, None),
        ("phone", "text", False, None),
        ("position", "text", True, None),
        ("languages", "text[]", True, "{}"),
        ("avatar_url", "text", True, None),
        ("is_active", "boolean", True, "true"),
        ("hire_date", "date", True, None),
        ("status", "text", True, "active"),
        *_TS,
        ("emergency_contact", "text", True, None),
        ("date_of_birth", "date", True, None),
        ("ssn", "text", True, None),
        ("personal_car_model", "text", True, None),
        ("car_year", "integer", True, None),
        ("car_plate", "text", True, None),
        ("bank_name", "text", True, None),
        ("account_holder", "text", True, None),
        ("bank_number", "text", True, None),
        ("routing_number", "text", True, None),
        ("cpr", "boolean", True, "false"),
        ("cpr_acquired", "date", True, None),
        ("cpr_expired", "date", True, None),
        ("medical_report", "boolean", True, "false"),
        ("medical_acquired", "date", True, None),
        ("medical_expired", "date", True, None),
        ("address", "text", True, None),
    ),
    "reservation_pricing": (
        ("id", "text", False, "gen_random_uuid()::text"),
        ("reservation_id", "text", False, None),
        ("adult_product_price", "numeric", True, "0.00"),
        ("child_product_price", "numeric", True, "0.00"),
        ("infant_product_price", "numeric", True, "0.00"),
        ("product_price_total", "numeric", True, "0.00"),
        ("required_options", "jsonb", True, "{}"),
        ("required_option_total", "numeric", True, "0.00"),
        ("subtotal", "numeric", True, "0.00"),
        ("coupon_code", "text", True, None),
        ("coupon_discount", "numeric", True, "0.00"),
        ("additional_discount", "numeric", True, "0.00"),
        ("additional_cost", "numeric", True, "0.00"),
        ("card_fee", "numeric", True, "0.00"),
        ("tax", "numeric", True, "0.00"),
        ("prepayment_cost", "numeric", True, "0.00"),
        ("prepayment_tip", "numeric", True, "0.00"),
        ("selected_options", "jsonb", True, "{}"),
        ("option_total", "numeric", True, "0.00"),
        ("is_private_tour", "boolean", True, "false"),
        ("private_tour_additional_cost", "numeric", True, "0.00"),
        ("total_price", "numeric", True, "0.00"),
        ("deposit_amount", "numeric", True, "0.00"),
        ("balance_amount", "numeric", True, "0.00"),
        ("commission_percent", "numeric", True, "0.00"),
        ("commission_amount", "numeric", True, "0.00"),
        ("created_at", "timestamp", True, "now()"),
        ("updated_at", "timestamp", True, "now()"),
    ),
    "off_schedules": (
        ("id", "uuid", False, "gen_random_uuid()"),
        ("team_email", "character varying(255)", False, None),
        ("off_date", "date", False, None),
        ("reason", "text", False, None),
        ("status", "text", False, "'pending'"),
        ("approved_by", "character varying(255)", True, None),
        ("approved_at", "timestamp with time zone", True, None),
        *_TSTZ,
    ),
    "payment_records": (
        ("id", "text", False, "gen_random_uuid()"),
        ("reservation_id", "text", False, None),
        ("payment_status", "character varying(50)", False, "'pending'"),
        ("amount", "numeric(10, 2)", False, None),
        ("payment_method", "character varying(50)", False, None),
        ("note", "text", True, None),
        ("image_file_url", "text", True, None),
        ("submit_on", "timestamp with time zone", True, "now()"),
        ("submit_by", "character varying(255)", True, None),
        ("confirmed_on", "timestamp with time zone", True, None),
        ("confirmed_by", "character varying(255)", True, None),
        ("amount_krw", "numeric(10, 2)", True, None),
        *_TSTZ,
    ),
}


class FallbackColumns:
    """Callable lookup over FALLBACK_TABLES (or an injected table for tests)."""

    def __init__(self, tables: dict[str, tuple[_Row, ...]] | None = None) -> None:
        self.tables = FALLBACK_TABLES if tables is None else tables

    def has(self, table: str) -> bool:
        return table in self.tables

    def get(self, table: str) -> list[ColumnInfo]:
        return [
            ColumnInfo(name=name, type=type_, nullable=nullable, default=default)
            for name, type_, nullable, default in self.tables.get(table, ())
        ]

    __call__ = get
