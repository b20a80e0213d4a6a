from __future__ import annotations

import pytest

from sheet_sync.db.batch_upsert import BatchUpsertError, UpsertResult, batch_upsert, quote_ident


class DummyCursor:
    def __init__(self) -> None:
        self.queries: list[str] = []
        self.rows: list[list] = []


@pytest.fixture(autouse=True)
def patch_execute_values(monkeypatch):
    import sheet_sync.db.batch_upsert as bu

    def fake_execute_values(cursor, sql, rows, page_size=1000, fetch=False):
        cursor.queries.append(sql)
        cursor.rows.extend(rows)
        # 짝수 id 는 기존 행 (update), 홀수는 신규 (insert)
        return [(int(r[0]) % 2 == 1,) for r in rows]

    monkeypatch.setattr(bu, "execute_values", fake_execute_values)
    return fake_execute_values


def test_upsert_counts_inserted_and_updated():
    cur = DummyCursor()
    res = batch_upsert(cur, "customers", ["id", "name"], [[1, "A"], [2, "B"], [3, "C"]])
    assert isinstance(res, UpsertResult)
    assert (res.inserted, res.updated, res.total) == (2, 1, 3)
    sql = cur.queries[0]
    assert sql.startswith('INSERT INTO "customers" ("id","name") VALUES %s')
    assert 'ON CONFLICT ("id") DO UPDATE SET "name"=EXCLUDED."name"' in sql
    assert sql.endswith("RETURNING (xmax = 0)")


def test_conflict_column_only_does_nothing():
    cur = DummyCursor()
    batch_upsert(cur, "team", ["email"], [["1"]], conflict_column="email")
    assert 'ON CONFLICT ("email") DO NOTHING' in cur.queries[0]


def test_duplicate_keys_keep_last_row():
    cur = DummyCursor()
    res = batch_upsert(cur, "customers", ["id", "name"], [[1, "old"], [3, "C"], [1, "new"]])
    assert cur.rows == [[1, "new"], [3, "C"]]
    assert res.total == 2


def test_empty_rows_skip_database():
    cur = DummyCursor()
    assert batch_upsert(cur, "customers", ["id"], []) == UpsertResult(0, 0)
    assert cur.queries == []


def test_missing_conflict_column_rejected():
    with pytest.raises(BatchUpsertError):
        batch_upsert(DummyCursor(), "customers", ["name"], [["A"]])


def test_invalid_identifier_rejected():
    with pytest.raises(BatchUpsertError):
        quote_ident('name"; DROP TABLE x; --')
    assert quote_ident("customer_name") == '"customer_name"'


def test_driver_error_is_wrapped(monkeypatch):
    import sheet_sync.db.batch_upsert as bu

    def boom(*args, **kwargs):
        raise RuntimeError("duplicate key value violates unique constraint")

    monkeypatch.setattr(bu, "execute_values", boom)
    captured = []
    with pytest.raises(BatchUpsertError) as e:
        batch_upsert(DummyCursor(), "customers", ["id"], [[1]], metrics_callback=captured.append)
    assert "duplicate key" in str(e.value)
    assert len(captured) == 1 and captured[0].batch_size == 1


def test_metrics_callback():
    captured = []
    batch_upsert(DummyCursor(), "customers", ["id"], [[1], [2]], metrics_callback=captured.append)
    assert len(captured) == 1
    m = captured[0]
    assert m.batch_size == 2
    assert m.elapsed_seconds >= 0 and m.end_time >= m.start_time


def test_package_attribute_is_the_submodule():
    import sheet_sync.db
    import sheet_sync.db.batch_upsert as bu

    assert bu is sheet_sync.db.batch_upsert
    assert hasattr(bu, "execute_values")
    assert not hasattr(sheet_sync.db, "__all__") or "batch_upsert" not in sheet_sync.db.__all__
