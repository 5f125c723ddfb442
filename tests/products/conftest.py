from unittest.mock import MagicMock, patch

import pytest


class InMemoryProductRepository:
    """Tabelas products e inventory_logs em memória, com as mesmas condições dos filtros do Supabase."""

    def __init__(self, rows=()):
        self.rows = {row["id"]: dict(row) for row in rows}
        self.logs = {}
        self.db = MagicMock()
        self.fail_appends = 0
        self.fail_revert = False
        self.fail_clear = False
        self.append_calls = 0

    def get_products_paginated(self, start, end, filters=None):
        data = [dict(r) for _, r in sorted(self.rows.items(), reverse=True)]
        return data[start:end + 1], len(data)

    def get_by_id(self, product_id):
        row = self.rows.get(product_id)
        return dict(row) if row else None

    def update(self, product_id, data):
        row = self.rows.get(product_id)
        if row is None:
            return None
        row.update(data)
        return dict(row)

    def update_stock_if_unchanged(self, product_id, data, expected_stock):
        row = self.rows.get(product_id)
        if row is None or row.get("stock") != expected_stock:
            return None
        row.update(data)
        return dict(row)

    def _marker_matches(self, row, dedup_key):
        return (row.get("pending_inventory_log") or {}).get("dedup_key") == dedup_key

    def revert_update(self, product_id, previous, new_stock, dedup_key):
        if self.fail_revert:
            raise RuntimeError("conexão perdida")
        row = self.rows.get(product_id)
        if row is None or row.get("stock") != new_stock or not self._marker_matches(row, dedup_key):
            return False
        row.update(previous)
        row["pending_inventory_log"] = None
        return True

    def clear_pending_log(self, product_id, dedup_key):
        if self.fail_clear:
            raise RuntimeError("conexão perdida")
        row = self.rows.get(product_id)
        if row is None or not self._marker_matches(row, dedup_key):
            return False
        row["pending_inventory_log"] = None
        return True

    def get_products_with_pending_logs(self):
        return [dict(r) for r in self.rows.values() if r.get("pending_inventory_log")]

    def delete(self, product_id):
        return self.rows.pop(product_id, None) is not None

    def append_log_entry(self, row):
        self.append_calls += 1
        if self.fail_appends:
            self.fail_appends -= 1
            raise RuntimeError("inventory_logs indisponível")
        self.logs.setdefault(row["dedup_key"], dict(row))

    def list_inventory_logs(self, product_id=None, start=0, end=49):
        logs = [l for l in self.logs.values() if product_id is None or l["product_id"] == product_id]
        return logs[start:end + 1], len(logs)


@pytest.fixture
def make_repo():
    return InMemoryProductRepository


@pytest.fixture(autouse=True)
def firebase_mirror():
    """O espelho no Firebase não é exercitado nos testes de products."""
    with patch("products.service.set_product_in_firebase") as mock_set, \
            patch("products.service.delete_product_from_firebase") as mock_delete:
        yield {"set": mock_set, "delete": mock_delete}
