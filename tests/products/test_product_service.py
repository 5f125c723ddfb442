from pathlib import Path
from unittest.mock import MagicMock

import pytest

from products.audit import InventoryAuditor
from products.display import DisplayMode
from products.schemas import ProductUpdate
from products.service import ProductService
from shared.blob_store import LocalBlobStore
from shared.errors import AuditAppendFailure, Conflict, NotFound


def _service(repo, mode=DisplayMode.PERMISSIVE, blob_store=None) -> ProductService:
    auditor = InventoryAuditor(repo, max_attempts=3, sleep=lambda seconds: None)
    return ProductService(repo=repo, blob_store=blob_store or MagicMock(), display_mode=mode, auditor=auditor)


def _only_log(repo) -> dict:
    assert len(repo.logs) == 1
    return next(iter(repo.logs.values()))


class TestUpdateStockAudit:
    """Alteração de estoque: exatamente um log por mudança aceita."""

    def test_stock_10_to_7_writes_one_entry_with_change_minus_3(self, make_repo) -> None:
        repo = make_repo([{"id": 1, "name": "Camiseta", "images": ["x.jpg"], "stock": 10}])

        result = _service(repo).update_product(1, ProductUpdate(stock=7, reason="edit", user_id="admin-1"))

        log = _only_log(repo)
        assert log["change"] == -3
        assert log["reason"] == "edit"
        assert log["user_id"] == "admin-1"
        assert log["product_id"] == 1
        assert log["previous_stock"] == 10
        assert log["new_stock"] == 7
        assert result["stock"] == 7
        assert "pending_inventory_log" not in result
        assert repo.rows[1]["pending_inventory_log"] is None

    def test_round_trip_to_same_stock_logs_every_change(self, make_repo) -> None:
        repo = make_repo([{"id": 1, "images": ["x.jpg"], "stock": 10}])
        service = _service(repo)

        for stock in (7, 10, 7):
            service.update_product(1, ProductUpdate(stock=stock, user_id="admin-1"))

        changes = [log["change"] for log in repo.logs.values()]
        assert changes == [-3, 3, -3]
        assert sum(changes) == repo.rows[1]["stock"] - 10

    def test_same_stock_writes_no_entry(self, make_repo) -> None:
        repo = make_repo([{"id": 1, "images": ["x.jpg"], "stock": 10}])

        _service(repo).update_product(1, ProductUpdate(stock=10, user_id="admin-1"))

        assert repo.logs == {}

    def test_update_without_stock_writes_no_entry(self, make_repo) -> None:
        repo = make_repo([{"id": 1, "images": ["x.jpg"], "stock": 10}])

        result = _service(repo).update_product(1, ProductUpdate(images=["x.jpg", "y.jpg"]))

        assert repo.logs == {}
        assert result["images"] == ["x.jpg", "y.jpg"]

    def test_stock_change_requires_user_id(self, make_repo) -> None:
        repo = make_repo([{"id": 1, "images": ["x.jpg"], "stock": 10}])

        with pytest.raises(ValueError):
            _service(repo).update_product(1, ProductUpdate(stock=3))

        assert repo.rows[1]["stock"] == 10
        assert repo.logs == {}

    def test_missing_product_raises_not_found(self, make_repo) -> None:
        with pytest.raises(NotFound):
            _service(make_repo()).update_product(99, ProductUpdate(stock=1, user_id="admin-1"))

    def test_concurrent_stock_change_raises_conflict(self, make_repo) -> None:
        repo = make_repo([{"id": 1, "images": ["x.jpg"], "stock": 10}])
        stale = repo.get_by_id(1)
        repo.get_by_id = lambda product_id: dict(stale)
        repo.rows[1]["stock"] = 4  # venda concorrente

        with pytest.raises(Conflict):
            _service(repo).update_product(1, ProductUpdate(stock=7, user_id="admin-1"))

        assert repo.rows[1]["stock"] == 4
        assert repo.logs == {}

    def test_transient_append_failure_is_retried(self, make_repo) -> None:
        repo = make_repo([{"id": 1, "images": ["x.jpg"], "stock": 10}])
        repo.fail_appends = 2

        _service(repo).update_product(1, ProductUpdate(stock=12, reason="restock", user_id="admin-1"))

        assert repo.append_calls == 3
        log = _only_log(repo)
        assert log["change"] == 2
        assert log["reason"] == "restock"

    def test_append_failure_fails_update_and_reverts_stock(self, make_repo) -> None:
        repo = make_repo([{"id": 1, "images": ["x.jpg"], "stock": 10}])
        repo.fail_appends = 3

        with pytest.raises(AuditAppendFailure) as exc_info:
            _service(repo).update_product(1, ProductUpdate(stock=7, user_id="admin-1"))

        assert exc_info.value.compensated is True
        assert repo.rows[1]["stock"] == 10
        assert repo.rows[1]["pending_inventory_log"] is None
        assert repo.logs == {}

    def test_crash_between_update_and_append_then_retry_yields_one_entry(self, make_repo) -> None:
        repo = make_repo([{"id": 1, "images": ["x.jpg"], "stock": 10}])
        repo.fail_appends = 3
        repo.fail_revert = True
        service = _service(repo)

        with pytest.raises(AuditAppendFailure) as exc_info:
            service.update_product(1, ProductUpdate(stock=7, user_id="admin-1"))
        assert exc_info.value.compensated is False
        assert repo.rows[1]["stock"] == 7
        assert repo.rows[1]["pending_inventory_log"]["change"] == -3

        # cliente repete a mesma edição
        service.update_product(1, ProductUpdate(stock=7, user_id="admin-1"))

        log = _only_log(repo)
        assert log["change"] == -3
        assert repo.rows[1]["pending_inventory_log"] is None

    def test_crash_after_append_before_clearing_marker_does_not_duplicate(self, make_repo) -> None:
        repo = make_repo([{"id": 1, "images": ["x.jpg"], "stock": 10}])
        repo.fail_clear = True
        service = _service(repo)

        service.update_product(1, ProductUpdate(stock=7, user_id="admin-1"))
        assert repo.rows[1]["pending_inventory_log"] is not None

        repo.fail_clear = False
        service.update_product(1, ProductUpdate(stock=9, user_id="admin-1"))

        changes = sorted(log["change"] for log in repo.logs.values())
        assert changes == [-3, 2]
        assert repo.rows[1]["pending_inventory_log"] is None

    def test_reconcile_flushes_leftover_markers(self, make_repo) -> None:
        repo = make_repo([{"id": 1, "images": ["x.jpg"], "stock": 10}])
        repo.fail_appends = 3
        repo.fail_revert = True
        service = _service(repo)
        with pytest.raises(AuditAppendFailure):
            service.update_product(1, ProductUpdate(stock=7, user_id="admin-1"))

        result = service.reconcile_pending_audits()

        assert len(result["flushed"]) == 1
        assert result["errors"] == []
        assert _only_log(repo)["change"] == -3
        assert service.reconcile_pending_audits() == {"flushed": [], "errors": []}


class TestReadPaths:
    @pytest.fixture
    def store(self, uploads_dir: Path, make_blob) -> LocalBlobStore:
        make_blob("x.jpg")
        return LocalBlobStore(str(uploads_dir))

    @pytest.fixture
    def repo(self, make_repo):
        return make_repo([
            {"id": 1, "name": "P1", "images": ["https://loja.example.com/uploads/x.jpg"], "stock": 2},
            {"id": 2, "name": "P2", "image": "https://loja.example.com/uploads/z.jpg", "stock": 1},
        ])

    def test_strict_list_hides_product_without_images(self, repo, store) -> None:
        result = _service(repo, DisplayMode.STRICT, store).list_products(page=1, limit=10)

        assert [p["id"] for p in result["data"]] == [1]
        assert result["meta"]["total"] == 2

    def test_permissive_list_returns_all_with_normalized_images(self, repo, store) -> None:
        result = _service(repo, DisplayMode.PERMISSIVE, store).list_products(page=1, limit=10)

        assert [p["id"] for p in result["data"]] == [2, 1]
        assert result["data"][0]["images"] == ["https://loja.example.com/uploads/z.jpg"]
        # leitura não migra a linha legada
        assert "images" not in repo.rows[2]

    def test_pagination_meta(self, repo, store) -> None:
        result = _service(repo, DisplayMode.PERMISSIVE, store).list_products(page=1, limit=1)
        assert result["meta"] == {"total": 2, "page": 1, "limit": 1, "nextPage": 2}

    def test_strict_detail_of_hidden_product_is_none(self, repo, store) -> None:
        service = _service(repo, DisplayMode.STRICT, store)
        assert service.get_product(2) is None
        assert service.get_product(1)["name"] == "P1"
        assert 2 in repo.rows

    def test_detail_missing_is_none(self, repo, store) -> None:
        assert _service(repo, DisplayMode.PERMISSIVE, store).get_product(42) is None


class TestDeleteProduct:
    def test_delete_keeps_blobs_and_syncs_mirror(self, make_repo, uploads_dir: Path, make_blob, firebase_mirror) -> None:
        make_blob("x.jpg")
        repo = make_repo([{"id": 1, "images": ["x.jpg"], "stock": 1}])

        assert _service(repo).delete_product(1) is True

        assert repo.rows == {}
        assert (uploads_dir / "x.jpg").exists()
        firebase_mirror["delete"].assert_called_once_with(1)

    def test_delete_missing_is_idempotent(self, make_repo, firebase_mirror) -> None:
        assert _service(make_repo()).delete_product(5) is False
        firebase_mirror["delete"].assert_not_called()

    def test_logs_survive_product_deletion(self, make_repo) -> None:
        repo = make_repo([{"id": 1, "images": ["x.jpg"], "stock": 10}])
        service = _service(repo)
        service.update_product(1, ProductUpdate(stock=7, user_id="admin-1"))

        service.delete_product(1)

        assert service.list_inventory_logs(1)["meta"]["total"] == 1
