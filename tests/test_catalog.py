"""Tests for importing products from the external sneaker catalog."""

import httpx
import pydantic
import pytest

import activity
import catalog
from catalog import CatalogSneaker, SneakerCatalogClient
from conftest import FakeCatalog, sneaker_record
from errors import UpstreamError

ADMIN = {"user_id": "admin-1", "first_name": "Ada", "role": "admin"}


class TestFilterNew:
    def test_drops_skus_already_in_catalog(self, db, make_product):
        make_product(sku="AJ1-001")
        candidates = [sneaker_record("s1", "AJ1-001"), sneaker_record("s2", "DUNK-002")]
        assert [c["sku"] for c in catalog.filter_new(db, candidates)] == ["DUNK-002"]

    def test_sku_match_is_exact(self, db, make_product):
        make_product(sku="aj1-001")
        assert len(catalog.filter_new(db, [sneaker_record("s1", "AJ1-001")])) == 1

    def test_has_description_filter(self, db):
        candidates = [sneaker_record("s1", "A", story=""), sneaker_record("s2", "B", story="Story")]
        assert [c["sku"] for c in catalog.filter_new(db, candidates, has_description=True)] == ["B"]


class TestCatalogSneaker:
    def test_maps_api_fields(self):
        product = CatalogSneaker.model_validate(sneaker_record("s1", "AJ1-001", story="  ")).to_product()
        assert product.retail_price == 180
        assert product.release_date == "2024-01-01"
        assert product.thumbnail_url == "https://img/AJ1-001_t.png"
        assert product.description == "No description available."
        assert product.stock["9_5"] == 10

    def test_blank_sku_is_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            CatalogSneaker.model_validate(sneaker_record("s1", "  "))

    def test_image_is_required(self):
        record = sneaker_record("s1", "AJ1-001")
        del record["image"]
        with pytest.raises(pydantic.ValidationError):
            CatalogSneaker.model_validate(record)

        record["image"] = {"thumbnail": "https://img/t.png"}
        with pytest.raises(pydantic.ValidationError):
            CatalogSneaker.model_validate(record)


class TestImport:
    def test_import_twice_inserts_once(self, db, catalog_client):
        first = catalog.import_products(db, catalog_client, ["s1", "s2"], ADMIN)
        second = catalog.import_products(db, catalog_client, ["s1"], ADMIN)

        assert sorted(first.imported) == ["AJ1-001", "DUNK-002"]
        assert second.imported == []
        assert second.skipped == ["AJ1-001"]
        assert db["products"].count_documents({"sku": "AJ1-001"}) == 1

    def test_duplicates_within_one_batch(self, db, catalog_client):
        report = catalog.import_products(db, catalog_client, ["s1", "s1"], ADMIN)
        assert report.imported == ["AJ1-001"]
        assert report.skipped == ["AJ1-001"]

    def test_invalid_records_are_rejected(self, db):
        bad = sneaker_record("bad", "BAD-1")
        del bad["retailPrice"]
        no_image = sneaker_record("noimg", "NOIMG-1")
        no_image["image"] = None
        client = FakeCatalog({"bad": bad, "noimg": no_image, "ok": sneaker_record("ok", "OK-1")})

        report = catalog.import_products(db, client, ["bad", "noimg", "ok", "missing", "down"], ADMIN)

        assert report.imported == ["OK-1"]
        assert sorted(report.rejected) == ["bad", "down", "missing", "noimg"]
        assert db["products"].count_documents({}) == 1

    def test_import_is_logged(self, db, catalog_client):
        catalog.import_products(db, catalog_client, ["s1", "s2"], ADMIN)
        entry = db["activity_log"].find_one({"action_type": activity.PRODUCT_IMPORT})
        assert entry["details"] == {"product_count": 2}
        assert entry["user_id"] == "admin-1"

    def test_nothing_imported_is_not_logged(self, db, catalog_client):
        catalog.import_products(db, catalog_client, [], ADMIN)
        assert db["activity_log"].count_documents({}) == 0


class TestSneakerCatalogClient:
    def make_client(self, handler, api_key="key"):
        client = SneakerCatalogClient(api_key, "sneakers.test")
        client.client = httpx.Client(base_url="https://sneakers.test", transport=httpx.MockTransport(handler))
        return client

    def test_search_sends_query(self):
        def handler(request):
            assert request.url.params["query"] == "Jordan men"
            return httpx.Response(200, json={"results": [sneaker_record("s1", "A")]})

        results = catalog.search_external(self.make_client(handler), "Jordan", gender="men")
        assert [r["sku"] for r in results] == ["A"]

    def test_search_failure_gives_empty_list(self):
        client = self.make_client(lambda request: httpx.Response(503))
        assert catalog.search_external(client, "Jordan") == []

    def test_missing_key(self):
        client = self.make_client(lambda request: httpx.Response(200, json={}), api_key=None)
        with pytest.raises(UpstreamError):
            client.get_sneaker("s1")
