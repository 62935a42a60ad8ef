#!/usr/bin/env python3
"""
Unit tests for the offer HTTP endpoints.

The search engine is replaced through FastAPI dependency overrides, so no
database is needed.
"""

import sys
import unittest
import uuid
from pathlib import Path
from unittest.mock import MagicMock, patch

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from fastapi.testclient import TestClient

from core.config_loader import AppConfig, SearchConfig
from core.search.assembler import SearchPage, snapshot_result
from core.search.errors import (
    FilterValidationError,
    SearchCancelledError,
    SearchTimeoutError,
    StoreError,
)
from core.search.filters import GeoPoint, SortMode, compile_filters
from core.search.strategies import OfferHit
from tests import make_offer_row
from web.backend.app import app
from web.backend.dependencies import get_search_engine
from web.backend.models.requests import OfferSearchQuery
from web.backend.routers.offers import limiter


def offer_result(**overrides):
    return snapshot_result(OfferHit(offer=make_offer_row(**overrides), score=2.5, score_components={"text_score": 2.0}))


class OffersApiTestCase(unittest.TestCase):

    def setUp(self):
        self.engine = MagicMock()
        app.dependency_overrides[get_search_engine] = lambda: self.engine
        limiter.reset()
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()


class TestSearchEndpoint(OffersApiTestCase):

    def test_search_response_shape(self):
        item = offer_result(title="Pintura residencial")
        self.engine.search.return_value = SearchPage(items=[item], total=11, page=2, total_pages=2)

        response = self.client.get("/api/offers", params={"busca": "pintura", "page": 2})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["total"], 11)
        self.assertEqual(body["page"], 2)
        self.assertEqual(body["total_pages"], 2)
        self.assertEqual(len(body["items"]), 1)
        offer = body["items"][0]
        self.assertEqual(offer["title"], "Pintura residencial")
        self.assertEqual(offer["provider"]["name"], "Snapshot Name")
        self.assertEqual(offer["score"], 2.5)
        self.assertNotIn("email", offer["provider"])

    def test_wire_parameters_reach_engine(self):
        self.engine.search.return_value = SearchPage(items=[], total=0, page=1, total_pages=0)

        self.client.get("/api/offers", params=[
            ("categoria", "saude"),
            ("tipoPessoa", "PF"),
            ("precoMin", "10"),
            ("precoMax", "90.5"),
            ("cidade", "Campinas"),
            ("estado", "SP,RJ"),
            ("estado", "MG"),
            ("busca", "pilates"),
            ("comMidia", "true"),
            ("sort", "preco_menor"),
            ("limit", "5"),
        ])

        query = self.engine.search.call_args[0][0]
        self.assertIsInstance(query, OfferSearchQuery)
        self.assertEqual(query.category, "saude")
        self.assertEqual(query.person_type, "PF")
        self.assertEqual(query.price_min, 10.0)
        self.assertEqual(query.price_max, 90.5)
        self.assertEqual(query.city, "Campinas")
        self.assertEqual(query.state, ["SP", "RJ", "MG"])
        self.assertEqual(query.search, "pilates")
        self.assertTrue(query.with_media)
        self.assertEqual(query.sort, "preco_menor")
        self.assertEqual(query.limit, 5)
        self.assertIn("cancel_event", self.engine.search.call_args[1])

    def test_coordinates_reach_engine(self):
        self.engine.search.return_value = SearchPage(items=[], total=0, page=1, total_pages=0)

        response = self.client.get("/api/offers", params={"sort": "distancia", "lat": "-23.55", "lng": "-46.63"})

        self.assertEqual(response.status_code, 200)
        query = self.engine.search.call_args[0][0]
        self.assertEqual(query.sort, "distancia")
        self.assertEqual(query.lat, -23.55)
        self.assertEqual(query.lng, -46.63)

        filters = compile_filters(query)
        self.assertEqual(filters.sort, SortMode.DISTANCE)
        self.assertEqual(filters.geo, GeoPoint(lat=-23.55, lng=-46.63))

    def test_out_of_range_latitude_is_400(self):
        self.engine.search.side_effect = lambda query, cancel_event=None: compile_filters(query)

        response = self.client.get("/api/offers", params={"sort": "distancia", "lat": "100", "lng": "-46.63"})

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["field"], "lat")
        self.assertEqual(body["error"], "lat must be between -90 and 90")

    def test_etag_and_cache_headers(self):
        self.engine.search.return_value = SearchPage(items=[offer_result()], total=1, page=1, total_pages=1)

        response = self.client.get("/api/offers", params={"busca": "violão"})

        self.assertTrue(response.headers["etag"].startswith('W/"'))
        self.assertEqual(response.headers["cache-control"], "private, max-age=30, stale-while-revalidate=30")

    def test_if_none_match_returns_304(self):
        self.engine.search.return_value = SearchPage(items=[offer_result()], total=1, page=1, total_pages=1)
        first = self.client.get("/api/offers", params={"busca": "violão"})

        second = self.client.get(
            "/api/offers",
            params={"busca": "violão"},
            headers={"If-None-Match": first.headers["etag"]},
        )

        self.assertEqual(second.status_code, 304)
        self.assertEqual(second.content, b"")
        self.assertEqual(second.headers["etag"], first.headers["etag"])

    def test_etag_depends_on_query(self):
        self.engine.search.return_value = SearchPage(items=[], total=0, page=1, total_pages=0)
        first = self.client.get("/api/offers", params={"busca": "a"})
        second = self.client.get("/api/offers", params={"busca": "b"})
        self.assertNotEqual(first.headers["etag"], second.headers["etag"])


class TestSearchErrors(OffersApiTestCase):

    def test_filter_validation_error_is_400_with_field(self):
        self.engine.search.side_effect = FilterValidationError("price_min", "price_min cannot be greater than price_max")

        response = self.client.get("/api/offers", params={"precoMin": 500, "precoMax": 100})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {
            "success": False,
            "error": "price_min cannot be greater than price_max",
            "field": "price_min",
            "type": "FilterValidationError",
        })

    def test_malformed_number_is_400(self):
        response = self.client.get("/api/offers", params={"precoMin": "cheap"})

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["field"], "precoMin")
        self.engine.search.assert_not_called()

    def test_store_error_is_generic_500(self):
        self.engine.search.side_effect = StoreError("relation offer does not exist")

        response = self.client.get("/api/offers")

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "Internal server error")
        self.assertNotIn("relation", response.text)

    def test_timeout_is_504(self):
        self.engine.search.side_effect = SearchTimeoutError("statement timeout")
        response = self.client.get("/api/offers")
        self.assertEqual(response.status_code, 504)
        self.assertEqual(response.json()["error"], "Search timed out")

    def test_cancelled_is_503(self):
        self.engine.search.side_effect = SearchCancelledError("cancelled")
        response = self.client.get("/api/offers")
        self.assertEqual(response.status_code, 503)


class TestRateLimit(OffersApiTestCase):

    def test_search_is_rate_limited(self):
        self.engine.search.return_value = SearchPage(items=[], total=0, page=1, total_pages=0)
        config = AppConfig(search=SearchConfig(rate_limit="2/minute"))

        with patch("web.backend.routers.offers.get_config", return_value=config):
            codes = [self.client.get("/api/offers").status_code for _ in range(3)]

        self.assertEqual(codes, [200, 200, 429])


class TestOfferLookup(OffersApiTestCase):

    def test_get_offer(self):
        item = offer_result(status="pausado")
        self.engine.get_by_id.return_value = item

        response = self.client.get(f"/api/offers/{item.id}")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["offer"]["id"], item.id)
        self.assertEqual(body["offer"]["status"], "pausado")
        self.assertIn("etag", response.headers)

    def test_get_offer_not_found(self):
        self.engine.get_by_id.return_value = None

        response = self.client.get(f"/api/offers/{uuid.uuid4()}")

        self.assertEqual(response.status_code, 404)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["type"], "OfferNotFoundException")

    def test_provider_offers(self):
        provider_id = uuid.uuid4()
        self.engine.list_by_provider.return_value = [
            offer_result(provider_id=provider_id, title="Newest"),
            offer_result(provider_id=provider_id, title="Older"),
        ]

        response = self.client.get(f"/api/offers/provider/{provider_id}")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["count"], 2)
        self.assertEqual([o["title"] for o in body["offers"]], ["Newest", "Older"])
        self.engine.list_by_provider.assert_called_once_with(str(provider_id))


class TestHealth(unittest.TestCase):

    def test_health(self):
        response = TestClient(app).get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "healthy", "service": "offer-search"})


if __name__ == '__main__':
    unittest.main()
