"""
Firestore Store Tests
=====================

Document mapping and the bounding-box radius query, against a minimal
in-process stand-in for a Firestore collection.
"""

import operator

import pytest

from incident_hub.models.incident import IncidentStatus
from incident_hub.models.location import GeoPoint
from incident_hub.services.firestore_store import (
    FirestoreIncidentStore,
    from_document,
    latitude_window,
    to_document,
)
from incident_hub.services.geo_math import haversine_meters

_OPS = {">=": operator.ge, "<=": operator.le, "==": operator.eq}


class _Snapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    def to_dict(self):
        return dict(self._data)


class _Query:
    """Applies FieldFilter objects to a dict of documents."""

    def __init__(self, documents, filters=()):
        self.documents = documents
        self.filters = list(filters)

    def where(self, filter):
        return _Query(self.documents, self.filters + [filter])

    def stream(self):
        for doc_id, data in self.documents.items():
            if all(_OPS[f.op_string](data.get(f.field_path), f.value) for f in self.filters):
                yield _Snapshot(doc_id, data)


class _Db:
    def __init__(self, documents):
        self.documents = documents

    def collection(self, name):
        return _Query(self.documents)

    def collections(self):
        return ["incidents"]


class TestDocumentMapping:

    def test_to_document_adds_query_fields(self, make_incident):
        incident = make_incident(lat=12.9716, lng=77.5946)

        document = to_document(incident, version=3)

        assert document["version"] == 3
        assert document["latitude"] == 12.9716
        assert document["longitude"] == 77.5946
        assert document["location"] == {"type": "Point", "coordinates": [77.5946, 12.9716]}
        assert document["status"] == "reported"

    def test_from_document_restores_aggregate(self, make_incident, scorer, registered):
        incident = make_incident(reporter=registered)
        scorer.recompute(incident)

        restored = from_document("doc-1", to_document(incident, version=5))

        assert restored.id == "doc-1"
        assert restored.version == 5
        assert restored.verification_score == 10
        assert restored.reported_at == incident.reported_at
        assert restored.reported_by == registered

    def test_latitude_window(self):
        south, north = latitude_window(0.0, 111_195)
        assert south == pytest.approx(-1.0, abs=1e-3)
        assert north == pytest.approx(1.0, abs=1e-3)

    def test_latitude_window_clamped_at_poles(self):
        south, north = latitude_window(89.9, 50_000)
        assert north == 90.0
        assert south < 89.9


class TestRadiusQuery:

    def _store(self, *incidents):
        documents = {incident.id: to_document(incident, version=1) for incident in incidents}
        return FirestoreIncidentStore(_Db(documents), collection="incidents")

    def test_bounding_box_over_approximates(self, make_incident):
        center = GeoPoint.from_lat_lng(12.9716, 77.5946)
        same_band_far_east = make_incident(id="east", lat=12.9716, lng=78.5)
        north = make_incident(id="north", lat=13.5, lng=77.5946)
        close = make_incident(id="close", lat=12.975, lng=77.5946)

        candidates = self._store(same_band_far_east, north, close).find_within_radius(center, 1000)

        ids = {c.id for c in candidates}
        assert ids == {"east", "close"}
        within = [
            c.id for c in candidates
            if haversine_meters(12.9716, 77.5946, c.location.latitude, c.location.longitude) <= 1000
        ]
        assert within == ["close"]

    def test_status_filter(self, make_incident):
        center = GeoPoint.from_lat_lng(12.9716, 77.5946)
        active = make_incident(id="active")
        closed = make_incident(id="closed", status=IncidentStatus.CLOSED)

        candidates = self._store(active, closed).find_within_radius(
            center, 1000, statuses=[IncidentStatus.REPORTED]
        )

        assert [c.id for c in candidates] == ["active"]

    def test_unreadable_documents_skipped(self, make_incident):
        center = GeoPoint.from_lat_lng(12.9716, 77.5946)
        good = make_incident(id="good")
        store = self._store(good)
        store.db.documents["bad"] = {"latitude": 12.9716, "title": "x"}

        assert [c.id for c in store.find_within_radius(center, 1000)] == ["good"]

    def test_healthcheck(self):
        store = FirestoreIncidentStore(_Db({}))
        assert store.healthcheck() == {"backend": "firestore", "connected": True, "collections_count": 1}

    def test_list_all_skips_unreadable_documents(self, make_incident):
        store = self._store(make_incident(id="good"), make_incident(id="also-good"))
        store.db.documents["bad"] = {"status": "reported", "title": "x"}

        assert {i.id for i in store.list_all()} == {"good", "also-good"}
