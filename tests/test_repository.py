"""Tests for the SQLAlchemy parcel repository."""

from __future__ import annotations

import threading

import pytest
from sqlalchemy import text

from landregistry.config import settings
from landregistry.database import SessionLocal
from landregistry.exceptions import InvalidQueryError, ParcelConflictError, ParcelNotFoundError, StorageError
from landregistry.models import Parcel
from landregistry.repositories.parcels import ParcelRepository

from conftest import build_parcel, square


@pytest.fixture
def repo(db):
    return ParcelRepository(db)


class RacingRepository(ParcelRepository):
    """Lets another session bump the version right after each of the first ``races`` reads."""

    def __init__(self, db, races: int):
        super().__init__(db)
        self.races = races
        self.reads = 0

    def _current(self, parcel_id):
        current = super()._current(parcel_id)
        self.reads += 1
        if self.reads <= self.races:
            with SessionLocal() as other:
                other.query(Parcel).filter(Parcel.id == current.id).update(
                    {Parcel.version: Parcel.version + 1}, synchronize_session=False
                )
                other.commit()
        return current


class TestLookup:
    def test_get_is_case_insensitive(self, repo, officer):
        repo.insert(build_parcel(officer, "ksm-001"))
        parcel = repo.get("Ksm-001 ")
        assert parcel.parcel_id == "KSM-001"
        assert parcel.registrant.username == "officer1"

    def test_get_missing(self, repo):
        with pytest.raises(ParcelNotFoundError):
            repo.get("NOPE-1")

    def test_find_all_search_matches_id_owner_and_id_number(self, repo, officer):
        repo.insert(build_parcel(officer, "KSM-001", owner_name="Jane Achieng", owner_id_number="11112222"))
        repo.insert(build_parcel(officer, "KSM-002", owner_name="Peter Otieno", owner_id_number="33334444"))
        repo.insert(build_parcel(officer, "NRB-010", owner_name="Mary Wanjiku", owner_id_number="55556666"))

        assert {p.parcel_id for p in repo.find_all(search="ksm")} == {"KSM-001", "KSM-002"}
        assert [p.parcel_id for p in repo.find_all(search="otieno")] == ["KSM-002"]
        assert [p.parcel_id for p in repo.find_all(search="5555")] == ["NRB-010"]
        assert len(repo.find_all()) == 3

    def test_find_all_status_combines_with_search(self, repo, officer):
        repo.insert(build_parcel(officer, "KSM-001", status="verified"))
        repo.insert(build_parcel(officer, "KSM-002"))
        repo.insert(build_parcel(officer, "NRB-001", status="verified"))

        assert {p.parcel_id for p in repo.find_all(status="verified")} == {"KSM-001", "NRB-001"}
        assert [p.parcel_id for p in repo.find_all(search="KSM", status="verified")] == ["KSM-001"]

    def test_search_escapes_like_wildcards(self, repo, officer):
        repo.insert(build_parcel(officer, "KSM-001"))
        assert repo.find_all(search="%") == []
        assert repo.find_all(search="KSM_001") == []


class TestBoundingBox:
    @pytest.fixture
    def parcels(self, repo, officer):
        repo.insert(build_parcel(officer, "INSIDE-1", square(34.72, -0.28, 0.02)))
        repo.insert(build_parcel(officer, "INSIDE-2", square(34.76, -0.24, 0.01)))
        # Centroid well outside the box
        repo.insert(build_parcel(officer, "OUTSIDE-1", square(35.10, -0.10, 0.05)))
        # Straddles the eastern edge
        repo.insert(build_parcel(officer, "EDGE-1", square(34.79, -0.25, 0.03)))
        # Envelope overlaps the box corner but the triangle itself does not
        repo.insert(
            build_parcel(officer, "NEAR-1", [[34.78, -0.15], [34.85, -0.15], [34.85, -0.25], [34.78, -0.15]])
        )

    def test_parcels_inside_the_box(self, repo, parcels):
        found = {p.parcel_id for p in repo.find_within_bbox(34.7, -0.3, 34.8, -0.2)}
        assert found == {"INSIDE-1", "INSIDE-2"}

    def test_parcel_with_centroid_outside_is_omitted(self, repo, officer):
        repo.insert(build_parcel(officer, "EDGE-2", square(34.79, -0.25, 0.05)))
        assert repo.find_within_bbox(34.7, -0.3, 34.8, -0.2) == []

    def test_intersecting_parcels(self, repo, parcels):
        found = {p.parcel_id for p in repo.find_within_bbox(34.7, -0.3, 34.8, -0.2, intersects=True)}
        assert found == {"INSIDE-1", "INSIDE-2", "EDGE-1"}

    @pytest.mark.parametrize("bounds", [(34.8, -0.3, 34.7, -0.2), (34.7, -0.2, 34.8, -0.3)])
    def test_inverted_bounds_rejected(self, repo, bounds):
        with pytest.raises(InvalidQueryError, match="Invalid bounding box"):
            repo.find_within_bbox(*bounds)

    def test_empty_region(self, repo, parcels):
        assert repo.find_within_bbox(10, 10, 11, 11) == []

    @pytest.mark.parametrize(
        "bounds",
        [(None, -0.3, 34.8, -0.2), (34.7, None, 34.8, -0.2), (34.7, -0.3, None, -0.2), (34.7, -0.3, 34.8, None)],
    )
    def test_every_bound_is_required(self, repo, bounds):
        with pytest.raises(InvalidQueryError, match="Missing bounding box"):
            repo.find_within_bbox(*bounds)

    def test_zero_is_a_valid_bound(self, repo, officer):
        repo.insert(build_parcel(officer, "EQ-1", square(-0.5, -0.5, 0.4)))
        assert [p.parcel_id for p in repo.find_within_bbox(-1, -1, 0, 0)] == ["EQ-1"]


class TestWrites:
    def test_duplicate_insert_conflicts(self, repo, officer):
        repo.insert(build_parcel(officer, "KSM-001"))
        with pytest.raises(ParcelConflictError):
            repo.insert(build_parcel(officer, "ksm-001"))
        assert len(repo.find_all()) == 1

    def test_unknown_status_rejected_by_database(self, repo, officer):
        with pytest.raises(StorageError):
            repo.insert(build_parcel(officer, "KSM-001", status="sold"))
        assert repo.find_all() == []

    def test_concurrent_inserts_only_one_wins(self, officer):
        candidates = [build_parcel(officer, "RACE-1") for _ in range(2)]
        barrier = threading.Barrier(2)
        outcomes: list[str] = []
        lock = threading.Lock()

        def attempt(parcel):
            session = SessionLocal()
            try:
                barrier.wait()
                ParcelRepository(session).insert(parcel)
                result = "created"
            except ParcelConflictError:
                result = "conflict"
            finally:
                session.close()
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt, args=(parcel,)) for parcel in candidates]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(outcomes) == ["conflict", "created"]

    def test_update_bumps_version(self, repo, officer):
        parcel = repo.insert(build_parcel(officer, "KSM-001"))
        parcel.status = "registered"
        updated = repo.update(parcel)
        assert updated.version == 2
        assert repo.get("KSM-001").status == "registered"

    def test_append_documents(self, repo, officer):
        repo.insert(build_parcel(officer, "KSM-001", documents=["a.pdf"]))
        parcel = repo.append_documents("KSM-001", ["b.pdf", "c.png"])
        assert parcel.documents == ["a.pdf", "b.pdf", "c.png"]
        assert parcel.version == 2

    def test_append_sees_writes_from_other_sessions(self, repo, officer):
        repo.insert(build_parcel(officer, "KSM-001"))
        stale = repo.get("KSM-001")
        assert stale.documents == []

        with SessionLocal() as other:
            ParcelRepository(other).append_documents("KSM-001", ["first.pdf"])

        parcel = repo.append_documents("KSM-001", ["second.pdf"])
        assert parcel.documents == ["first.pdf", "second.pdf"]
        assert parcel.version == 3

    def test_append_retries_after_a_concurrent_write(self, db, officer):
        ParcelRepository(db).insert(build_parcel(officer, "KSM-001", documents=["a.pdf"]))
        repo = RacingRepository(db, races=1)

        parcel = repo.append_documents("KSM-001", ["b.pdf"])

        assert repo.reads == 2
        assert parcel.documents == ["a.pdf", "b.pdf"]
        # 1 at insert, 2 from the competing writer, 3 from the append
        assert parcel.version == 3

    def test_append_gives_up_after_max_retries(self, db, officer, monkeypatch):
        monkeypatch.setattr(settings, "append_max_retries", 2)
        ParcelRepository(db).insert(build_parcel(officer, "KSM-001", documents=["a.pdf"]))
        repo = RacingRepository(db, races=10)

        with pytest.raises(StorageError, match="after 2 attempts"):
            repo.append_documents("KSM-001", ["b.pdf"])

        assert repo.reads == 2
        assert ParcelRepository(db).get("KSM-001").documents == ["a.pdf"]

    def test_append_to_missing_parcel(self, repo):
        with pytest.raises(ParcelNotFoundError):
            repo.append_documents("NOPE-1", ["x.pdf"])

    def test_delete(self, repo, officer):
        repo.insert(build_parcel(officer, "KSM-001"))
        repo.delete("KSM-001")
        with pytest.raises(ParcelNotFoundError):
            repo.get("KSM-001")

    def test_delete_missing(self, repo):
        with pytest.raises(ParcelNotFoundError):
            repo.delete("NOPE-1")


@pytest.mark.skipif(not settings.uses_postgis, reason="needs TEST_DATABASE_URL pointing at PostGIS")
class TestPostgisBoundary:
    def test_boundary_has_gist_index(self, db):
        definitions = db.execute(
            text("SELECT indexdef FROM pg_indexes WHERE tablename = 'parcels'")
        ).scalars().all()
        assert any("gist" in d.lower() and "boundary" in d for d in definitions)

    def test_boundary_follows_geometry_updates(self, repo, officer):
        parcel = repo.insert(build_parcel(officer, "KSM-001", square(34.72, -0.28)))
        assert [p.parcel_id for p in repo.find_within_bbox(34.7, -0.3, 34.8, -0.2)] == ["KSM-001"]

        ring = square(36.8, -1.3)
        parcel.geometry = {"type": "Polygon", "coordinates": [ring]}
        parcel.min_lon, parcel.min_lat, parcel.max_lon, parcel.max_lat = 36.8, -1.3, 36.81, -1.29
        repo.update(parcel)

        assert repo.find_within_bbox(34.7, -0.3, 34.8, -0.2) == []
        assert [p.parcel_id for p in repo.find_within_bbox(36.7, -1.4, 36.9, -1.2)] == ["KSM-001"]
