"""Tests for the interaction ledger"""

import json
from datetime import timedelta, timezone

import pytest

from resource_engine.interactions.events import (
    ClickPayload,
    CompletePayload,
    RatePayload,
    SharePayload,
    ViewPayload,
)
from resource_engine.interactions.ledger import InteractionLedger
from resource_engine.recommendations.experiments import ExperimentAssignment
from resource_engine.recommendations.profiles import InteractionType, ProfileStore
from resource_engine.recommendations.resource_catalog import Urgency
from resource_engine.recommendations.strategies import ScoredCandidate, Strategy


@pytest.fixture
def candidates(make_resource):
    return [
        ScoredCandidate(
            resource=make_resource(resource_id),
            score=score,
            strategy=Strategy.HYBRID,
            urgency=Urgency.LOW,
            estimated_helpfulness=0.5,
        )
        for resource_id, score in [("res_a", 0.9), ("res_b", 0.7)]
    ]


@pytest.fixture
def profile(make_profile):
    return make_profile("ledger_user", language="bn", location_country="Singapore")


@pytest.fixture
def store(profile):
    return ProfileStore([profile])


@pytest.fixture
def ledger(store):
    return InteractionLedger(profile_store=store)


class TestRecording:
    """Test recommendation records"""

    def test_one_record_per_candidate(self, ledger, profile, candidates):
        """Test each candidate gets a record with its display position"""
        recorded = ledger.record_recommendations(profile, candidates)

        assert len(ledger) == 2
        assert all(c.recommendation_id.startswith("rec_") for c in recorded)

        first = ledger.get_record(recorded[0].recommendation_id)
        assert first.resource_id == "res_a"
        assert first.position == 1
        assert first.score == 0.9
        assert first.strategy == "hybrid"
        assert first.country == "Singapore"
        assert first.language == "bn"
        assert ledger.get_record(recorded[1].recommendation_id).position == 2

    def test_input_candidates_untouched(self, ledger, profile, candidates):
        ledger.record_recommendations(profile, candidates)

        assert all(c.recommendation_id is None for c in candidates)

    def test_experiment_assignment_recorded(self, ledger, profile, candidates):
        assignment = ExperimentAssignment(
            experiment_id="exp_1",
            variant_id="exp_1_a",
            strategy=Strategy.CONTENT_BASED,
        )

        recorded = ledger.record_recommendations(profile, candidates, assignment)

        record = ledger.get_record(recorded[0].recommendation_id)
        assert (record.experiment_id, record.variant_id) == ("exp_1", "exp_1_a")

    def test_empty_candidates(self, ledger, profile):
        assert ledger.record_recommendations(profile, []) == []
        assert len(ledger) == 0


class TestTracking:
    """Test interaction tracking"""

    @pytest.fixture
    def rec_id(self, ledger, profile, candidates):
        return ledger.record_recommendations(profile, candidates)[0].recommendation_id

    def test_view(self, ledger, rec_id):
        event = ledger.track(rec_id, ViewPayload())

        assert event.event_type == "view"
        assert ledger.get_record(rec_id).viewed is True
        assert ledger.get_record(rec_id).clicked is False

    def test_click_implies_view(self, ledger, rec_id):
        ledger.track(rec_id, ClickPayload(time_to_click=3.0))

        record = ledger.get_record(rec_id)
        assert record.viewed is True
        assert record.clicked is True
        assert record.time_to_click == 3.0

    def test_complete_and_rate(self, ledger, rec_id):
        ledger.track(rec_id, CompletePayload(duration=600))
        ledger.track(rec_id, RatePayload(rating=4, helpfulness=5))

        record = ledger.get_record(rec_id)
        assert record.completed is True
        assert record.completion_time == 600
        assert (record.rating, record.helpfulness) == (4, 5)

    def test_share(self, ledger, rec_id):
        ledger.track(rec_id, SharePayload(channel="whatsapp"))

        assert ledger.get_record(rec_id).shared is True

    def test_unknown_recommendation(self, ledger):
        """Test unknown ids are ignored without recording an event"""
        assert ledger.track("rec_missing", ViewPayload()) is None
        assert ledger.events() == []

    def test_events_are_appended(self, ledger, rec_id):
        ledger.track(rec_id, ViewPayload())
        ledger.track(rec_id, ClickPayload())

        assert [e.event_type for e in ledger.events(rec_id)] == ["view", "click"]
        assert ledger.events("rec_other") == []

    def test_interactions_reach_profile_history(self, ledger, store, rec_id):
        """Test events are mirrored into the user's profile"""
        ledger.track(rec_id, RatePayload(rating=5))

        history = store.get("ledger_user").interaction_history
        assert len(history) == 1
        assert history[0].type == InteractionType.RATE
        assert history[0].resource_id == "res_a"
        assert history[0].rating == 5

    def test_records_time_range(self, ledger, rec_id):
        record = ledger.get_record(rec_id)

        assert len(ledger.records(start=record.created_at)) == 2
        assert ledger.records(end=record.created_at.replace(year=2000)) == []

    def test_records_time_range_with_aware_bounds(self, ledger, rec_id):
        """Test timezone-aware bounds are compared in UTC"""
        created = ledger.get_record(rec_id).created_at
        start = created.replace(tzinfo=timezone.utc) - timedelta(minutes=1)
        end = (created + timedelta(hours=9, minutes=1)).replace(tzinfo=timezone(timedelta(hours=9)))

        assert len(ledger.records(start=start)) == 2
        assert len(ledger.records(end=end)) == 2
        assert ledger.records(end=start) == []


class TestPersistence:
    """Test the JSON Lines mirror"""

    def test_entries_written(self, tmp_path, store, profile, candidates):
        """Test records and events are appended as JSON lines"""
        path = tmp_path / "ledger" / "ledger.jsonl"
        ledger = InteractionLedger(profile_store=store, persist_path=str(path))

        recorded = ledger.record_recommendations(profile, candidates)
        ledger.track(recorded[0].recommendation_id, ClickPayload())

        entries = [json.loads(line) for line in path.read_text().splitlines()]
        assert [e["entry_type"] for e in entries] == ["recommendation", "recommendation", "interaction"]
        assert entries[0]["resource_id"] == "res_a"
        assert entries[2]["payload"]["type"] == "click"

    def test_write_failure_keeps_recommendations(self, tmp_path, store, profile, candidates):
        """Test an unwritable mirror still returns tracked recommendations"""
        path = tmp_path / "ledger.jsonl"
        path.mkdir()
        ledger = InteractionLedger(profile_store=store, persist_path=str(path))

        recorded = ledger.record_recommendations(profile, candidates)

        assert len(ledger) == 2
        assert all(ledger.get_record(c.recommendation_id) is not None for c in recorded)

    def test_write_failure_keeps_interaction(self, tmp_path, store, profile, candidates):
        """Test an unwritable mirror still updates flags and profile history"""
        path = tmp_path / "ledger.jsonl"
        path.mkdir()
        ledger = InteractionLedger(profile_store=store, persist_path=str(path))
        rec_id = ledger.record_recommendations(profile, candidates)[0].recommendation_id

        event = ledger.track(rec_id, RatePayload(rating=2))

        assert event is not None
        assert ledger.get_record(rec_id).rating == 2
        assert store.get("ledger_user").interaction_history[-1].rating == 2
