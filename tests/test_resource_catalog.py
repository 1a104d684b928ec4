"""Tests for the resource catalog"""

import threading
from datetime import date

import pytest

from resource_engine.exceptions import ResourceNotFoundError, ValidationError
from resource_engine.recommendations.populate_resources import (
    load_resources_file,
    populate_catalog,
)
from resource_engine.recommendations.resource_catalog import (
    DirectoryCategory,
    ResourceCatalog,
    ResourceRecord,
    ResourceStatus,
    ResourceType,
    UtilizationAction,
)


class TestResourceCatalog:
    """Test ResourceCatalog functionality"""

    def test_catalog_initialization(self, catalog):
        """Test catalog initializes with seed resources"""
        resources = catalog.get_all_resources()

        assert len(resources) == 7
        assert all(isinstance(r, ResourceRecord) for r in resources)
        assert [r.id for r in resources] == sorted(r.id for r in resources)

    def test_populate_catalog(self):
        """Test populating an empty catalog"""
        catalog = ResourceCatalog()

        count = populate_catalog(catalog)

        assert count == len(catalog) == 7

    def test_filter_by_risk_level(self, catalog):
        """Test filtering resources by risk level"""
        severe = catalog.filter_by_risk_level("severe")

        assert len(severe) > 0
        assert all("severe" in r.metadata.risk_levels for r in severe)

    def test_filter_by_type(self, catalog):
        """Test filtering resources by type"""
        crisis = catalog.filter_by_type(ResourceType.CRISIS)

        assert {r.id for r in crisis} == {"crisis_bn_hotline", "crisis_national_line"}

    def test_resources_by_category(self, catalog):
        """Test filtering resources by directory category"""
        online = catalog.get_resources_by_category(DirectoryCategory.ONLINE_SERVICES)

        assert {r.id for r in online} == {"selfhelp_stress_basics", "wellness_mindfulness_advanced"}

    def test_require_missing_resource(self, catalog):
        """Test missing resources raise ResourceNotFoundError"""
        assert catalog.get_resource("missing") is None

        with pytest.raises(ResourceNotFoundError):
            catalog.require_resource("missing")

    def test_deactivated_resource_hidden(self, catalog):
        """Test inactive resources are excluded from active snapshots"""
        catalog.deactivate_resource("crisis_national_line")

        active_ids = [r.id for r in catalog.get_all_resources()]
        all_ids = [r.id for r in catalog.get_all_resources(include_inactive=True)]

        assert "crisis_national_line" not in active_ids
        assert "crisis_national_line" in all_ids
        assert catalog.get_resource("crisis_national_line").status == ResourceStatus.INACTIVE

    def test_update_resource(self, catalog):
        """Test administrative updates replace the stored record"""
        before = catalog.get_resource("therapy_multilingual")

        updated = catalog.update_resource("therapy_multilingual", {"search_keywords": ["therapy"]})

        assert updated.search_keywords == ["therapy"]
        assert before.search_keywords != ["therapy"]
        assert catalog.get_resource("therapy_multilingual").search_keywords == ["therapy"]

    def test_update_rejects_derived_fields(self, catalog):
        """Test quality metrics cannot be set directly"""
        with pytest.raises(ValidationError):
            catalog.update_resource("therapy_multilingual", {"quality": {"average_rating": 5.0}})

    def test_update_rejects_invalid_values(self, catalog):
        """Test invalid updates are rejected"""
        with pytest.raises(ValidationError):
            catalog.update_resource("therapy_multilingual", {"resource_type": "not-a-type"})

    def test_localized_name_fallback(self, catalog):
        """Test translations fall back to English"""
        hub = catalog.get_resource("dormitory_support_hub")

        assert hub.name.get("zh") == "宿舍心理健康支援中心"
        assert hub.name.get("ta") == hub.name.en
        assert hub.name.get("xx") == hub.name.en


class TestFeedback:
    """Test feedback and quality recomputation"""

    def test_feedback_recomputes_average(self, catalog):
        """Test the average is recomputed from the full feedback set"""
        catalog.add_feedback("peer_filipino_circle", "u1", 5)
        catalog.add_feedback("peer_filipino_circle", "u2", 3)
        catalog.add_feedback("peer_filipino_circle", "u3", 4)

        quality = catalog.get_resource("peer_filipino_circle").quality

        assert quality.average_rating == 4.0
        assert quality.total_reviews == 3

    def test_would_recommend_defaults_from_rating(self, catalog):
        """Test would_recommend defaults to rating >= 4"""
        high = catalog.add_feedback("peer_filipino_circle", "u1", 4)
        low = catalog.add_feedback("peer_filipino_circle", "u2", 2)

        assert high.would_recommend is True
        assert low.would_recommend is False

    def test_recompute_is_idempotent(self, catalog):
        """Test recomputing twice yields the same value"""
        catalog.add_feedback("therapy_multilingual", "u1", 5)
        catalog.add_feedback("therapy_multilingual", "u2", 2)

        first = catalog.recompute_quality("therapy_multilingual")
        second = catalog.recompute_quality("therapy_multilingual")

        assert first.average_rating == second.average_rating == 3.5

    def test_replacing_resource_keeps_derived_quality(self, catalog):
        """Test re-adding a resource cannot overwrite ratings backed by feedback"""
        catalog.add_feedback("peer_filipino_circle", "u1", 1)
        replacement = catalog.get_resource("peer_filipino_circle")
        replacement = replacement.model_copy(update={
            "quality": replacement.quality.model_copy(update={"average_rating": 5.0, "total_reviews": 999})
        })

        catalog.add_resource(replacement)

        quality = catalog.get_resource("peer_filipino_circle").quality
        assert quality.average_rating == 1.0
        assert quality.total_reviews == 1

    def test_replacing_resource_without_feedback(self, catalog):
        """Test seeded metrics are taken as given when no feedback exists"""
        replacement = catalog.get_resource("therapy_multilingual")
        replacement = replacement.model_copy(update={
            "quality": replacement.quality.model_copy(update={"average_rating": 3.2, "total_reviews": 12})
        })

        catalog.add_resource(replacement)

        assert catalog.get_resource("therapy_multilingual").quality.average_rating == 3.2

    def test_concurrent_feedback(self, catalog):
        """Test concurrent appends all land in the aggregate"""
        def submit(start):
            for i in range(start, start + 25):
                catalog.add_feedback("selfhelp_stress_basics", f"user_{i}", 4)

        threads = [threading.Thread(target=submit, args=(n * 25,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        quality = catalog.recompute_quality("selfhelp_stress_basics")
        assert quality.total_reviews == 100
        assert quality.average_rating == 4.0

    def test_invalid_rating_rejected(self, catalog):
        """Test ratings outside 1-5 are rejected"""
        with pytest.raises(ValidationError):
            catalog.add_feedback("therapy_multilingual", "u1", 6)

    def test_feedback_for_missing_resource(self, catalog):
        """Test feedback for unknown resources is rejected"""
        with pytest.raises(ResourceNotFoundError):
            catalog.add_feedback("missing", "u1", 4)


class TestUtilization:
    """Test utilization tracking and resource analytics"""

    def test_track_utilization_counts(self, catalog):
        """Test utilization actions are counted per day"""
        day = date(2025, 11, 17)
        catalog.track_utilization("therapy_multilingual", UtilizationAction.VIEW, on=day)
        catalog.track_utilization("therapy_multilingual", "view", {"country": "Bangladesh"}, on=day)
        record = catalog.track_utilization(
            "therapy_multilingual", UtilizationAction.CONTACT, {"country": "Bangladesh"}, on=day
        )

        assert record.counts["view"] == 2
        assert record.counts["contact"] == 1
        assert record.by_country == {"Bangladesh": 2}

    def test_resource_analytics(self, catalog):
        """Test analytics totals and conversion rate"""
        for _ in range(4):
            catalog.track_utilization("therapy_multilingual", UtilizationAction.VIEW, {"language": "bn"})
        catalog.track_utilization("therapy_multilingual", UtilizationAction.CONTACT, {"language": "ta"})

        analytics = catalog.get_resource_analytics("therapy_multilingual")

        assert analytics["totals"]["view"] == 4
        assert analytics["conversion_rate"] == pytest.approx(0.25)
        assert analytics["top_demographics"]["language"] == {"key": "bn", "value": 4}
        assert analytics["top_demographics"]["country"] is None

    def test_analytics_without_views(self, catalog):
        """Test conversion rate is zero without views"""
        analytics = catalog.get_resource_analytics("therapy_multilingual")

        assert analytics["conversion_rate"] == 0.0
        assert analytics["days_tracked"] == 0

    def test_statistics(self, catalog):
        """Test catalog statistics"""
        stats = catalog.get_statistics()

        assert stats["total_resources"] == 7
        assert stats["active_resources"] == 7
        assert stats["by_type"]["crisis"] == 2
        assert 0 < stats["average_rating"] <= 5


class TestLoadResourcesFile:
    """Test loading resources from JSON"""

    def test_load_valid_file(self, tmp_path, seed_resources):
        """Test a valid resource list loads"""
        path = tmp_path / "resources.json"
        path.write_text("[" + ",".join(r.model_dump_json() for r in seed_resources[:2]) + "]")

        records = load_resources_file(path)

        assert [r.id for r in records] == [seed_resources[0].id, seed_resources[1].id]

    def test_load_invalid_json(self, tmp_path):
        """Test malformed JSON raises ValidationError"""
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        with pytest.raises(ValidationError):
            load_resources_file(path)

    def test_load_invalid_record(self, tmp_path):
        """Test an invalid record raises ValidationError with details"""
        path = tmp_path / "invalid.json"
        path.write_text('[{"id": "x", "resource_type": "therapy"}]')

        with pytest.raises(ValidationError) as exc_info:
            load_resources_file(path)

        assert exc_info.value.details["errors"]

    def test_load_requires_list(self, tmp_path):
        """Test a JSON object is rejected"""
        path = tmp_path / "object.json"
        path.write_text('{"id": "x"}')

        with pytest.raises(ValidationError):
            load_resources_file(path)
