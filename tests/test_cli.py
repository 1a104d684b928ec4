"""Tests for the command-line interface"""

import json

import pytest
from click.testing import CliRunner

from resource_engine.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def resources_file(tmp_path, seed_resources):
    path = tmp_path / "resources.json"
    path.write_text(json.dumps([r.model_dump(mode="json") for r in seed_resources]))
    return str(path)


@pytest.fixture
def profile_file(tmp_path):
    path = tmp_path / "profile.json"
    path.write_text(json.dumps({
        "anonymous_id": "cli_user",
        "risk": {"latest": {"depression_score": 6, "anxiety_score": 5}},
        "demographics": {
            "language": "bn",
            "country_of_origin": "Bangladesh",
            "employment_sector": "Construction",
            "location": {"country": "Singapore"}
        }
    }))
    return str(path)


def test_resources_list(runner, seed_resources):
    result = runner.invoke(cli, ["resources", "list"])

    assert result.exit_code == 0
    assert f"Active resources: {len(seed_resources)}" in result.output
    assert "crisis_bn_hotline (crisis)" in result.output


def test_resources_list_from_file(runner, resources_file):
    result = runner.invoke(cli, ["resources", "list", "--resources", resources_file])

    assert result.exit_code == 0
    assert "dormitory_support_hub" in result.output


def test_resources_validate(runner, resources_file, seed_resources):
    result = runner.invoke(cli, ["resources", "validate", resources_file])

    assert result.exit_code == 0
    assert f"✓ {len(seed_resources)} resources are valid" in result.output


def test_resources_validate_invalid(runner, tmp_path):
    """Test an invalid resource file fails with a non-zero exit"""
    path = tmp_path / "bad.json"
    path.write_text(json.dumps([{"id": "x"}]))

    result = runner.invoke(cli, ["resources", "validate", str(path)])

    assert result.exit_code != 0


def test_resources_validate_not_a_list(runner, tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"id": "x"}))

    result = runner.invoke(cli, ["resources", "validate", str(path)])

    assert result.exit_code != 0


def test_recommend(runner, profile_file):
    """Test recommendations are printed for a profile file"""
    result = runner.invoke(cli, ["recommend", profile_file, "--max", "10"])

    assert result.exit_code == 0
    assert "Recommendations ===" in result.output
    assert "[crisis_bn_hotline]" in result.output


def test_recommend_with_variant(runner, profile_file):
    result = runner.invoke(cli, ["recommend", profile_file, "--variant", "control_content_based"])

    assert result.exit_code == 0
    assert "Strategy: hybrid" not in result.output


def test_recommend_empty_catalog(runner, profile_file, tmp_path):
    """Test an empty catalog reports that nothing qualified"""
    empty = tmp_path / "empty.json"
    empty.write_text("[]")

    result = runner.invoke(cli, ["recommend", profile_file, "--resources", str(empty)])

    assert result.exit_code == 0
    assert "No resources qualified for this profile" in result.output


def test_recommend_invalid_profile(runner, tmp_path):
    path = tmp_path / "profile.json"
    path.write_text(json.dumps({"anonymous_id": "x"}))

    result = runner.invoke(cli, ["recommend", str(path)])

    assert result.exit_code != 0


def test_search_by_language(runner):
    result = runner.invoke(cli, ["search", "--language", "bn"])

    assert result.exit_code == 0
    assert "Found 4 resources" in result.output
    assert "[crisis_bn_hotline]" in result.output


def test_search_with_distance(runner):
    result = runner.invoke(cli, [
        "search", "--lat", "1.3521", "--lon", "103.8198", "--max-distance", "10", "--sort-by", "distance",
        "--sort-order", "asc"
    ])

    assert result.exit_code == 0
    assert "Distance: 0.00 km" in result.output


def test_search_requires_both_coordinates(runner):
    result = runner.invoke(cli, ["search", "--lat", "1.35"])

    assert result.exit_code != 0


def test_search_distance_without_coordinates(runner):
    result = runner.invoke(cli, ["search", "--max-distance", "10"])

    assert result.exit_code != 0
    assert "max_distance requires coordinates" in result.output


def test_experiments_list(runner):
    result = runner.invoke(cli, ["experiments", "list"])

    assert result.exit_code == 0
    assert "Total experiments: 2" in result.output
    assert "control_content_based (content-based" in result.output


def test_system_health(runner):
    result = runner.invoke(cli, ["system", "health"])

    assert result.exit_code == 0
    assert "Overall Status: HEALTHY" in result.output


def test_system_stats(runner):
    result = runner.invoke(cli, ["system", "stats"])

    assert result.exit_code == 0
    assert "Catalog:" in result.output
