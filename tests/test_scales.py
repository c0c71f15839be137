"""Tests for scale resolution and scale configuration rewriting."""

import json

import pytest

from lpsync.competency.scales import (
    ScaleConfigurationError,
    ScaleResolver,
    rewrite_scale_configuration,
)


class TestRewriteConfiguration:
    def test_points_first_element_at_scale(self):
        raw = '[{"scaleid":"5"},{"id":1,"scaledefault":1,"proficient":1}]'
        out = json.loads(rewrite_scale_configuration(12, raw))
        assert out[0]["scaleid"] == 12
        assert out[1] == {"id": 1, "scaledefault": 1, "proficient": 1}

    @pytest.mark.parametrize("raw", ["", "not json", "{}", "[]", "[1, 2]", "null"])
    def test_bad_payload_raises(self, raw):
        with pytest.raises(ScaleConfigurationError):
            rewrite_scale_configuration(1, raw)


class TestScaleResolver:
    def test_creates_on_miss(self, api, import_config):
        resolver = ScaleResolver(api, import_config)
        scale_id = resolver.resolve("Bad,Good", "Maths")

        scales = api.fetch_all_scales()
        assert [s.id for s in scales] == [scale_id]
        assert scales[0].name == "Competency scale: Maths"
        assert scales[0].values == ("Bad", "Good")
        assert resolver.created == 1

    def test_created_scale_owner_and_description(self, api, memory_db, import_config):
        ScaleResolver(api, import_config).resolve("Bad,Good", "Maths")
        row = memory_db.execute("SELECT userid, courseid, description FROM scales").fetchone()
        assert row["userid"] == import_config.user_id
        assert row["courseid"] == 0
        assert row["description"] == import_config.scale_description

    def test_reuses_existing_scale_by_value(self, api, import_config):
        existing = api.create_scale("Legacy", 1, ["Bad", "Good"], "")
        resolver = ScaleResolver(api, import_config)
        assert resolver.resolve("Bad, Good", "Maths") == existing.id
        assert resolver.created == 0
        assert resolver.reused == 1

    def test_order_matters(self, api, import_config):
        existing = api.create_scale("Legacy", 1, ["Good", "Bad"], "")
        assert ScaleResolver(api, import_config).resolve("Bad,Good", "X") != existing.id

    def test_first_match_wins(self, api, import_config):
        first = api.create_scale("One", 1, ["A", "B"], "")
        api.create_scale("Two", 1, ["A", "B"], "")
        assert ScaleResolver(api, import_config).resolve("A,B", "X") == first.id

    def test_same_values_twice_creates_once(self, api, import_config):
        resolver = ScaleResolver(api, import_config)
        first = resolver.resolve("A,B,C", "One")
        second = resolver.resolve("A ,B, C", "Two")
        assert first == second
        assert resolver.created == 1
        assert len(api.fetch_all_scales()) == 1

    def test_separate_sessions_share_scales(self, api, import_config):
        first = ScaleResolver(api, import_config).resolve("A,B", "One")
        second = ScaleResolver(api, import_config).resolve("A,B", "Two")
        assert first == second

    def test_resolve_with_configuration(self, api, import_config):
        scale_id, config = ScaleResolver(api, import_config).resolve_with_configuration(
            "A,B", '[{"scaleid":"1"}]', "X"
        )
        assert json.loads(config)[0]["scaleid"] == scale_id
