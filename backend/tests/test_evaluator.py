from forecasta.services.monitoring.evaluator import (
    EvaluationInput,
    evaluate_config,
    severity_ranking_drop,
)


def _data(current=None, previous=None, profile=None):
    return EvaluationInput(demo_id="demo_1", profile=profile or {}, current=current or {}, previous=previous or {})


def test_ranking_drop_reports_positions_dropped():
    data = _data(current={"rankings": {"roof repair": 9}}, previous={"google_rankings": {"roof repair": 3}})
    draft = evaluate_config(data, "ranking_drop", {"positions_dropped": 5, "keywords": []})

    assert draft is not None
    assert draft.detected_data["positions_dropped"] == 6
    assert draft.detected_data["old_rank"] == 3
    assert draft.detected_data["new_rank"] == 9
    assert draft.severity == "medium"
    assert "roof repair" in draft.title
    assert draft.recommended_actions[0]["priority"] == 1


def test_ranking_drop_below_threshold_or_improved():
    prev = {"google_rankings": {"roof repair": 3}}
    assert evaluate_config(_data({"rankings": {"roof repair": 7}}, prev), "ranking_drop", {"positions_dropped": 5}) is None
    assert evaluate_config(_data({"rankings": {"roof repair": 1}}, prev), "ranking_drop", {"positions_dropped": 5}) is None


def test_ranking_drop_needs_previous_snapshot():
    data = _data(current={"rankings": {"roof repair": 30}})
    assert evaluate_config(data, "ranking_drop", {"positions_dropped": 5}) is None


def test_ranking_drop_only_tracks_listed_keywords():
    data = _data(
        current={"rankings": {"roof repair": 20, "gutters": 2}},
        previous={"google_rankings": {"roof repair": 2, "gutters": 2}},
    )
    assert evaluate_config(data, "ranking_drop", {"positions_dropped": 5, "keywords": ["gutters"]}) is None


def test_ranking_drop_severity_bands():
    assert severity_ranking_drop(12) == "critical"
    assert severity_ranking_drop(7) == "high"
    assert severity_ranking_drop(5) == "medium"
    assert severity_ranking_drop(2) == "low"


def test_qc_failure_spike_requires_min_jobs():
    threshold = {"failure_rate_threshold": 0.15, "min_jobs": 5}

    too_few = _data(current={"qc_stats": {"jobs_analyzed": 4, "failed_jobs": 4}})
    assert evaluate_config(too_few, "qc_failure_spike", threshold) is None

    enough = _data(current={"qc_stats": {"jobs_analyzed": 6, "failed_jobs": 1}})
    draft = evaluate_config(enough, "qc_failure_spike", threshold)
    assert draft is not None
    assert draft.detected_data["failed_jobs"] == 1
    assert draft.detected_data["jobs_analyzed"] == 6
    assert draft.severity == "medium"


def test_qc_failure_spike_zero_jobs_never_fires():
    data = _data(current={"qc_stats": {"jobs_analyzed": 0, "failed_jobs": 0}})
    assert evaluate_config(data, "qc_failure_spike", {"failure_rate_threshold": 0.0, "min_jobs": 0}) is None


def test_qc_failure_spike_compares_to_previous_period():
    data = _data(
        current={"qc_stats": {"jobs_analyzed": 10, "failed_jobs": 3}},
        previous={"qc_stats": {"failure_rate": 0.1}},
    )
    draft = evaluate_config(data, "qc_failure_spike", {"failure_rate_threshold": 0.15, "min_jobs": 5})
    assert draft.severity == "critical"
    assert draft.detected_data["increase_percentage"] == 200


def test_qc_failure_spike_baseline_averages_recent_snapshots():
    data = EvaluationInput(
        demo_id="demo_1",
        profile={},
        current={"qc_stats": {"jobs_analyzed": 10, "failed_jobs": 4}},
        previous={"qc_stats": {"failure_rate": 0.3}},
        history={"qc_stats": [{"failure_rate": 0.3}, {"failure_rate": 0.1}, {"failure_rate": 0.2}]},
    )
    draft = evaluate_config(data, "qc_failure_spike", {"failure_rate_threshold": 0.15, "min_jobs": 5})
    # mean of 0.3/0.1/0.2 is 0.2, so 0.4 is a 100% increase
    assert draft.detected_data["prev_period_failure_rate"] == 0.2
    assert draft.detected_data["increase_percentage"] == 100
    assert draft.detected_data["baseline_periods"] == 3


def test_negative_review_only_new_reviews():
    old = {"google": {"recent": [{"id": "r1", "stars": 1}]}}
    new = {"google": {"avg": 4.1, "recent": [{"id": "r1", "stars": 1}, {"id": "r2", "stars": 4}]}}
    data = _data(current={"reviews": new}, previous={"reviews_aggregate": old})
    assert evaluate_config(data, "negative_review", {"min_stars": 2, "platforms": ["google"]}) is None

    new["google"]["recent"].append({"id": "r3", "stars": 2, "review_text": "late"})
    draft = evaluate_config(data, "negative_review", {"min_stars": 2, "platforms": ["google"]})
    assert draft is not None
    assert draft.severity == "high"
    assert draft.detected_data["platform"] == "google"
    assert draft.detected_data["review_text"] == "late"


def test_negative_review_ignores_untracked_platform():
    data = _data(current={"reviews": {"yelp": {"recent": [{"id": "y1", "stars": 1}]}}})
    assert evaluate_config(data, "negative_review", {"min_stars": 2, "platforms": ["google"]}) is None


def test_new_competitor_within_distance():
    prev = {"competitor_scan": {"competitors": [{"name": "Old Roofers", "rank": 2}]}}
    cur = {
        "competitors": {
            "competitors": [
                {"name": "old roofers", "rank": 1},
                {"name": "Far Away Roofing", "rank": 2, "distance_miles": 40},
                {"name": "Nearby Roofing", "rank": 5, "distance_miles": 3},
            ]
        }
    }
    draft = evaluate_config(_data(cur, prev), "new_competitor", {"distance_miles": 10})
    assert draft is not None
    assert draft.detected_data["name"] == "Nearby Roofing"
    assert draft.severity == "medium"


def test_lead_volume_lag_uses_prediction_midpoint():
    data = _data(current={"lead_volume": {"week_leads": 6, "expected_low": 12, "expected_high": 18}})
    draft = evaluate_config(data, "lead_volume_lag", {"percent_below_expected": 20})
    # midpoint 15, 60% below
    assert draft.detected_data["percent_below_expected"] == 60
    assert draft.severity == "critical"

    on_track = _data(current={"lead_volume": {"week_leads": 12, "expected_low": 12, "expected_high": 18}})
    assert evaluate_config(on_track, "lead_volume_lag", {"percent_below_expected": 20}) is None


def test_lead_volume_trend_follows_history():
    def run(history):
        data = EvaluationInput(
            demo_id="demo_1",
            profile={},
            current={"lead_volume": {"week_leads": 9, "expected_low": 12, "expected_high": 18}},
            previous={},
            history={"lead_volume": history},
        )
        return evaluate_config(data, "lead_volume_lag", {"percent_below_expected": 20})

    # 40% below would be accelerating without history; a rebound says otherwise
    draft = run([{"week_leads": 7}, {"week_leads": 8}])
    assert draft.detected_data["trend"] == "steady_decline"
    assert draft.detected_data["history_average_leads"] == 7.5

    draft = run([{"week_leads": 11}, {"week_leads": 14}])
    assert draft.detected_data["trend"] == "accelerating_decline"


def test_crew_turnover_has_no_rule():
    assert evaluate_config(_data(), "crew_turnover", {"employees_left_last_30_days": 2}) is None
