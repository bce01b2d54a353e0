import json

import pytest

from mocktest.analytics import CSV_HEADER, PROGRESS_LIMIT, AnalyticsAggregator, classify_trend
from mocktest.events import ANALYTICS_GENERATED, EventBus
from mocktest.storage import ANALYTICS_KEY

_seq = iter(range(10_000))


def result_row(score, subjects=None, total=10, seconds=300, type_="full_mock"):
    n = next(_seq)
    return {
        "id": f"r{n}",
        "date": f"2024-06-{1 + n % 28:02d}T10:00:00+00:00",
        "type": type_,
        "score": score,
        "total_questions": total,
        "correct_answers": round(total * score / 100),
        "time_spent_seconds": seconds,
        "subject_breakdown": subjects or {},
    }


class TestTrend:
    def test_fewer_than_two_prior_entries_is_stable(self):
        assert classify_trend(90, []) == "stable"
        assert classify_trend(90, [{"score": 10}]) == "stable"

    def test_thresholds(self):
        prior = [{"score": 50}, {"score": 60}]
        assert classify_trend(61, prior) == "improving"
        assert classify_trend(60, prior) == "stable"
        assert classify_trend(50, prior) == "stable"
        assert classify_trend(49, prior) == "declining"

    def test_only_last_five_entries_count(self):
        prior = [{"score": 0}] * 3 + [{"score": 80}] * 5
        assert classify_trend(80, prior) == "stable"

    def test_scores_50_55_90(self):
        agg = AnalyticsAggregator()
        trends = [agg.ingest(result_row(s))["trend"] for s in (50, 55, 90)]
        assert trends == ["stable", "stable", "improving"]


class TestIngestAndReport:
    def test_empty_report(self):
        report = AnalyticsAggregator().report()
        assert report["overview"] is None
        assert report["time_analysis"] is None
        assert report["progress_analysis"] is None
        assert report["subject_analysis"] == {}
        assert report["recommendations"] == []

    def test_ingested_result_shows_in_report(self):
        agg = AnalyticsAggregator()
        agg.ingest(result_row(70, {"Mathematics": {"total": 10, "correct": 7}}, total=10, seconds=600))
        report = agg.report()
        assert report["overview"]["total_tests"] == 1
        assert report["overview"]["average_score"] == 70
        assert report["overview"]["best_score"] == 70
        assert report["overview"]["total_time_spent"] == 600
        assert report["time_analysis"]["average_time_per_question"] == 60
        assert report["time_analysis"]["tests_analyzed"] == 1
        assert report["progress_analysis"]["current_trend"] == "stable"
        assert report["progress_analysis"]["improvement"] == 0
        assert report["subject_analysis"]["Mathematics"]["total_tests"] == 1

    def test_subject_average_is_cumulative(self):
        agg = AnalyticsAggregator()
        agg.ingest(result_row(50, {"Mathematics": {"total": 10, "correct": 5}}))
        agg.ingest(result_row(90, {"Mathematics": {"total": 10, "correct": 9}}))
        perf = agg.report()["subject_analysis"]["Mathematics"]
        assert perf["average_score"] == pytest.approx(70)
        assert perf["best_score"] == pytest.approx(90)
        assert perf["total_questions"] == 20
        assert perf["correct_answers"] == 14

    def test_report_is_a_copy(self):
        agg = AnalyticsAggregator()
        agg.ingest(result_row(50, {"Mathematics": {"total": 10, "correct": 5}}))
        agg.report()["subject_analysis"]["Mathematics"]["average_score"] = 0
        assert agg.state["subject_performance"]["Mathematics"]["average_score"] == 50

    def test_progress_capped(self):
        agg = AnalyticsAggregator()
        for i in range(PROGRESS_LIMIT + 10):
            agg.ingest(result_row(i))
        assert len(agg.state["progress_tracking"]) == PROGRESS_LIMIT
        assert agg.state["progress_tracking"][0]["score"] == 10
        assert len(agg.state["test_history"]) == PROGRESS_LIMIT + 10
        assert agg.report()["progress_analysis"]["total_progress_points"] == PROGRESS_LIMIT

    def test_history_limit(self):
        agg = AnalyticsAggregator(history_limit=3)
        for score in (10, 20, 30, 40, 50):
            agg.ingest(result_row(score))
        assert [h["score"] for h in agg.state["test_history"]] == [30, 40, 50]

    def test_time_analytics_pruned_with_history(self):
        agg = AnalyticsAggregator(history_limit=3)
        rows = [result_row(s) for s in (10, 20, 30, 40, 50)]
        for row in rows:
            agg.ingest(row)
        assert set(agg.state["time_analytics"]) == {r["id"] for r in rows[2:]}
        assert agg.report()["time_analysis"]["tests_analyzed"] == 3

    def test_timing_groups_and_subject_times(self):
        agg = AnalyticsAggregator()
        first = result_row(70)
        first["timing_distribution"] = {"fast": 2, "optimal": 5, "slow": 3, "too_slow": 0}
        first["subject_time"] = {"Mathematics": {"total_time": 300.0, "question_count": 10, "average_time": 30.0}}
        second = result_row(80)
        second["timing_distribution"] = {"fast": 1, "optimal": 8, "slow": 0, "too_slow": 1}
        second["subject_time"] = {"Mathematics": {"total_time": 500.0, "question_count": 10, "average_time": 50.0}}
        agg.ingest(first)
        agg.ingest(second)

        time_analysis = agg.report()["time_analysis"]
        assert time_analysis["timing_distribution"] == {"fast": 3, "optimal": 13, "slow": 3, "too_slow": 1}
        assert time_analysis["subject_time"]["Mathematics"] == {
            "total_time": 800.0,
            "question_count": 20,
            "average_time": 40.0,
        }
        assert agg.state["time_analytics"][first["id"]]["timing_distribution"]["slow"] == 3

    def test_improvement_against_older_entries(self):
        agg = AnalyticsAggregator()
        for score in [40, 40] + [60] * 10:
            agg.ingest(result_row(score))
        progress = agg.report()["progress_analysis"]
        assert progress["recent_average"] == 60
        assert progress["improvement"] == 20

    def test_recommendations(self):
        agg = AnalyticsAggregator()
        agg.ingest(result_row(65, {"Mathematics": {"total": 10, "correct": 4}, "Reasoning": {"total": 10, "correct": 9}}))
        recs = {r["subject"]: r for r in agg.report()["recommendations"]}
        assert recs["Mathematics"]["type"] == "improvement"
        assert recs["Mathematics"]["priority"] == "high"
        assert "40.0%" in recs["Mathematics"]["message"]
        assert recs["Reasoning"]["type"] == "strength"
        assert recs["Reasoning"]["priority"] == "low"

    def test_declining_trend_warns(self):
        agg = AnalyticsAggregator()
        for score in (80, 80, 60):
            agg.ingest(result_row(score))
        report = agg.report()
        assert report["progress_analysis"]["current_trend"] == "declining"
        warnings = [r for r in report["recommendations"] if r["type"] == "warning"]
        assert len(warnings) == 1
        assert warnings[0]["priority"] == "high"

    def test_report_emits_event(self):
        events = EventBus()
        seen = []
        events.subscribe(ANALYTICS_GENERATED, seen.append)
        report = AnalyticsAggregator(events=events).report()
        assert seen == [report]


class TestExport:
    def test_csv_empty_history_is_header_only(self):
        assert AnalyticsAggregator().export("csv") == ",".join(CSV_HEADER)

    def test_csv_rows(self):
        agg = AnalyticsAggregator()
        row = result_row(70, total=10, seconds=300)
        agg.ingest(row)
        lines = agg.export("CSV").split("\n")
        assert lines[0] == "Date,Type,Score,Total Questions,Correct Answers,Time Spent"
        assert lines[1] == f"{row['date']},full_mock,70,10,7,300"
        assert len(lines) == 2

    def test_json_export(self):
        agg = AnalyticsAggregator()
        agg.ingest(result_row(70))
        data = json.loads(agg.export("json"))
        assert set(data) == {"overview", "subject_analysis", "time_analysis", "progress_analysis", "recommendations"}
        assert data["overview"]["total_tests"] == 1

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            AnalyticsAggregator().export("xml")


class TestPersistence:
    def test_save_and_load(self, store):
        agg = AnalyticsAggregator(store)
        agg.ingest(result_row(70, {"Mathematics": {"total": 10, "correct": 7}}))
        assert agg.save()

        fresh = AnalyticsAggregator(store)
        fresh.load()
        assert fresh.state == agg.state

    def test_load_merges_over_defaults(self, store):
        store.write(ANALYTICS_KEY, json.dumps({"test_history": [result_row(55)], "subject_performance": "garbage"}))
        agg = AnalyticsAggregator(store)
        agg.load()
        assert len(agg.state["test_history"]) == 1
        assert agg.state["subject_performance"] == {}
        assert agg.state["progress_tracking"] == []

    def test_corrupt_blob_falls_back_to_empty(self, store):
        store.write(ANALYTICS_KEY, "{not json")
        agg = AnalyticsAggregator(store)
        agg.load()
        assert agg.state["test_history"] == []
        assert agg.report()["overview"] is None

    def test_clear(self, store):
        agg = AnalyticsAggregator(store)
        agg.ingest(result_row(70))
        agg.save()
        agg.clear()
        assert ANALYTICS_KEY not in store.blobs
        assert agg.report()["overview"] is None

    def test_autosave_after_interval(self, store):
        agg = AnalyticsAggregator(store, autosave_seconds=30, clock=lambda: 0.0)
        assert agg.maybe_autosave(now=100) is False  # nothing to save
        agg.ingest(result_row(70))
        assert agg.maybe_autosave(now=10) is False
        assert ANALYTICS_KEY not in store.blobs
        assert agg.maybe_autosave(now=31) is True
        assert ANALYTICS_KEY in store.blobs
        assert agg.dirty is False
