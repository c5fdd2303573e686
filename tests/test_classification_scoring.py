import numpy as np
import pytest

from analysis import DataQualityReport, GarbageTimeAnalyzer
from tests.pbp_factory import catch, frame, incompletion, punt, rush


def _scored(pbp, analyzer=None, report=None):
    analyzer = analyzer or GarbageTimeAnalyzer()
    events, normalized_report = analyzer.normalize_events(pbp)
    events = analyzer.classify_garbage_time(events)
    return analyzer.calculate_fantasy_points(events, report or normalized_report)


@pytest.mark.parametrize(
    "wp, expected",
    [
        (0.0, True),
        (0.0499, True),
        (0.05, False),
        (0.5, False),
        (0.95, False),
        (0.9501, True),
        (1.0, True),
    ],
)
def test_garbage_time_is_symmetric_with_exclusive_boundaries(wp, expected):
    events = _scored(frame(catch(wp=wp)))

    assert bool(events["garbage_time"].iloc[0]) is expected


def test_missing_win_probability_is_regular_time():
    events = _scored(frame(catch(wp=np.nan)))

    assert not events["garbage_time"].iloc[0]


def test_custom_cutoff_widens_garbage_time():
    analyzer = GarbageTimeAnalyzer(wp_cutoff=0.10)
    events = _scored(frame(catch(wp=0.08), catch(wp=0.92), catch(wp=0.10), catch(wp=0.90)), analyzer)

    assert events["garbage_time"].tolist() == [True, True, False, False]


@pytest.mark.parametrize("cutoff", [0.01, 0.03, 0.07, 0.1, 0.15, 0.2, 0.3])
def test_custom_cutoff_boundaries_are_regular_time(cutoff):
    analyzer = GarbageTimeAnalyzer(wp_cutoff=cutoff)
    upper = round(1 - cutoff, 10)
    events = _scored(
        frame(catch(wp=cutoff), catch(wp=upper), catch(wp=cutoff - 0.001), catch(wp=upper + 0.001)),
        analyzer,
    )

    assert events["garbage_time"].tolist() == [False, False, True, True]


def test_ten_yard_catch_scores_two_points_in_regular_time():
    events = _scored(frame(catch(yards=10.0, wp=0.5)))

    assert events["fantasy_points"].iloc[0] == pytest.approx(2.0)
    assert not events["garbage_time"].iloc[0]


def test_same_catch_in_garbage_time_scores_the_same():
    events = _scored(frame(catch(yards=10.0, wp=0.02)))

    assert events["fantasy_points"].iloc[0] == pytest.approx(2.0)
    assert events["garbage_time"].iloc[0]


def test_touchdowns_and_rushing_score():
    events = _scored(
        frame(
            catch(yards=25.0, td=1),
            rush(yards=12.0, td=1),
            rush(yards=-4.0),
            incompletion(),
            punt(),
        )
    )

    assert events["fantasy_points"].tolist() == pytest.approx([9.5, 7.2, -0.4, 0.0, 0.0])


def test_missing_scoring_inputs_are_coerced_to_zero_and_counted():
    report = DataQualityReport()
    events = _scored(
        frame(catch(yards=np.nan), catch(td=np.nan), rush(yards=np.nan), catch(yards=5.0)),
        report=report,
    )

    assert events["fantasy_points"].tolist() == pytest.approx([0.0, 0.0, 0.0, 1.5])
    assert report.coerced_points == 3


def test_coercions_only_count_plays_with_a_player():
    analyzer = GarbageTimeAnalyzer(include_rushing=False)
    events, report = analyzer.normalize_events(frame(rush(yards=np.nan), catch(yards=np.nan)))
    events = analyzer.calculate_fantasy_points(analyzer.classify_garbage_time(events), report)

    assert events["fantasy_points"].tolist() == pytest.approx([0.0, 0.0])
    assert report.coerced_points == 1


def test_half_ppr_scoring_override():
    analyzer = GarbageTimeAnalyzer(scoring={"reception": 0.5})
    events = _scored(frame(catch(yards=10.0)), analyzer)

    assert events["fantasy_points"].iloc[0] == pytest.approx(1.5)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"wp_cutoff": 0.0},
        {"wp_cutoff": 0.5},
        {"min_targets": -1},
        {"top_n_chart": 0},
        {"scoring": {"interception": -2.0}},
    ],
)
def test_invalid_configuration_is_rejected(kwargs):
    with pytest.raises(ValueError):
        GarbageTimeAnalyzer(**kwargs)
