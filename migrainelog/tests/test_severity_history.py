import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from migrainelog.services import severity_history as sh
from migrainelog.services.episode_types import SeveritySample


def _s(ts, sev):
    return SeveritySample(timestamp=ts, severity=sev)


def test_seed_holds_single_creation_sample():
    assert sh.seed(0, 4) == (_s(0, 4),)


def test_insert_appends_newest_sample():
    history = sh.insert(sh.seed(0, 4), _s(600_000, 8))
    assert history == (_s(0, 4), _s(600_000, 8))
    assert sh.current_severity(history) == 8


def test_backfilled_sample_lands_between_and_keeps_current():
    history = sh.insert(sh.seed(0, 4), _s(600_000, 8))
    history = sh.insert(history, _s(300_000, 2))

    assert history == (_s(0, 4), _s(300_000, 2), _s(600_000, 8))
    assert sh.current_severity(history) == 8


def test_sample_older_than_everything_goes_first():
    history = sh.insert(sh.seed(1000, 5), _s(10, 9))
    assert history[0] == _s(10, 9)
    assert sh.current_severity(history) == 5


def test_equal_timestamps_keep_insertion_order():
    history = sh.seed(100, 3)
    history = sh.insert(history, _s(100, 6))
    history = sh.insert(history, _s(100, 7))

    assert [s.severity for s in history] == [3, 6, 7]
    assert sh.current_severity(history) == 7


def test_insert_does_not_mutate_input():
    original = (_s(0, 1), _s(5, 2))
    sh.insert(original, _s(3, 9))
    assert original == (_s(0, 1), _s(5, 2))


def test_current_severity_of_empty_history_is_an_internal_error():
    with pytest.raises(sh.SeverityHistoryError):
        sh.current_severity(())


def test_from_json_rejects_out_of_order_rows():
    with pytest.raises(sh.SeverityHistoryError):
        sh.from_json([{"timestamp": 5, "severity": 1}, {"timestamp": 1, "severity": 2}])


def test_json_shape():
    history = sh.insert(sh.seed(0, 4), _s(10, 6))
    raw = sh.to_json(history)
    assert raw == [{"timestamp": 0, "severity": 4}, {"timestamp": 10, "severity": 6}]
    assert sh.from_json(raw) == history


samples = st.lists(
    st.tuples(st.integers(min_value=0, max_value=50), st.integers(min_value=1, max_value=10)),
    min_size=1,
    max_size=40,
)


@settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(first=st.tuples(st.integers(0, 50), st.integers(1, 10)), rest=samples)
def test_any_insert_sequence_stays_sorted_and_tracks_latest(first, rest):
    history = sh.seed(*first)
    best_ts, best_sev = first
    for ts, sev in rest:
        history = sh.insert(history, _s(ts, sev))
        if ts >= best_ts:
            best_ts, best_sev = ts, sev

        assert sh.is_ordered(history)
        assert sh.current_severity(history) == best_sev

    assert len(history) == len(rest) + 1
    assert history[0].timestamp == min([first[0]] + [ts for ts, _ in rest])
