import pytest

from riftstats.freqmap import FrequencyMap, WinCount, merge_all


def fm(**entries):
    return FrequencyMap({k: WinCount(*v) for k, v in entries.items()})


def test_record_counts_wins_and_matches():
    m = FrequencyMap()
    m.record(3031, True)
    m.record(3031, False)
    m.record("core_1-2-3", True)
    assert m["3031"] == WinCount(1, 2)
    assert m["core_1-2-3"].win_rate == 1.0
    assert len(m) == 2


def test_merge_is_commutative_and_associative():
    a = fm(x=(1, 2), y=(0, 1))
    b = fm(x=(2, 3), z=(1, 1))
    c = fm(y=(1, 1), z=(0, 4))
    assert a.merge(b) == b.merge(a)
    assert a.merge(b).merge(c) == a.merge(b.merge(c))
    assert (a + b + c).to_dict() == {
        "x": {"wins": 3, "matches": 5},
        "y": {"wins": 1, "matches": 2},
        "z": {"wins": 1, "matches": 5},
    }


def test_merge_does_not_mutate_inputs():
    a = fm(x=(1, 1))
    b = fm(x=(0, 1))
    a.merge(b)
    assert a["x"] == WinCount(1, 1)
    assert b["x"] == WinCount(0, 1)


def test_wins_above_matches_rejected():
    with pytest.raises(ValueError):
        WinCount(3, 2)
    with pytest.raises(ValueError):
        WinCount(-1, 0)


def test_dict_roundtrip_and_prefix():
    m = fm(start_1055=(1, 2), core_1=(1, 1), **{"3031": (0, 1)})
    assert FrequencyMap.from_dict(m.to_dict()) == m
    assert dict(m.with_prefix("start_")) == {"start_1055": WinCount(1, 2)}


def test_merge_all_empty_and_many():
    assert len(merge_all([])) == 0
    assert merge_all([fm(a=(1, 1)), fm(a=(0, 1)), fm(b=(1, 1))]) == fm(a=(1, 2), b=(1, 1))
