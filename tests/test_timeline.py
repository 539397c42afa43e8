from matchdata import ADC_EVENTS, purchase, skill, sold, timeline, undo

from riftstats.timeline import (
    TimelineResult,
    clean_item_events,
    item_events,
    lane_deltas_at,
    skill_order,
)


def ids(events):
    return [(e["type"], e["itemId"]) for e in events]


def test_undo_cancels_matching_latest_purchase():
    A, B = 1055, 2003
    evs = [purchase(A, 1), purchase(B, 2), undo(3, after=B)]
    assert ids(clean_item_events(evs)) == [("ITEM_PURCHASED", A)]
    # purchase undos as the live API sends them
    evs = [purchase(A, 1), purchase(B, 2), undo(3, before=B)]
    assert ids(clean_item_events(evs)) == [("ITEM_PURCHASED", A)]


def test_undo_of_sale():
    evs = [purchase(1055, 1), sold(1055, 2), undo(3, after=1055)]
    assert ids(clean_item_events(evs)) == [("ITEM_PURCHASED", 1055)]


def test_unmatched_undo_is_noop():
    evs = [purchase(1055, 1), purchase(2003, 2), undo(3, before=3031)]
    assert ids(clean_item_events(evs)) == [("ITEM_PURCHASED", 1055), ("ITEM_PURCHASED", 2003)]
    # never looks further back than the latest event
    evs = [purchase(1055, 1), purchase(2003, 2), undo(3, before=1055)]
    assert len(clean_item_events(evs)) == 2
    assert clean_item_events([undo(1, before=1055)]) == []


def test_item_events_and_skill_order_per_participant():
    tl = timeline(ADC_EVENTS + [purchase(9999, 5, pid=1), skill(4, 6, pid=1)])
    assert all(e["participantId"] == 4 for e in item_events(tl, 4))
    assert skill_order(tl, 4) == "Q-W-E"
    assert skill_order(tl, 1) == "R"
    assert skill_order(tl, 7) == ""


def test_lane_deltas():
    tl = timeline([])
    lane = lane_deltas_at(tl, 4, 9)
    assert lane.csd15 == 15.0
    assert lane.gd15 == 0.0 and lane.xpd15 == 0.0
    assert lane_deltas_at(tl, 4, None) is None
    # game over before 15 minutes
    assert lane_deltas_at(timeline([], minutes=12), 4, 9) is None


def test_timeline_result():
    assert TimelineResult.present({"info": {}}).available
    absent = TimelineResult.absent("HTTPError: 404")
    assert not absent.available
    assert absent.reason == "HTTPError: 404"
