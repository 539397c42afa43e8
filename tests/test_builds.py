import itertools

from matchdata import ADC_FINAL, ITEMS, participant, items_fields, purchase, timeline

from riftstats.builds import (
    BuildPath,
    build_path,
    final_items,
    item_contributions,
    mine_build,
    starting_items,
)
from riftstats.timeline import TimelineResult, clean_item_events


def jinx(**extra):
    return participant(4, "Jinx", "BOTTOM", 100, True, **items_fields(ADC_FINAL), **extra)


def test_final_build_key_sorted_and_filtered():
    p = participant(4, "Jinx", "BOTTOM", 100, True, **items_fields([3031, 0, 2003, 6672, 3340]))
    assert final_items(p) == [3031, 6672]
    assert BuildPath(tuple(final_items(p))).final_key == "3031-6672"


def test_final_build_key_independent_of_slot_order():
    keys = {
        mine_build(participant(4, "Jinx", "BOTTOM", 100, True, **items_fields(list(perm))), TimelineResult.absent("x"), ITEMS).final_key
        for perm in itertools.permutations([3031, 6672, 3006])
    }
    assert keys == {"3006-3031-6672"}


def test_starting_items_first_minute_only():
    evs = [purchase(3340, 0), purchase(2003, 30_000), purchase(1055, 60_000), purchase(1036, 60_001)]
    assert starting_items(evs) == [1055, 2003]


def test_core_skips_components_and_keeps_boots():
    evs = clean_item_events([purchase(1001, 1), purchase(1036, 2), purchase(6672, 3), purchase(3006, 4), purchase(6672, 5)])
    # 1001 is not in the final build, 1036 builds into something
    assert build_path(evs, [6672, 3006, 1036], ITEMS) == [6672, 3006]


def test_unknown_items_count_as_finished():
    evs = [purchase(424242, 1)]
    assert build_path(evs, [424242], ITEMS) == [424242]


def test_full_mining():
    b = mine_build(jinx(), TimelineResult.present(timeline()), ITEMS)
    assert b.final_key == "3006-3031-3036-3072-3094-6672"
    assert b.starting_key == "start_1055-2003"
    assert b.core_key == "core_6672-3006-3031"
    assert b.slot_keys() == [
        "core_6672-3006-3031_slot4_3094",
        "core_6672-3006-3031_slot5_3036",
        "core_6672-3006-3031_slot6_3072",
    ]


def test_purchase_order_changes_core_not_final():
    evs = [purchase(i, 100_000 + n) for n, i in enumerate(reversed(ADC_FINAL))]
    b = mine_build(jinx(), TimelineResult.present(timeline(evs)), ITEMS)
    assert b.final_key == "3006-3031-3036-3072-3094-6672"
    assert b.core_key == "core_3072-3036-3094"
    assert b.starting_key is None


def test_absent_timeline_only_final_entries():
    b = mine_build(jinx(), TimelineResult.absent("timeout"), ITEMS)
    assert b.starting is None and b.path is None
    fm = item_contributions(b, True)
    assert set(fm) == {b.final_key} | {str(i) for i in ADC_FINAL}
    assert all(wc.wins == 1 and wc.matches == 1 for wc in fm.values())


def test_contributions_with_timeline():
    b = mine_build(jinx(), TimelineResult.present(timeline()), ITEMS)
    fm = item_contributions(b, False)
    assert fm["start_1055-2003"].matches == 1
    assert fm["core_6672-3006-3031"].wins == 0
    assert "core_6672-3006-3031_slot6_3072" in fm
    assert len(fm) == 1 + 6 + 1 + 1 + 3


def test_single_item_build_counted_once():
    fm = item_contributions(BuildPath((3006,)), True)
    assert fm["3006"].matches == 1 and fm["3006"].wins == 1
    assert len(fm) == 1


def test_duplicate_final_items_counted_once():
    fm = item_contributions(BuildPath((1036, 1036, 3031)), False)
    assert fm["1036"].matches == 1
    assert fm["1036-1036-3031"].matches == 1
