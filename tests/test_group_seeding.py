"""
Tests for group-placement seeding: cross-group first games, the fixed 4 x 3
cup scheme and placement validation.
"""

import pytest

from league_scheduler.services.group_seeding import (
    GroupPlacement,
    first_round_opponents,
    group_seeded_ranking,
)
from league_scheduler.services.playoff_plan import BracketType, create_initial_playoff_plans
from league_scheduler.services.scheduling_errors import SchedulingError


def _placements(group_count, per_group):
    """Club id = group * 10 + placement."""
    return [
        GroupPlacement(participant=g * 10 + p, group_index=g, placement=p)
        for g in range(1, group_count + 1)
        for p in range(1, per_group + 1)
    ]


def _side_groups(plan, side):
    if side.participant is not None:
        return {side.participant // 10}
    feeder = plan.nodes[side.source_index]
    return {feeder.side_a.participant // 10, feeder.side_b.participant // 10}


def _first_games(plan):
    """Qualification nodes plus the first main round, playable only."""
    rounds = {1, plan.first_main_round}
    return [n for n in plan.nodes if n.round_number in rounds and n.is_playable and not n.is_third_place]


def _build(placements, main_bracket_size=None):
    ranked, main_size = group_seeded_ranking(placements, main_bracket_size)
    return create_initial_playoff_plans(ranked, best_of=1, main_bracket_size=main_size, consolation=True)


class TestTwoGroups:
    def test_eight_clubs_cross_quarterfinals(self):
        ranked, main_size = group_seeded_ranking(_placements(2, 4))

        assert main_size is None
        assert ranked == [11, 21, 12, 22, 13, 23, 14, 24]
        plan = _build(_placements(2, 4))
        quarters = sorted(plan.nodes_in_round(1), key=lambda n: n.slot)
        pairs = [(n.side_a.participant, n.side_b.participant) for n in quarters]
        # A1-B4, B2-A3, B1-A4, A2-B3
        assert pairs == [(11, 24), (22, 13), (21, 14), (12, 23)]

    def test_four_clubs_cross_semifinals(self):
        plan = _build(_placements(2, 2))
        semis = sorted(plan.nodes_in_round(1), key=lambda n: n.slot)
        assert [(n.side_a.participant, n.side_b.participant) for n in semis] == [(11, 22), (21, 12)]

    def test_group_index_order_not_input_order(self):
        shuffled = list(reversed(_placements(2, 3)))
        ranked, _ = group_seeded_ranking(shuffled)
        assert ranked[:2] == [11, 21]


class TestFourGroupsOfThree:
    def test_qualification_pairs(self):
        plan = _build(_placements(4, 3))

        assert plan.has_qualification
        assert plan.bracket_size == 8
        qualification = sorted(plan.nodes_of_type(BracketType.QUALIFICATION), key=lambda n: n.slot)
        pairs = {frozenset((n.side_a.participant, n.side_b.participant)) for n in qualification}
        # C2-B3, B2-C3, D2-A3, A2-D3
        assert pairs == {
            frozenset((32, 23)),
            frozenset((22, 33)),
            frozenset((42, 13)),
            frozenset((12, 43)),
        }

    def test_group_winners_meet_qualification_winners(self):
        plan = _build(_placements(4, 3))
        quarters = [n for n in plan.nodes_in_round(2) if n.bracket_type == BracketType.GOLD]

        opponents = {}
        for node in quarters:
            feeder = plan.nodes[node.side_b.source_index]
            opponents[node.side_a.participant] = {feeder.side_a.participant, feeder.side_b.participant}
        assert opponents == {
            11: {32, 23},
            21: {12, 43},
            31: {42, 13},
            41: {22, 33},
        }

    def test_explicit_other_bracket_size_searches(self):
        ranked, main_size = group_seeded_ranking(_placements(4, 3), main_bracket_size=16)
        assert main_size == 16
        assert sorted(ranked) == sorted(p.participant for p in _placements(4, 3))


class TestNoSameGroupFirstGame:
    @pytest.mark.parametrize(
        "group_count, per_group, main_bracket_size",
        [
            (2, 4, None),
            (2, 3, None),
            (3, 2, None),
            (3, 3, 8),
            (3, 4, None),
            (4, 2, None),
            (4, 3, None),
            (4, 4, None),
            (2, 5, None),
        ],
    )
    def test_layouts(self, group_count, per_group, main_bracket_size):
        plan = _build(_placements(group_count, per_group), main_bracket_size)

        for node in _first_games(plan):
            assert not _side_groups(plan, node.side_a) & _side_groups(plan, node.side_b), node.code

    def test_winners_keep_top_seeds(self):
        ranked, _ = group_seeded_ranking(_placements(3, 3), main_bracket_size=8)
        assert sorted(ranked[:3]) == [11, 21, 31]
        assert sorted(ranked[3:6]) == [12, 22, 32]

    def test_unsolvable_layout_keeps_tier_order(self):
        # Seed 1 would have to avoid both groups of the 8 v 9 qualification pair
        ranked, _ = group_seeded_ranking(_placements(2, 5), main_bracket_size=8)
        assert ranked == [11, 21, 12, 22, 13, 23, 14, 24, 15, 25]


class TestFirstRoundOpponents:
    def test_full_bracket(self):
        opponents = first_round_opponents(8)
        assert opponents[1] == {8}
        assert opponents[4] == {5}

    def test_byes_add_nothing(self):
        opponents = first_round_opponents(6)
        assert opponents[1] == set()
        assert opponents[3] == {6}

    def test_qualification_feed(self):
        opponents = first_round_opponents(9, main_bracket_size=8)
        assert opponents[1] == {8, 9}
        assert opponents[8] == {1, 9}


class TestValidation:
    def test_duplicate_club(self):
        placements = [GroupPlacement(1, 1, 1), GroupPlacement(1, 2, 1)]
        with pytest.raises(SchedulingError) as exc:
            group_seeded_ranking(placements)
        assert exc.value.code == "group_standings_invalid"

    def test_duplicate_place(self):
        placements = [GroupPlacement(1, 1, 1), GroupPlacement(2, 1, 1)]
        with pytest.raises(SchedulingError) as exc:
            group_seeded_ranking(placements)
        assert exc.value.code == "group_standings_invalid"

    def test_gap_in_places(self):
        placements = [GroupPlacement(1, 1, 1), GroupPlacement(2, 1, 3)]
        with pytest.raises(SchedulingError) as exc:
            group_seeded_ranking(placements)
        assert exc.value.code == "group_standings_invalid"
