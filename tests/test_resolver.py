"""
Tests for combat resolution: single hits, full attacks on neutral and enemy
provinces, and head-on collisions between opposing groups.
"""

from conquest_game_engine.core.dispatch import DispatchEngine
from conquest_game_engine.core.map import Faction
from conquest_game_engine.core.resolver import CollisionResolver, HitOutcome, resolve_hit

from helpers import make_state, place_general, run_frames

LINE = {'L': (0, 0), 'M': (1, 0), 'R': (2, 0)}


def engine_for(state):
    return DispatchEngine(state, state.scenario.tunables)


def test_resolve_hit():
    print("=" * 60)
    print("TESTING SINGLE HITS")
    print("=" * 60)

    state = make_state(LINE, {Faction.QIN: ['L'], Faction.ZHAO: ['R']}, {'L': 5, 'R': 2})

    assert resolve_hit(state, 'L', Faction.QIN) == HitOutcome.REINFORCED
    assert state.get_garrison('L') == 6

    assert resolve_hit(state, 'R', Faction.QIN) == HitOutcome.ATTRITION
    assert state.get_garrison('R') == 1
    assert state.get_owner('R') == Faction.ZHAO

    assert resolve_hit(state, 'R', Faction.QIN) == HitOutcome.CAPTURED
    assert state.get_owner('R') == Faction.QIN
    assert state.get_garrison('R') == 1

    # A province emptied by marching troops falls to the first hostile hit
    state.set_garrison('L', 0)
    assert resolve_hit(state, 'L', Faction.ZHAO) == HitOutcome.CAPTURED
    assert state.get_owner('L') == Faction.ZHAO
    print("✓ Reinforce, attrition and capture behave as expected")


def test_attack_on_neutral_province():
    """50 troops against a neutral garrison of 20 leave 31 behind."""
    print("=" * 60)
    print("TESTING ATTACK ON NEUTRAL PROVINCE")
    print("=" * 60)

    state = make_state({'P1': (0, 0), 'P2': (1, 0)}, {Faction.QIN: ['P1']}, {'P1': 100, 'P2': 20})
    engine = engine_for(state)
    general = place_general(state, Faction.QIN, 'P1', assigned=50)

    assert engine.issue_attack(Faction.QIN, general.general_id, 'P1', 'P2', 50, 0.0).success
    assert state.get_garrison('P1') == 50

    result = run_frames(engine, 0, 5000)

    assert result.arrivals == 50
    assert result.attrition == 19
    assert len(result.captures) == 1
    assert result.reinforcements == 30
    assert state.get_owner('P2') == Faction.QIN
    assert state.get_garrison('P2') == 31
    assert state.get_garrison('P1') == 50
    assert engine.groups == {}
    print("✓ P2 captured with 31 troops")


def test_two_attacks_on_the_same_province():
    """Qin takes M from neutrals, then Zhao takes it from Qin."""
    print("=" * 60)
    print("TESTING SEQUENTIAL CAPTURES")
    print("=" * 60)

    state = make_state(LINE, {Faction.QIN: ['L'], Faction.ZHAO: ['R']}, {'L': 100, 'M': 10, 'R': 100})
    engine = engine_for(state)
    qin = place_general(state, Faction.QIN, 'L', assigned=30)
    zhao = place_general(state, Faction.ZHAO, 'R', assigned=25)

    assert engine.issue_attack(Faction.QIN, qin.general_id, 'L', 'M', 30, 0.0).success
    result = run_frames(engine, 0, 2000)
    assert engine.issue_attack(Faction.ZHAO, zhao.general_id, 'R', 'M', 25, 2000.0).success
    result.merge(run_frames(engine, 2000, 3200))

    assert state.get_owner('M') == Faction.QIN
    assert state.get_garrison('M') == 21

    result.merge(run_frames(engine, 3200, 5200))

    assert result.collisions == []
    assert state.get_owner('M') == Faction.ZHAO
    assert state.get_garrison('M') == 5
    assert [c.new_owner for c in result.captures] == [Faction.QIN, Faction.ZHAO]
    print("✓ M ends with Zhao holding 5")


def head_on(first, second):
    state = make_state({'A': (0, 0), 'B': (1, 0)}, {Faction.QIN: ['A'], Faction.ZHAO: ['B']},
                       {'A': 100, 'B': 100})
    engine = engine_for(state)
    generals = {
        Faction.QIN: place_general(state, Faction.QIN, 'A', assigned=10),
        Faction.ZHAO: place_general(state, Faction.ZHAO, 'B', assigned=10),
    }
    routes = {Faction.QIN: ('A', 'B'), Faction.ZHAO: ('B', 'A')}
    for faction in (first, second):
        origin, target = routes[faction]
        assert engine.issue_attack(faction, generals[faction].general_id, origin, target, 10, 0.0).success
    result = run_frames(engine, 0, 3000)
    return state, engine, result


def test_head_on_collision_cancels_both_groups():
    print("=" * 60)
    print("TESTING HEAD-ON COLLISION")
    print("=" * 60)

    state, engine, result = head_on(Faction.QIN, Faction.ZHAO)

    assert len(result.collisions) == 1
    assert result.cancelled_units == 20
    assert result.arrivals == 0
    # Debits are not refunded
    assert state.get_garrison('A') == 90
    assert state.get_garrison('B') == 90
    assert state.get_owner('A') == Faction.QIN
    assert state.get_owner('B') == Faction.ZHAO
    assert engine.groups == {}
    print("✓ Both groups cancelled mid-route, no troops arrived")


def test_collision_does_not_depend_on_issue_order():
    state_a, _, result_a = head_on(Faction.QIN, Faction.ZHAO)
    state_b, _, result_b = head_on(Faction.ZHAO, Faction.QIN)

    assert state_a.to_dict()['provinces'] == state_b.to_dict()['provinces']
    assert result_a.cancelled_units == result_b.cancelled_units


def test_collision_radius_is_checked_on_leading_columns():
    state = make_state({'A': (0, 0), 'B': (1, 0)}, {Faction.QIN: ['A'], Faction.ZHAO: ['B']},
                       {'A': 100, 'B': 100})
    engine = engine_for(state)
    qin = place_general(state, Faction.QIN, 'A', assigned=10)
    zhao = place_general(state, Faction.ZHAO, 'B', assigned=10)
    engine.issue_attack(Faction.QIN, qin.general_id, 'A', 'B', 10, 0.0)
    engine.issue_attack(Faction.ZHAO, zhao.general_id, 'B', 'A', 10, 0.0)
    resolver = CollisionResolver(engine)

    # Just launched, the two columns are far apart
    assert resolver.find_collisions(50.0) == []
    # Halfway, both columns sit near the shared border
    assert resolver.find_collisions(1000.0) == [(1, 2)]


def test_same_faction_groups_never_collide():
    state = make_state(LINE, {Faction.QIN: ['L', 'R'], Faction.ZHAO: ['M']}, {'L': 100, 'M': 30, 'R': 100})
    engine = engine_for(state)
    left = place_general(state, Faction.QIN, 'L', assigned=10)
    right = place_general(state, Faction.QIN, 'R', assigned=10)

    engine.issue_attack(Faction.QIN, left.general_id, 'L', 'M', 10, 0.0)
    engine.issue_attack(Faction.QIN, right.general_id, 'R', 'M', 10, 0.0)
    result = run_frames(engine, 0, 3000)

    assert result.collisions == []
    assert result.arrivals == 20
    assert state.get_owner('M') == Faction.ZHAO
    assert state.get_garrison('M') == 10


if __name__ == "__main__":
    test_resolve_hit()
    test_attack_on_neutral_province()
    test_two_attacks_on_the_same_province()
    test_head_on_collision_cancels_both_groups()
    print("\n✓ All resolver tests passed")
