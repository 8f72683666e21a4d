"""
Tests for the AI Director's target choice and its gated behaviours.
"""

import pytest

from conquest_game_engine.core.game import Match
from conquest_game_engine.core.map import Faction
from conquest_game_engine.core.scenario import AITuning
from conquest_game_engine.gamemaster.ai_director import AIDirector

from helpers import grid_map, make_scenario, place_general

# Qin (the player) on the left, Zhao in the middle, a neutral on the right
LAYOUT = {'Q': (0, 0), 'Z': (1, 0), 'N': (2, 0)}


def quiet_tuning(**overrides):
    """Every behaviour off and no jitter, so tests switch on only what they need."""
    values = dict(
        economic_chance=0.0,
        hire_chance=0.0,
        assign_chance=0.0,
        attack_chance=0.0,
        jitter=0.0,
    )
    values.update(overrides)
    return AITuning(**values)


def make_director(tuning, garrisons=None, **scenario_kwargs):
    scenario = make_scenario({Faction.QIN: ['Q'], Faction.ZHAO: ['Z']}, **scenario_kwargs)
    match = Match(grid_map(LAYOUT), scenario, Faction.QIN, seed=3)
    for pid, value in (garrisons or {'Q': 20, 'Z': 100, 'N': 20}).items():
        match.state.set_garrison(pid, value)
    director = AIDirector(match, factions=[Faction.ZHAO], tuning=tuning)
    return match, director


def test_human_player_is_preferred_target():
    print("=" * 60)
    print("TESTING AI TARGET CHOICE")
    print("=" * 60)

    match, director = make_director(quiet_tuning())
    place_general(match.state, Faction.ZHAO, 'Z', assigned=60)

    plan = director.plan_attack(Faction.ZHAO)

    # Q scores 60 - 20 + 25, N scores 60 - 20 + 10
    assert plan.to_province == 'Q'
    assert plan.from_province == 'Z'
    assert plan.troop_count == 60
    assert plan.score == pytest.approx(65.0)
    print(f"✓ Zhao targets the player with score {plan.score:.0f}")


def test_weaker_neutral_beats_strong_player():
    match, director = make_director(quiet_tuning(), garrisons={'Q': 50, 'Z': 100, 'N': 5})
    place_general(match.state, Faction.ZHAO, 'Z', assigned=60)

    assert director.plan_attack(Faction.ZHAO).to_province == 'N'


def test_opening_grace_spares_the_player():
    match, director = make_director(quiet_tuning(opening_grace_ms=18000))
    place_general(match.state, Faction.ZHAO, 'Z', assigned=60)
    match.start(0.0)

    assert director.plan_attack(Faction.ZHAO).to_province == 'N'

    match.run_until(18000)
    assert director.plan_attack(Faction.ZHAO).to_province == 'Q'


def test_attack_thresholds():
    match, director = make_director(quiet_tuning())
    general = place_general(match.state, Faction.ZHAO, 'Z', assigned=40)

    # Below the attack floor
    assert director.plan_attack(Faction.ZHAO) is None

    general.assigned_troops = 60
    match.state.factions[Faction.ZHAO].grain_stock = 30
    assert director.plan_attack(Faction.ZHAO) is None

    match.state.factions[Faction.ZHAO].grain_stock = 1000
    match.state.set_garrison('Z', 60)
    # Station garrison under the minimum for launching attacks
    assert director.plan_attack(Faction.ZHAO) is None


def test_take_turn_launches_attack():
    match, director = make_director(quiet_tuning(attack_chance=1.0))
    general = place_general(match.state, Faction.ZHAO, 'Z', assigned=60)
    match.start(0.0)

    director.take_turn(Faction.ZHAO)

    assert director.orders_issued == 1
    assert match.state.get_garrison('Z') == 40
    assert len(match.engine.active_groups()) == 1
    assert match.engine.active_groups()[0].to_province == 'Q'
    assert general.station is None


def test_failed_orders_are_counted_not_raised():
    match, director = make_director(quiet_tuning(hire_chance=1.0), generals={Faction.ZHAO: []})

    director.take_turn(Faction.ZHAO)

    assert director.orders_skipped == 1
    assert director.orders_issued == 0
    assert match.state.factions[Faction.ZHAO].generals == {}


def test_full_roster_stops_hiring():
    tuning = quiet_tuning(hire_chance=1.0, roster_soft_cap=1, roster_override_chance=0.0)
    match, director = make_director(tuning, economy=1000.0)
    place_general(match.state, Faction.ZHAO, 'Z')

    director.take_turn(Faction.ZHAO)

    assert director.orders_issued + director.orders_skipped == 0
    assert len(match.state.factions[Faction.ZHAO].generals) == 1
    assert match.state.factions[Faction.ZHAO].economy_stock == pytest.approx(1000.0)


def test_roster_override_still_hires():
    tuning = quiet_tuning(hire_chance=1.0, roster_soft_cap=1, roster_override_chance=1.0)
    match, director = make_director(tuning, economy=1000.0, hire_cost=100.0)
    place_general(match.state, Faction.ZHAO, 'Z')

    director.take_turn(Faction.ZHAO)

    assert director.orders_issued == 1
    # Paid in full when accepted, half back when declined
    assert match.state.factions[Faction.ZHAO].economy_stock < 1000.0


def test_auto_assign_never_lowers():
    match, director = make_director(quiet_tuning(assign_chance=1.0, assign_fraction=0.38))
    veteran = place_general(match.state, Faction.ZHAO, 'Z', assigned=50)
    recruit = place_general(match.state, Faction.ZHAO, 'Z', assigned=0)

    director.take_turn(Faction.ZHAO)

    assert veteran.assigned_troops == 50
    assert recruit.assigned_troops == 38
    assert match.state.claimed_at('Z') <= match.state.get_garrison('Z')


def test_low_grain_triggers_purchase():
    tuning = quiet_tuning(economic_chance=1.0, buy_grain_chance=1.0,
                          grain_low_threshold=300.0, buy_grain_spend=120.0)
    match, director = make_director(tuning, economy=1000.0)
    match.state.factions[Faction.ZHAO].grain_stock = 100.0

    director.take_turn(Faction.ZHAO)

    assert match.state.factions[Faction.ZHAO].grain_stock == pytest.approx(460.0)
    assert match.state.factions[Faction.ZHAO].economy_stock == pytest.approx(880.0)


def test_surplus_economy_becomes_garrison():
    tuning = quiet_tuning(economic_chance=1.0, convert_chance=1.0, convert_fraction=0.5)
    match, director = make_director(tuning, economy=100.0)

    director.take_turn(Faction.ZHAO)

    # Half of 100 economy at 2 troops per economy
    assert match.state.get_garrison('Z') == 200
    assert match.state.factions[Faction.ZHAO].economy_stock == pytest.approx(50.0)


def test_director_runs_on_the_match_clock():
    match, director = make_director(quiet_tuning())
    match.start(0.0)
    assert match.pending_callbacks == 2

    match.run_until(4600 * 3)
    assert director.steps == 3

    match.reset_match()
    assert match.pending_callbacks == 0
    match.start(0.0)
    assert match.pending_callbacks == 2


if __name__ == "__main__":
    test_human_player_is_preferred_target()
    test_opening_grace_spares_the_player()
    test_take_turn_launches_attack()
    print("\n✓ All AI director tests passed")
