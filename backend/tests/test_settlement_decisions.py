"""
backend/tests/test_settlement_decisions.py

Purpose:
    Outcome rules of the settlement decision function for ML, Spread, Total,
    Player Prop and Parlay bets, with provider lookups replaced by fakes.

Dependencies:
    - app.services.settlement_service
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.models.bet import (
    BetInDB,
    BetResult,
    GradedProp,
    MarketType,
    PlayerStatRecord,
    ResolvedScore,
)
from app.services.settlement_service import (
    BetSettler,
    combine_parlay_legs,
    compare_to_line,
    settle_from_score,
    settle_from_stats,
)

START = datetime(2025, 1, 15, 0, 30, tzinfo=timezone.utc)


def _bet(**overrides) -> BetInDB:
    data = {
        "id": "bet-1",
        "user_id": "user-1",
        "market_type": MarketType.ml,
        "sport": "NBA",
        "sport_key": "basketball_nba",
        "provider_event_id": "evt-1",
        "home_team": "Los Angeles Lakers",
        "away_team": "Boston Celtics",
        "selection": "Los Angeles Lakers",
        "start_time": START,
        "odds": 1.91,
        "units": 1.0,
    }
    data.update(overrides)
    return BetInDB(**data)


def _final(home: int | None, away: int | None) -> ResolvedScore:
    return ResolvedScore(completed=True, home_score=home, away_score=away)


class _Lookups:
    """Records every provider call so tests can assert zero-fetch paths."""

    def __init__(self, score=None, stats=None, legs=None):
        self.score = score
        self.stats = stats
        self.legs = legs or []
        self.score_calls: list[tuple] = []
        self.stat_calls: list[tuple] = []
        self.leg_calls: list[str] = []

    async def score_lookup(self, event_id, sport_key):
        self.score_calls.append((event_id, sport_key))
        return self.score

    async def stat_lookup(self, player_id, sport_path, game_date, event_id):
        self.stat_calls.append((player_id, sport_path, game_date, event_id))
        return self.stats

    async def leg_lookup(self, parlay_id):
        self.leg_calls.append(parlay_id)
        return self.legs

    def settler(self) -> BetSettler:
        return BetSettler(
            score_lookup=self.score_lookup,
            stat_lookup=self.stat_lookup,
            leg_lookup=self.leg_lookup,
        )


# ---------- Moneyline ----------

def test_moneyline_home_win():
    assert settle_from_score(_bet(), _final(110, 101)) is BetResult.win


def test_moneyline_away_selection_loses_when_home_wins():
    bet = _bet(selection="Boston Celtics")
    assert settle_from_score(bet, _final(110, 101)) is BetResult.loss


def test_moneyline_tie_pushes():
    assert settle_from_score(_bet(), _final(105, 105)) is BetResult.push


def test_moneyline_unknown_selection_voids_even_on_tie():
    bet = _bet(selection="Lakers")
    assert settle_from_score(bet, _final(110, 101)) is BetResult.void
    assert settle_from_score(bet, _final(105, 105)) is BetResult.void


def test_unfinished_or_missing_game_stays_pending():
    assert settle_from_score(_bet(), None) is BetResult.pending
    assert settle_from_score(_bet(), ResolvedScore(completed=False)) is BetResult.pending


def test_completed_game_with_missing_score_voids():
    assert settle_from_score(_bet(), _final(110, None)) is BetResult.void
    assert settle_from_score(_bet(market_type=MarketType.total, line=200.5,
                                  over_under="Over"), _final(None, 99)) is BetResult.void


# ---------- Spread ----------

@pytest.mark.parametrize(
    ("selection", "line", "home", "away", "expected"),
    [
        ("Los Angeles Lakers", -5.5, 110, 101, BetResult.win),
        ("Los Angeles Lakers", -9.5, 110, 101, BetResult.loss),
        ("Los Angeles Lakers", -9.0, 110, 101, BetResult.push),
        ("Boston Celtics", 9.0, 110, 101, BetResult.push),
        ("Boston Celtics", 10.5, 110, 101, BetResult.win),
        ("Boston Celtics", 3.5, 110, 101, BetResult.loss),
    ],
)
def test_spread_outcomes(selection, line, home, away, expected):
    bet = _bet(market_type=MarketType.spread, selection=selection, line=line)
    assert settle_from_score(bet, _final(home, away)) is expected


def test_spread_zero_line_is_a_real_line():
    bet = _bet(market_type=MarketType.spread, line=0.0)
    assert settle_from_score(bet, _final(100, 100)) is BetResult.push
    assert settle_from_score(bet, _final(101, 100)) is BetResult.win


def test_spread_without_line_or_known_selection_voids():
    assert settle_from_score(_bet(market_type=MarketType.spread), _final(110, 101)) is BetResult.void
    bet = _bet(market_type=MarketType.spread, line=-3.5, selection="Knicks")
    assert settle_from_score(bet, _final(110, 101)) is BetResult.void


# ---------- Total ----------

def test_total_under_win_and_loss():
    bet = _bet(market_type=MarketType.total, line=220.5, over_under="Under", selection=None)
    assert settle_from_score(bet, _final(110, 98)) is BetResult.win    # 208
    assert settle_from_score(bet, _final(120, 107)) is BetResult.loss  # 227


@pytest.mark.parametrize("side", ["Over", "Under"])
def test_total_on_the_line_pushes_regardless_of_side(side):
    bet = _bet(market_type=MarketType.total, line=210.0, over_under=side)
    assert settle_from_score(bet, _final(105, 105)) is BetResult.push


def test_total_without_side_voids():
    bet = _bet(market_type=MarketType.total, line=210.5)
    assert settle_from_score(bet, _final(105, 100)) is BetResult.void


def test_compare_to_line_mirrors_for_under():
    assert compare_to_line(10, 9.5, "Over") is BetResult.win
    assert compare_to_line(10, 9.5, "Under") is BetResult.loss
    assert compare_to_line(9, 9.5, "Under") is BetResult.win
    assert compare_to_line(9.5, 9.5, "Under") is BetResult.push


# ---------- Player props ----------

def _prop(**overrides) -> BetInDB:
    data = {
        "market_type": MarketType.player_prop,
        "selection": None,
        "player_id": 20000571,
        "player_name": "LeBron James",
        "stat_type": "Points + Rebounds + Assists (PRA)",
        "line": 34.5,
        "over_under": "Over",
    }
    data.update(overrides)
    return _bet(**data)


def test_pra_is_summed_from_box_score():
    record = PlayerStatRecord(stats={"Points": 20, "Rebounds": 8, "Assists": 7})
    assert settle_from_stats(_prop(), record, "nfl") is BetResult.void  # unmapped for football
    assert settle_from_stats(_prop(), record, "nhl") is BetResult.void
    assert settle_from_stats(_prop(), record, "nba") is BetResult.win
    assert settle_from_stats(_prop(stat_type="PRA"), record, "ncaab") is BetResult.win


def test_missing_stat_field_voids_and_missing_record_is_pending():
    bet = _prop(stat_type="Rushing Yards", line=80.5)
    assert settle_from_stats(bet, PlayerStatRecord(stats={"PassingYards": 250}), "nfl") is BetResult.void
    assert settle_from_stats(bet, None, "nfl") is BetResult.pending


def test_anytime_touchdown():
    bet = _prop(stat_type="Anytime TD Scorer", line=0.5)
    scored = PlayerStatRecord(stats={"RushingTouchdowns": 0, "ReceivingTouchdowns": 1})
    blanked = PlayerStatRecord(stats={"RushingTouchdowns": 0, "ReceivingTouchdowns": 0})
    assert settle_from_stats(bet, scored, "nfl") is BetResult.win
    assert settle_from_stats(bet, blanked, "nfl") is BetResult.loss


def test_graded_props():
    bet = _prop(stat_type="3-Pointers Made", line=2.5, over_under="Under")
    graded = PlayerStatRecord(props=[GradedProp(description="Three Pointers Made", stat_result=2)])
    ungraded = PlayerStatRecord(props=[GradedProp(description="Three Pointers Made", stat_result=None)])
    other = PlayerStatRecord(props=[GradedProp(description="Points", stat_result=30)])
    assert settle_from_stats(bet, graded, "nba") is BetResult.win
    assert settle_from_stats(bet, ungraded, "nba") is BetResult.pending
    assert settle_from_stats(bet, other, "nba") is BetResult.void


@pytest.mark.asyncio
async def test_prop_settles_through_stat_lookup():
    lookups = _Lookups(stats=PlayerStatRecord(stats={"Points": 20, "Rebounds": 8, "Assists": 7}))
    result = await lookups.settler().settle(_prop())

    assert result is BetResult.win
    assert lookups.stat_calls == [(20000571, "nba", START, "evt-1")]
    assert lookups.score_calls == []


@pytest.mark.asyncio
async def test_prop_missing_player_id_voids_without_fetch():
    lookups = _Lookups(stats=PlayerStatRecord(stats={"Points": 40}))
    result = await lookups.settler().settle(_prop(player_id=None))
    assert result is BetResult.void
    assert lookups.stat_calls == []


# ---------- Dispatch ----------

@pytest.mark.asyncio
async def test_missing_provider_event_id_voids_with_zero_fetches():
    lookups = _Lookups(score=_final(110, 101))
    assert await lookups.settler().settle(_bet(provider_event_id=None)) is BetResult.void
    assert await lookups.settler().settle(_prop(provider_event_id=None)) is BetResult.void
    assert lookups.score_calls == []
    assert lookups.stat_calls == []


@pytest.mark.asyncio
async def test_missing_sport_voids():
    lookups = _Lookups(score=_final(110, 101))
    assert await lookups.settler().settle(_bet(sport=None)) is BetResult.void
    assert lookups.score_calls == []


@pytest.mark.asyncio
async def test_score_lookup_uses_sport_key_or_lowercased_sport():
    lookups = _Lookups(score=_final(110, 101))
    assert await lookups.settler().settle(_bet()) is BetResult.win
    assert await lookups.settler().settle(_bet(sport_key=None, sport="NBA")) is BetResult.win
    assert lookups.score_calls == [("evt-1", "basketball_nba"), ("evt-1", "nba")]


@pytest.mark.asyncio
async def test_settling_is_idempotent_for_terminal_bets():
    lookups = _Lookups(score=_final(90, 120))
    settler = lookups.settler()
    first = await settler.settle(_bet())
    assert first is BetResult.loss

    settled = _bet(result=first)
    assert await settler.settle(settled) is first
    assert len(lookups.score_calls) == 1


# ---------- Parlays ----------

def test_combine_parlay_legs():
    assert combine_parlay_legs([]) is BetResult.void
    assert combine_parlay_legs(["win", "win"]) is BetResult.win
    assert combine_parlay_legs(["win", "pending", "loss"]) is BetResult.pending
    assert combine_parlay_legs(["win", "loss", "void"]) is BetResult.loss
    assert combine_parlay_legs(["win", "push"]) is BetResult.void
    assert combine_parlay_legs(["void", "win"]) is BetResult.void


@pytest.mark.parametrize(
    "others",
    [["win"], ["push"], ["void", "win"], ["loss", "win", "push"]],
)
def test_any_losing_leg_loses_the_parlay(others):
    assert combine_parlay_legs(["loss", *others]) is BetResult.loss


@pytest.mark.asyncio
async def test_parlay_settles_from_its_legs_only():
    legs = [
        _bet(id="leg-1", parlay_id="parlay-1", result="win"),
        _bet(id="leg-2", parlay_id="parlay-1", result="win"),
    ]
    lookups = _Lookups(legs=legs)
    parlay = _bet(id="parlay-1", market_type=MarketType.parlay, provider_event_id=None,
                  selection=None, odds=3.6)

    assert await lookups.settler().settle(parlay) is BetResult.win
    assert lookups.leg_calls == ["parlay-1"]
    assert lookups.score_calls == []


@pytest.mark.asyncio
async def test_parlay_without_legs_voids():
    lookups = _Lookups(legs=[])
    parlay = _bet(id="parlay-2", market_type=MarketType.parlay)
    assert await lookups.settler().settle(parlay) is BetResult.void
