"""Tests for the extraction strategies and derivation rules."""
import hashlib
from datetime import date, datetime

import pytest
from bs4 import BeautifulSoup

from smartbet.extraction import (
    StructuredPredictionStrategy,
    StructuredResultStrategy,
    TextPatternPredictionStrategy,
    confidence_level,
    make_external_id,
    make_result_id,
    normalize_market,
    parse_date_time,
    parse_odds,
    parse_probability,
    parse_stake_hint,
    prediction_extractor,
    result_extractor,
    stake_from_probability,
)

NOW = datetime(2025, 3, 14, 12, 0)  # a Friday

PREDICTIONS_HTML = """
<html><body>
<table>
  <tr class="match-row">
    <td class="match-teams">Arsenal vs Chelsea</td>
    <td class="match-date">15/03/2025 20:45</td>
    <td class="league-name">Premier League</td>
    <td class="odds-home">1.85</td>
    <td class="odds-draw">3,40</td>
    <td class="odds-away">4.20</td>
    <td class="prob">72%</td>
    <td class="market">Home Win</td>
  </tr>
  <tr class="match-row">
    <td><span class="team-home">Porto</span><span class="team-away">Benfica</span></td>
    <td class="prob">88%</td>
    <td class="stake">Stake 9/10</td>
    <td class="tip">Both teams to score</td>
  </tr>
  <tr class="match-row">
    <td class="prob">50%</td>
  </tr>
</table>
</body></html>
"""

FALLBACK_HTML = """
<html><body>
<div class="listing">
  <h2>Today's fixtures</h2>
  <p>Liverpool vs Everton</p>
  <p>AB vs CD</p>
</div>
</body></html>
"""

RESULTS_HTML = """
<html><body>
<section>
  <div class="match-row">
    <span class="team-home">Arsenal</span>
    <span class="score-home">2</span>
    <span class="score-away">1</span>
    <span class="team-away">Chelsea</span>
    <span class="status">FT</span>
  </div>
  <div class="match-row">
    <span class="team-home">Lazio</span>
    <span class="score-home">0</span>
    <span class="score-away">0</span>
    <span class="team-away">Roma</span>
    <span class="status">45'</span>
  </div>
  <div class="match-row">
    <span class="status">FT</span>
  </div>
</section>
</body></html>
"""

SCORE_TEXT_HTML = """
<html><body>
<ul>
  <li class="fixture">
    <span class="team">Porto</span>
    <span class="result">3 - 0</span>
    <span class="team">Benfica</span>
  </li>
</ul>
</body></html>
"""


class TestDerivationRules:

    @pytest.mark.parametrize("probability,stake,level", [
        (90, 10, "EXCELLENT"),
        (85, 10, "EXCELLENT"),
        (80, 8, "HIGH"),
        (70, 6, "GOOD"),
        (60, 4, "MODERATE"),
        (50, 3, "LOW"),
        (10, 2, "VERY_LOW"),
        (0, 2, "VERY_LOW"),
    ])
    def test_threshold_table(self, probability, stake, level):
        assert stake_from_probability(probability) == stake
        assert confidence_level(probability) == level

    def test_stake_and_confidence_never_decrease(self):
        order = ["VERY_LOW", "LOW", "MODERATE", "GOOD", "HIGH", "EXCELLENT"]
        stakes = [stake_from_probability(p) for p in range(0, 101)]
        levels = [order.index(confidence_level(p)) for p in range(0, 101)]
        assert stakes == sorted(stakes)
        assert levels == sorted(levels)

    @pytest.mark.parametrize("raw,expected", [
        ("Both Teams To Score", "BTTS"),
        ("BTTS - Yes", "BTTS"),
        ("over 2.5 goals", "Over 2.5"),
        ("Under 2.5", "Under 2.5"),
        ("Over 1.5 Goals", "Over 1.5"),
        ("under 1.5", "Under 1.5"),
        ("Home Win", "Home"),
        ("1", "Home"),
        ("Away", "Away"),
        ("2", "Away"),
        ("Draw", "Draw"),
        ("X", "Draw"),
        ("Match Result", "1X2"),
        ("", "1X2"),
        (None, "1X2"),
        ("Asian Handicap -1", "Asian Handicap -1"),
    ])
    def test_normalize_market(self, raw, expected):
        assert normalize_market(raw) == expected

    def test_normalize_market_checks_goal_lines_before_sides(self):
        assert normalize_market("Home over 2.5") == "Over 2.5"

    def test_unknown_market_is_truncated(self):
        raw = "Correct score " + "x" * 80
        assert normalize_market(raw) == raw[:50]
        assert len(normalize_market(raw)) == 50

    def test_external_id_is_truncated_md5(self):
        expected = hashlib.md5("Arsenal vs Chelsea15/03/2025".encode()).hexdigest()[:16]
        assert make_external_id("Arsenal vs Chelsea", "15/03/2025") == expected

    def test_external_id_changes_with_whitespace(self):
        # Raw text is hashed, so formatting drift yields a different ID
        assert make_external_id("Arsenal vs Chelsea", "") != make_external_id("Arsenal  vs Chelsea", "")

    def test_result_id_ignores_case(self):
        assert make_result_id("Arsenal", "Chelsea") == make_result_id("ARSENAL", "chelsea")
        assert make_result_id("Arsenal", "Chelsea").startswith("sofascore_")


class TestFieldParsers:

    @pytest.mark.parametrize("text,expected", [
        ("3/1", 4.0),
        ("11/10", 2.1),
        ("EVS", 2.0),
        ("2.50", 2.5),
        ("2,50", 2.5),
        ("SP", None),
        ("-", None),
        ("abc", None),
        ("0", None),
        ("", None),
    ])
    def test_parse_odds(self, text, expected):
        if expected is None:
            assert parse_odds(text) is None
        else:
            assert parse_odds(text) == pytest.approx(expected)

    def test_parse_probability(self):
        assert parse_probability("72%") == 72.0
        assert parse_probability("64,5 %") == 64.5
        assert parse_probability("n/a") == 0.0
        assert parse_probability("150%") == 100.0

    def test_parse_stake_hint(self):
        assert parse_stake_hint("Stake 7") == 7
        assert parse_stake_hint("12") == 10
        assert parse_stake_hint("0") == 1
        assert parse_stake_hint("high") is None

    @pytest.mark.parametrize("text,expected", [
        ("15/03/2025 20:45", (date(2025, 3, 15), "20:45")),
        ("2025-03-16 18:30", (date(2025, 3, 16), "18:30")),
        ("15.03.25", (date(2025, 3, 15), "")),
        ("Today 15:00", (date(2025, 3, 14), "15:00")),
        ("Tomorrow 9:30", (date(2025, 3, 15), "09:30")),
        ("Sun 16:00", (date(2025, 3, 16), "16:00")),
        ("", (date(2025, 3, 14), "")),
    ])
    def test_parse_date_time(self, text, expected):
        assert parse_date_time(text, NOW) == expected


class TestPredictionExtraction:

    def test_structured_rows(self):
        records = prediction_extractor(now=NOW).extract(PREDICTIONS_HTML)

        assert len(records) == 2
        first, second = records

        assert first.home_team == "Arsenal"
        assert first.away_team == "Chelsea"
        assert first.league == "Premier League"
        assert first.match_date == date(2025, 3, 15)
        assert first.match_time == "20:45"
        assert first.market == "Home"
        assert first.probability == 72.0
        assert first.stake == 6
        assert first.confidence_level == "GOOD"
        assert first.odds == 1.85
        assert (first.home_odds, first.draw_odds, first.away_odds) == (1.85, 3.4, 4.2)
        assert first.external_id == make_external_id("Arsenal vs Chelsea", "15/03/2025 20:45")

    def test_stake_hint_overrides_derived_stake(self):
        records = prediction_extractor(now=NOW).extract(PREDICTIONS_HTML)
        second = records[1]

        assert (second.home_team, second.away_team) == ("Porto", "Benfica")
        assert second.stake == 9
        assert second.confidence_level == "EXCELLENT"
        assert second.market == "BTTS"
        assert second.league == "Unknown League"
        assert second.odds == 0.0
        assert second.home_odds is None

    def test_row_without_teams_is_skipped(self):
        soup = BeautifulSoup(PREDICTIONS_HTML, "lxml")
        records = StructuredPredictionStrategy(now=NOW).extract(soup)
        assert all(r.home_team != "Unknown" or r.away_team != "Unknown" for r in records)
        assert len(records) == 2

    def test_row_with_one_team_keeps_placeholder(self):
        html = '<table><tr class="match-row"><td class="team">Napoli</td><td class="prob">60%</td></tr></table>'
        records = prediction_extractor(now=NOW).extract(html)
        assert len(records) == 1
        assert records[0].home_team == "Napoli"
        assert records[0].away_team == "Unknown"

    def test_fallback_used_when_no_rows(self):
        records = prediction_extractor(now=NOW).extract(FALLBACK_HTML)

        assert len(records) == 1
        stub = records[0]
        assert (stub.home_team, stub.away_team) == ("Liverpool", "Everton")
        assert stub.probability == 0
        assert stub.stake == 5
        assert stub.market == "1X2"
        assert stub.confidence_level == "VERY_LOW"
        assert stub.odds == 0
        assert stub.home_odds is None
        assert stub.league == "Extracted from Page"
        assert stub.match_date == NOW.date()

    def test_fallback_used_when_every_row_is_skipped(self):
        html = """
        <div class="prediction-card"><span class="prob">70%</span></div>
        <p>Ajax vs Feyenoord</p>
        """
        records = prediction_extractor(now=NOW).extract(html)
        assert [(r.home_team, r.away_team) for r in records] == [("Ajax", "Feyenoord")]

    def test_fallback_not_used_when_structured_finds_rows(self):
        html = PREDICTIONS_HTML.replace("</table>", "</table><p>Liverpool vs Everton</p>")
        records = prediction_extractor(now=NOW).extract(html)
        assert "Liverpool" not in [r.home_team for r in records]

    def test_text_pattern_strategy_alone(self):
        soup = BeautifulSoup("<p>Real Madrid vs Barcelona</p>", "lxml")
        records = TextPatternPredictionStrategy(now=NOW).extract(soup)
        assert [(r.home_team, r.away_team) for r in records] == [("Real Madrid", "Barcelona")]

    def test_empty_page(self):
        assert prediction_extractor(now=NOW).extract("<html><body></body></html>") == []


class TestResultExtraction:

    def test_structured_results(self):
        records = result_extractor().extract(RESULTS_HTML)

        assert len(records) == 2
        finished, live = records
        assert (finished.home_team, finished.away_team) == ("Arsenal", "Chelsea")
        assert (finished.home_score, finished.away_score) == (2, 1)
        assert finished.finished is True
        assert finished.status == "FINISHED"
        assert finished.external_id == make_result_id("Arsenal", "Chelsea")

        assert live.finished is False
        assert live.status == "45'"

    def test_duplicate_containers_collapse(self):
        html = RESULTS_HTML.replace("<section>", '<section class="events-list">')
        soup = BeautifulSoup(html, "lxml")
        raw = StructuredResultStrategy().extract(soup)
        records = result_extractor().extract(html)
        assert len(raw) == 3
        assert len(records) == 2

    def test_score_text_fallback(self):
        records = result_extractor().extract(SCORE_TEXT_HTML)

        assert len(records) == 1
        result = records[0]
        assert (result.home_team, result.away_team) == ("Porto", "Benfica")
        assert (result.home_score, result.away_score) == (3, 0)
        assert result.finished is True
