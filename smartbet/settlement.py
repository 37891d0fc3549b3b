"""Settle pending bets against scraped match results."""
import logging
import sqlite3
from typing import Callable, Dict, List, Optional

from .config import HOME_WIN_MARKETS, VERIFY_BATCH_LIMIT
from .database import (
    finish_match,
    get_bets_for_match,
    get_matches_with_pending_bets,
    settle_bet,
    transaction,
)
from .errors import ReconciliationLookupError
from .models import BetStatus, Match, ResultRecord, ScrapeResult
from .scrapers import ResultScraper

logger = logging.getLogger(__name__)


def teams_match(scraped_name: str, stored_name: str) -> bool:
    """Check if a scraped team name is contained in a stored one (ignoring case)."""
    scraped = scraped_name.strip().casefold()
    return bool(scraped) and scraped in stored_name.casefold()


def find_scheduled_match(result: ResultRecord, candidates: List[Match]) -> Match:
    """Return the first scheduled match whose teams contain the result's teams.

    Raises:
        ReconciliationLookupError: nothing matches.
    """
    for match in candidates:
        if teams_match(result.home_team, match.home_team) and teams_match(result.away_team, match.away_team):
            return match
    raise ReconciliationLookupError(f"No scheduled match for {result.home_team} vs {result.away_team}")


def won_on_home_win(bet, home_team: str) -> bool:
    selection = (bet.selection or "").strip().casefold()
    return bool(selection) and selection in home_team.casefold() and bet.market in HOME_WIN_MARKETS


def settle_bets(
    conn: sqlite3.Connection,
    match_id: int,
    home_team: str,
    home_score: int,
    away_score: int
) -> Dict[str, int]:
    """
    Resolve the pending bets of a finished match.

    Only a home win is recognised: bets backing the home side in a home-win
    market are WON. When none is, every pending bet on the match is LOST,
    whatever the actual outcome was.

    Returns:
        Stats dict with 'won' and 'lost' counts
    """
    stats = {"won": 0, "lost": 0}
    pending = get_bets_for_match(conn, match_id, BetStatus.PENDING.value)

    if home_score > away_score:
        for bet in pending:
            if won_on_home_win(bet, home_team):
                profit = round(bet.amount * (bet.odds_taken - 1), 2)
                if settle_bet(conn, bet.id, BetStatus.WON.value, profit):
                    stats["won"] += 1

    if stats["won"] == 0:
        for bet in pending:
            if settle_bet(conn, bet.id, BetStatus.LOST.value, round(-bet.amount, 2)):
                stats["lost"] += 1

    return stats


def apply_result(conn: sqlite3.Connection, result: ResultRecord, candidates: List[Match]) -> Match:
    """Finish the stored match a result belongs to and settle its bets."""
    match = find_scheduled_match(result, candidates)
    with transaction(conn):
        finish_match(conn, match.id, result.home_score, result.away_score)
        stats = settle_bets(conn, match.id, match.home_team, result.home_score, result.away_score)
    logger.info(
        f"Settled {match.home_team} {result.home_score}-{result.away_score} {match.away_team}: "
        f"{stats['won']} won, {stats['lost']} lost"
    )
    return match


def verify_match_results(
    conn: sqlite3.Connection,
    fetch_results: Optional[Callable[[], ScrapeResult]] = None,
    limit: int = VERIFY_BATCH_LIMIT
) -> Dict[str, int]:
    """
    Check scheduled matches with open bets against freshly scraped results.

    Args:
        conn: Database connection
        fetch_results: Callable returning a ScrapeResult of ResultRecords
            (defaults to the Sofascore scraper on the shared browser session)
        limit: Maximum number of matches with pending bets to consider

    Returns:
        Dict with 'verified' (matches finished in this pass) and 'pending'
        (matches that had open bets when the pass started)
    """
    verified = 0
    pending_matches = get_matches_with_pending_bets(conn, limit)
    pending = len(pending_matches)
    logger.info(f"Verifying {pending} matches with pending bets")

    if fetch_results is None:
        fetch_results = ResultScraper().scrape

    scrape = fetch_results()
    if not scrape.success:
        logger.error(f"Could not fetch results: {scrape.error}")
        return {"verified": verified, "pending": pending}

    # Matches outside the batch wait for a later pass
    candidates = list(pending_matches)
    for result in scrape.records:
        if not result.finished:
            continue
        try:
            match = apply_result(conn, result, candidates)
        except ReconciliationLookupError as e:
            logger.debug(str(e))
            continue
        candidates.remove(match)
        verified += 1

    logger.info(f"Verification complete: {verified} verified, {pending} pending")
    return {"verified": verified, "pending": pending}
