"""CLI entry point for the prediction scraper and bet settlement."""
import logging
import sqlite3
import sys

import click
from rich.console import Console
from rich.table import Table
from rich.logging import RichHandler

from .browser import release_session
from .config import DB_PATH, LOG_LEVEL
from .database import get_connection, get_recent_jobs, init_database, insert_bet, transaction
from .pipeline import run_acquisition, run_result_scrape, run_verification, scraper_status
from .scheduler import run_scheduler

console = Console()

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(message)s",
    handlers=[RichHandler(console=console, rich_tracebacks=True)]
)
logger = logging.getLogger(__name__)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def cli(debug):
    """SmartBet prediction scraper and bet settlement CLI."""
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command()
def init():
    """Initialize the database."""
    console.print("[bold]Initializing database...[/bold]")
    conn = get_connection()
    init_database(conn)
    conn.close()
    console.print(f"[green]Database initialized at {DB_PATH}[/green]")


@cli.command("scrape-predictions")
def scrape_predictions():
    """Scrape predictions and store them."""
    console.print("[bold]Scraping predictions...[/bold]")

    conn = get_connection()
    init_database(conn)
    try:
        result = run_acquisition(conn)
    finally:
        conn.close()
        release_session()

    if result["success"]:
        console.print("\n[bold green]Scraping complete![/bold green]")
    else:
        console.print(f"\n[bold red]Scraping failed:[/bold red] {result['error']}")
    console.print(f"  Job: {result['job_id']}")
    console.print(f"  Predictions found: {result['predictions_count']}")
    console.print(f"  Saved: {result['matches_found']}")

    if not result["success"]:
        sys.exit(1)


@cli.command("scrape-results")
@click.option("--league", "-l", default=None, help="League path on the results site")
def scrape_results(league):
    """Scrape match results without saving them."""
    console.print("[bold]Scraping results...[/bold]")
    try:
        result = run_result_scrape(league)
    finally:
        release_session()

    if not result["success"]:
        console.print(f"[red]Error: {result['error']}[/red]")
        sys.exit(1)

    if not result["results"]:
        console.print("[yellow]No results found on page.[/yellow]")
        return

    table = Table(title=f"Results ({result['results_count']})")
    table.add_column("Home Team", style="cyan")
    table.add_column("Away Team", style="cyan")
    table.add_column("Score", justify="center")
    table.add_column("Status")

    for row in result["results"]:
        status_color = "green" if row["finished"] else "yellow"
        table.add_row(
            row["home_team"][:25],
            row["away_team"][:25],
            f"{row['home_score']}-{row['away_score']}",
            f"[{status_color}]{row['status']}[/{status_color}]",
        )

    console.print(table)


@cli.command()
def verify():
    """Check results and settle pending bets."""
    console.print("[bold]Verifying match results...[/bold]")

    conn = get_connection()
    init_database(conn)
    try:
        stats = run_verification(conn)
    finally:
        conn.close()
        release_session()

    console.print("\n[bold green]Verification complete![/bold green]")
    console.print(f"  Matches verified: {stats['verified']}")
    console.print(f"  Matches with pending bets: {stats['pending']}")


@cli.command()
def status():
    """Show the state of the last scrape and open bets."""
    conn = get_connection()
    init_database(conn)
    info = scraper_status(conn)
    conn.close()

    color = "green" if info["last_success"] else "red"
    console.print("[bold]Scraper Status[/bold]")
    console.print(f"  Last job: [{color}]{info['scraper_status']}[/{color}]")
    console.print(f"  Last run: {info['last_run'] or '-'}")
    console.print(f"  Pending bets: {info['pending_bets']}")
    console.print(f"  Browser running: {info['browser_ready']}")


@cli.command()
@click.option("--limit", "-n", default=20, help="Number of jobs to show")
def jobs(limit):
    """Show recent scraping jobs."""
    conn = get_connection()
    init_database(conn)
    recent = get_recent_jobs(conn, limit)
    conn.close()

    if not recent:
        console.print("[yellow]No jobs yet. Run scrape-predictions first.[/yellow]")
        return

    table = Table(title="Scraping Jobs")
    table.add_column("ID", justify="right")
    table.add_column("Source", style="cyan")
    table.add_column("Status")
    table.add_column("Matches", justify="right")
    table.add_column("Predictions", justify="right")
    table.add_column("Started")
    table.add_column("Error")

    colors = {"COMPLETED": "green", "FAILED": "red", "RUNNING": "yellow"}
    for job in recent:
        color = colors.get(job.status, "white")
        table.add_row(
            str(job.id),
            job.source,
            f"[{color}]{job.status}[/{color}]",
            str(job.matches_found),
            str(job.predictions_found),
            job.started_at.strftime("%Y-%m-%d %H:%M") if job.started_at else "-",
            (job.error_message or "")[:40],
        )

    console.print(table)


@cli.command("place-bet")
@click.option("--match-id", "-m", type=int, required=True, help="Match the bet is on")
@click.option("--amount", "-a", type=float, required=True, help="Stake in currency")
@click.option("--odds", "-o", "odds_taken", type=float, required=True, help="Decimal odds taken")
@click.option("--market", default="Home", show_default=True, help="Market name")
@click.option("--selection", "-s", required=True, help="What the bet backs, e.g. the home team")
@click.option("--prediction-id", type=int, default=None, help="Prediction the bet follows")
def place_bet(match_id, amount, odds_taken, market, selection, prediction_id):
    """Record a pending bet."""
    conn = get_connection()
    init_database(conn)
    try:
        with transaction(conn):
            bet_id = insert_bet(conn, amount, odds_taken, market, selection, match_id, prediction_id)
    except sqlite3.Error as e:
        console.print(f"[red]Error placing bet: {e}[/red]")
        sys.exit(1)
    finally:
        conn.close()

    console.print(f"[green]Bet #{bet_id} placed: {amount:.2f} on {selection} @ {odds_taken:.2f}[/green]")


@cli.command()
def schedule():
    """Run the daily scrape and hourly verification until stopped."""
    conn = get_connection()
    init_database(conn)
    conn.close()
    console.print("[bold]Scheduler running. Press Ctrl+C to stop.[/bold]")
    run_scheduler()


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
