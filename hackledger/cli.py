"""
HACKLEDGER CLI — audit commands for a journal file.

    hackledger journal status --db contest.db
    hackledger journal verify --db contest.db
    hackledger journal checkpoint --db contest.db
    hackledger journal prove 7 --db contest.db
    hackledger standings --db contest.db
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from hackledger import __version__, config
from hackledger.journal import PROJECT_REGISTERED, VOTE_CAST, VOTING_RESOLVED, EventJournal

console = Console()


def _default_db() -> str:
    if config.JOURNAL_PATH == ":memory:":
        return str(config.HACKLEDGER_DIR / "journal.db")
    return config.JOURNAL_PATH


def _open_journal(db: str) -> EventJournal:
    if not Path(db).expanduser().exists():
        console.print(f"[red]✗ Journal not found:[/] {db}")
        sys.exit(2)
    return EventJournal(db)


# ─── Main Group ──────────────────────────────────────────────────


@click.group()
@click.version_option(__version__, prog_name="hackledger")
def cli() -> None:
    """HACKLEDGER — tamper-evident hackathon voting ledger."""
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.group()
def journal():
    """Inspect and verify the event journal."""
    pass


@journal.command("status")
@click.option("--db", default=_default_db, help="Journal database path")
def journal_status(db):
    """Show entry and checkpoint counts."""
    jr = _open_journal(db)
    try:
        s = jr.status()
        console.print(
            Panel(
                f"[bold cyan]Events:[/] {s['events']}\n"
                f"[bold cyan]Checkpoints:[/] {s['checkpoints']}\n"
                f"[bold cyan]Last sealed id:[/] {s['last_sealed_id']}\n"
                f"[bold cyan]Unsealed events:[/] {s['unsealed']}",
                title="Journal Status",
                border_style="cyan",
            )
        )
    finally:
        jr.close()


@journal.command("checkpoint")
@click.option("--db", default=_default_db, help="Journal database path")
def journal_checkpoint(db):
    """Seal all unsealed events under a Merkle root."""
    jr = _open_journal(db)
    try:
        root = jr.create_checkpoint()
        if root:
            console.print(f"[green]✓ Checkpoint created.[/] Root: [bold]{root}[/]")
        else:
            console.print("[yellow]No unsealed events.[/]")
    finally:
        jr.close()


@journal.command("verify")
@click.option("--db", default=_default_db, help="Journal database path")
def journal_verify(db):
    """Verify the hash chain and every Merkle root. Exits 1 on violations."""
    jr = _open_journal(db)
    try:
        with console.status("[bold blue]Verifying hash chain...[/]"):
            report = jr.verify_chain_integrity()
        with console.status("[bold magenta]Verifying Merkle roots...[/]"):
            roots = jr.verify_merkle_roots()
    finally:
        jr.close()

    chain_valid = report["valid"]
    merkle_valid = all(r["valid"] for r in roots)

    if chain_valid:
        console.print(f"[green]✓ Hash chain: OK[/] ({report['events_checked']} events)")
    else:
        console.print("[red]✗ Hash chain: FAILED[/]")
        for v in report["violations"]:
            console.print(f"  [red]✗[/] {v['type']} at event #{v['event_id']}")

    if merkle_valid:
        console.print(f"[green]✓ Merkle roots: OK[/] ({len(roots)} checkpoints)")
    else:
        console.print("[red]✗ Merkle roots: FAILED[/]")
        for r in roots:
            if not r["valid"]:
                console.print(f"  [red]✗[/] checkpoint {r['checkpoint_id']} ({r['range']}) mismatch")

    if not (chain_valid and merkle_valid):
        sys.exit(1)


@journal.command("prove")
@click.argument("event_id", type=int)
@click.option("--db", default=_default_db, help="Journal database path")
def journal_prove(event_id, db):
    """Merkle inclusion proof for one event. Exits 1 if unsealed or invalid."""
    jr = _open_journal(db)
    try:
        result = jr.prove(event_id)
    finally:
        jr.close()

    if result is None:
        console.print(f"[yellow]Event #{event_id} is not sealed by any checkpoint.[/]")
        sys.exit(1)

    console.print(f"[bold]Event #{result['event_id']}[/] in checkpoint {result['checkpoint_id']} ({result['range']})")
    console.print(f"  leaf: {result['leaf']}")
    for sibling, position in result["proof"]:
        console.print(f"  {position} {sibling}")
    console.print(f"  root: {result['root']}")

    if result["valid"]:
        console.print("[green]✓ Proof: OK[/]")
    else:
        console.print("[red]✗ Proof: FAILED[/]")
        sys.exit(1)


@cli.command()
@click.option("--db", default=_default_db, help="Journal database path")
def standings(db):
    """Tallies rebuilt from the journal's vote events."""
    jr = _open_journal(db)
    try:
        registered = jr.entries(PROJECT_REGISTERED)
        votes = jr.entries(VOTE_CAST)
        resolved = jr.entries(VOTING_RESOLVED)
    finally:
        jr.close()

    counts = {e.payload["project_id"]: 0 for e in registered}
    voters = set()
    for e in votes:
        counts[e.payload["project_id"]] = counts.get(e.payload["project_id"], 0) + 1
        voters.add(e.payload["voter"])

    table = Table(title="Standings")
    table.add_column("#", justify="right", style="bold")
    table.add_column("Project")
    table.add_column("Team", style="dim")
    table.add_column("Votes", justify="right", style="green")

    titles = {e.payload["project_id"]: (e.payload["title"], e.payload["team_name"]) for e in registered}
    for pid, n in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])):
        title, team = titles.get(pid, ("?", ""))
        table.add_row(str(pid), title, team, str(n))

    console.print(table)
    console.print(f"[bold]{len(votes)}[/] votes from [bold]{len(voters)}[/] voters")
    if resolved:
        r = resolved[-1].payload
        console.print(f"[bold green]Winner:[/] #{r['winner_id']} {r['title']} ({r['vote_count']} votes)")


if __name__ == "__main__":
    cli()
