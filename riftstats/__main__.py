from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler

from .aggregator import STATUS_FAILED, patch_of
from .baselines import BaselineSources, lookup_baselines
from .buckets import duration_bucket
from .config import (
    config_path,
    ensure_paths,
    get_api_key,
    get_config,
    open_config_in_editor,
    set_api_key,
)
from .dashboards import render_batch, render_champion_detail, render_rollup, render_score
from .details import champion_detail
from .features import lane_opponent, participant_role
from .ingest import ingest_batch, ingest_document, reference_for
from .riot import RiotClient
from .rollup import ScoredMatch, summarize
from .scoring import score_from_match, scoring_config, share_delta_model
from .store import Store
from .timeline import TimelineResult


app = typer.Typer(add_completion=False, no_args_is_help=True, help="Champion stat aggregation and match scoring")
console = Console()


@app.callback()
def main_callback(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")) -> None:
    ensure_paths()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _load_json(path: Path) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _timeline_from(path: Optional[Path]) -> TimelineResult:
    if path is None:
        return TimelineResult.absent("no timeline file given")
    try:
        return TimelineResult.present(_load_json(path))
    except (OSError, ValueError) as e:
        return TimelineResult.absent(str(e))


@app.command()
def auth(api_key: str = typer.Option(..., help="Riot API key to store in the OS keyring")):
    """Save the Riot API key and check it against the platform status endpoint."""
    set_api_key(api_key)
    rprint("[green]Saved API key to keyring.[/green]")
    cfg = get_config()
    try:
        ok = RiotClient.from_config(cfg).verify_key()
    except Exception as e:
        rprint(f"[yellow]Could not verify key[/yellow]: {e}")
        return
    rprint("[green]Key accepted.[/green]" if ok else "[red]Key rejected by Riot.[/red]")


@app.command()
def ingest(
    match_ids: Optional[List[str]] = typer.Argument(None, help="Match ids, e.g. EUW1_1234567890"),
    puuid: Optional[str] = typer.Option(None, help="Also pull recent match ids of this player"),
    count: int = typer.Option(20, help="How many recent matches to pull with --puuid"),
    queue: Optional[int] = typer.Option(420, help="Queue filter for --puuid, 420 = Ranked Solo"),
    tier: Optional[str] = typer.Option(None, help="Tier the matches are filed under"),
    concurrency: Optional[int] = typer.Option(None, help="Matches processed in parallel"),
):
    """Fetch matches from Riot and fold them into the stat buckets."""
    cfg = get_config()
    store = Store()
    rc = RiotClient.from_config(cfg)
    ids = list(match_ids or [])
    if puuid:
        ids.extend(rc.match_ids_by_puuid(puuid, count=count, queue=queue or None))
    if not ids:
        rprint("[yellow]Nothing to ingest. Pass match ids or --puuid.[/yellow]")
        raise typer.Exit(code=1)
    results = ingest_batch(
        rc,
        store,
        ids,
        (tier or cfg["ingest"]["tier"]).upper(),
        concurrency=concurrency or cfg["ingest"]["concurrency"],
        min_duration_s=cfg["ingest"]["min_duration_s"],
    )
    render_batch(results, console)
    if any(r.status == STATUS_FAILED for r in results):
        raise typer.Exit(code=2)


@app.command("ingest-file")
def ingest_file(
    match_json: Path = typer.Argument(..., exists=True, help="Match-V5 match JSON"),
    timeline_json: Optional[Path] = typer.Option(None, "--timeline", help="Match-V5 timeline JSON"),
    tier: Optional[str] = typer.Option(None),
):
    """Fold a locally saved match into the stat buckets."""
    cfg = get_config()
    res = ingest_document(
        Store(),
        _load_json(match_json),
        _timeline_from(timeline_json),
        (tier or cfg["ingest"]["tier"]).upper(),
        cfg["ingest"]["min_duration_s"],
    )
    render_batch([res], console)


@app.command()
def score(
    match_json: Path = typer.Argument(..., exists=True),
    participant: int = typer.Option(..., help="participantId (1-10)"),
    timeline_json: Optional[Path] = typer.Option(None, "--timeline"),
    tier: Optional[str] = typer.Option(None),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result"),
):
    """Score one participant of a saved match against the stored baselines."""
    cfg = get_config()
    match = _load_json(match_json)
    result = _score(Store(), match, participant, _timeline_from(timeline_json), (tier or cfg["ingest"]["tier"]).upper(), cfg)
    if as_json:
        rprint(json.dumps(result.to_dict(), indent=2))
    else:
        render_score(result, title=f"Participant {participant}", console=console)


def _score(store: Store, match: dict, participant_id: int, timeline: TimelineResult, tier: str, cfg: dict):
    info = match.get("info") or {}
    p = next((x for x in info.get("participants", []) if int(x.get("participantId") or 0) == participant_id), None)
    if p is None:
        rprint(f"[red]No participant {participant_id} in match.[/red]")
        raise typer.Exit(code=1)
    role = participant_role(p)
    sources = None
    if role is not None:
        op = lane_opponent(info, p)
        sources = lookup_baselines(
            store,
            p.get("championName") or "",
            role,
            tier,
            patch_of(info),
            duration_bucket(float(info.get("gameDuration") or 0)),
            op.get("championName") if op else None,
        )
    try:
        reference = reference_for(match)
    except Exception as e:
        logging.getLogger(__name__).warning("reference data unavailable, scoring without class modifiers: %s", e)
        reference = None
    return score_from_match(
        match,
        participant_id,
        sources or BaselineSources(),
        timeline,
        reference,
        scoring_config(cfg),
        contribution_model=share_delta_model,
    )


@app.command()
def rollup(
    puuid: str = typer.Argument(..., help="Player to summarize"),
    match_dir: Path = typer.Argument(..., exists=True, file_okay=False, help="Directory of saved match JSON files"),
    tier: Optional[str] = typer.Option(None),
):
    """Score every saved match of a player and print the rollup."""
    cfg = get_config()
    store = Store()
    t = (tier or cfg["ingest"]["tier"]).upper()
    scored: List[ScoredMatch] = []
    for path in sorted(match_dir.glob("*.json")):
        match = _load_json(path)
        me = next((p for p in (match.get("info") or {}).get("participants", []) if p.get("puuid") == puuid), None)
        if me is None:
            continue
        res = _score(store, match, int(me["participantId"]), TimelineResult.absent("not loaded"), t, cfg)
        scored.append(ScoredMatch.from_match(match, puuid, res.score, res.breakdown))
    scored.sort(key=lambda m: m.game_creation or 0, reverse=True)
    render_rollup(summarize(scored), console)


@app.command()
def champion(
    name: str = typer.Argument(..., help="Champion name as in match data, e.g. Ahri"),
    role: str = typer.Option("ALL", help="TOP|JUNGLE|MID|ADC|SUPPORT|ALL"),
    rank: str = typer.Option("ALL", help="Minimum tier, e.g. EMERALD"),
):
    """Print the aggregated build, rune and matchup picture for one champion."""
    detail = champion_detail(Store(), name, role, rank)
    if detail is None:
        rprint(f"[yellow]No data for {name} ({role}, {rank}+).[/yellow]")
        raise typer.Exit(code=1)
    render_champion_detail(detail, console)


@app.command()
def config(
    action: str = typer.Argument("show", help="show|edit|path"),
):
    if action == "show":
        rprint(Path(config_path()).read_text())
    elif action == "path":
        rprint(config_path())
    elif action == "edit":
        opened = open_config_in_editor()
        if not opened:
            rprint("[yellow]Could not open editor. Edit the file manually:[/yellow]")
            rprint(config_path())
    else:
        rprint("[red]Unknown action. Use show|edit|path[/red]")


@app.command()
def doctor():
    cfg = get_config()
    store = Store()
    ok = True
    rprint("[bold]Config[/bold]", config_path())
    if not Path(config_path()).exists():
        rprint("[red]Missing config file[/red]")
        ok = False
    if get_api_key(cfg):
        rprint("[green]API key present[/green]")
    else:
        rprint("[yellow]No API key found (set RIOT_API_KEY or run auth).[/yellow]")
    rprint("[bold]DB[/bold]", store.db_path)
    rprint(f"[green]{store.count_scanned()} matches scanned[/green]")
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    app()
