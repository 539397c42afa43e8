from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from rich import box
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .aggregator import STATUS_FAILED, STATUS_PROCESSED, ProcessResult
from .details import ChampionDetail
from .scoring import ScoreResult

GRADE_STYLES = {"S+": "bold magenta", "S": "magenta", "A": "green", "B": "cyan", "C": "yellow", "D": "red"}
HEAT_CHARS = " .:*#"


def _console(console: Optional[Console]) -> Console:
    return console or Console()


def _z_style(z: float) -> str:
    if z >= 1:
        return "green"
    if z <= -1:
        return "red"
    return "white"


def render_score(result: ScoreResult, title: str = "Score", console: Optional[Console] = None) -> None:
    header = Text.assemble(
        (f" {result.score} ", "bold white on black"),
        ("  ", ""),
        (result.grade, GRADE_STYLES.get(result.grade, "white")),
        ("  |  ", "cyan"),
        (result.comparison, "cyan"),
    )
    table = Table(box=box.SIMPLE)
    table.add_column("Metric")
    table.add_column("z", justify="right")
    for metric, z in result.breakdown.items():
        table.add_row(metric, Text(f"{z:+.2f}", style=_z_style(z)))
    footer = Text(f"contribution {result.contribution:+.3f}  |  matchup sample {result.sample_size}", style="dim")
    _console(console).print(Panel(Group(header, table, footer), title=title, box=box.ROUNDED))


def render_batch(results: Iterable[ProcessResult], console: Optional[Console] = None) -> None:
    table = Table(title="Ingest", box=box.ROUNDED)
    table.add_column("Match")
    table.add_column("Status")
    table.add_column("Patch")
    table.add_column("Reason")
    for r in results:
        style = "green" if r.status == STATUS_PROCESSED else ("red" if r.status == STATUS_FAILED else "yellow")
        table.add_row(r.match_id, Text(r.status, style=style), r.patch or "-", r.reason or "")
    _console(console).print(table)


def _wr_table(title: str, rows: Iterable[Dict[str, Any]], label: str, key) -> Table:
    t = Table(title=title, box=box.SIMPLE)
    t.add_column(label)
    t.add_column("Games", justify="right")
    t.add_column("WR", justify="right")
    for r in rows:
        t.add_row(key(r), str(r["matches"]), f"{r['win_rate']:.1f}%")
    return t


def render_champion_detail(detail: ChampionDetail, console: Optional[Console] = None) -> None:
    c = _console(console)
    head = Text.assemble(
        (f" {detail.champion} ", "bold white on black"),
        (f"  {detail.role}  {detail.rank}+  patch {detail.patch}  ", "cyan"),
        (f"Tier {detail.tier}", GRADE_STYLES.get(detail.tier.rstrip("+"), "white")),
    )
    rates = Text(
        f"WR {detail.win_rate:.2f}%  PR {detail.pick_rate:.2f}%  BR {detail.ban_rate:.2f}%  "
        f"({detail.matches} games of {detail.total_matches})"
    )
    c.print(Panel(Group(head, rates), box=box.ROUNDED))

    data = detail.to_dict()
    c.print(_wr_table("Core builds", data["item_paths"][:5], "Items", lambda r: "-".join(map(str, r["path"]))))
    for slot in ("slot4", "slot5", "slot6"):
        if data[slot]:
            c.print(_wr_table(slot, data[slot], "Item", lambda r: str(r["id"])))
    c.print(_wr_table("Starting items", data["starting_items"], "Items", lambda r: "-".join(map(str, r["items"]))))
    c.print(_wr_table("Skill orders", data["skill_orders"], "Order", lambda r: r["path"]))
    c.print(
        _wr_table(
            "Rune pages",
            data["rune_pages"],
            "Page",
            lambda r: f"{r['primary_style']}/{r['sub_style']} " + "-".join(map(str, r["perks"])),
        )
    )
    c.print(_wr_table("Hardest matchups", data["matchups"][:5], "Opponent", lambda r: r["opponent"]))
    c.print(_wr_table("Duos", data["duos"][:5], "Partner", lambda r: f"{r['partner']} ({r['partner_role']})"))


def _heat_row(heatmap: Iterable[Dict[str, Any]]) -> str:
    return "".join(HEAT_CHARS[d["intensity"]] for d in heatmap)


def render_rollup(summary: Dict[str, Any], console: Optional[Console] = None) -> None:
    c = _console(console)
    champs = Table(title="Champion pool", box=box.SIMPLE)
    for col in ("Champion", "Games", "WR", "KDA"):
        champs.add_column(col, justify="left" if col == "Champion" else "right")
    for ch in summary["champions"]:
        champs.add_row(ch["champion"], str(ch["matches"]), f"{100 * ch['wins'] / ch['matches']:.0f}%", f"{ch['kda']:.2f}")
    c.print(champs)

    mates = Table(title="Teammates (last 20)", box=box.SIMPLE)
    for col in ("Name", "Games", "WR"):
        mates.add_column(col)
    for t in summary["teammates"]:
        mates.add_row(f"{t['name']}#{t['tag']}", str(t["matches"]), f"{t['win_rate']}%")
    c.print(mates)

    perf = summary["performance"]
    prof = Table(title=f"Profile | {perf.get('consistency', 'Average')}", box=box.SIMPLE)
    prof.add_column("Axis")
    prof.add_column("Value", justify="right")
    for axis in ("combat", "objectives", "vision", "farming", "survival"):
        prof.add_row(axis, f"{perf[axis]:.0f}")
    c.print(prof)

    c.print(Panel(Text(_heat_row(summary["heatmap"]), style="green"), title="Activity (120d)", box=box.ROUNDED))
