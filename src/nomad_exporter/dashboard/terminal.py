"""Terminal views using Rich: one-shot tables, a live dashboard, and JSON lines."""

from __future__ import annotations

import json
import logging
import sys
import time
from collections import deque
from typing import Deque, List, Optional, Tuple

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from nomad_exporter import __version__
from nomad_exporter.collector.exporter import NomadExporter
from nomad_exporter.dashboard.snapshot import ScrapeSnapshot
from nomad_exporter.metrics import MIB

log = logging.getLogger(__name__)

HISTORY_SIZE = 30
MAX_CONSECUTIVE_FAILURES = 5


def take_snapshot(exporter: NomadExporter) -> ScrapeSnapshot:
    families = exporter.scrape()
    error = str(exporter.last_error) if exporter.last_error else None
    return ScrapeSnapshot.from_families(families, error=error)


def _color_for_ratio(value: float) -> str:
    if value < 0.5:
        return "green"
    elif value < 0.8:
        return "yellow"
    return "red"


def _trend_arrow(current: float, previous: float, better_when: str = "higher") -> str:
    if current == previous:
        return "[dim]-[/dim]"
    going_up = current > previous
    if better_when == "lower":
        color = "red" if going_up else "green"
    else:
        color = "green" if going_up else "red"
    arrow = "^" if going_up else "v"
    return f"[{color}]{arrow}[/{color}]"


def _evaluate_health(snapshot: ScrapeSnapshot) -> Tuple[str, str]:
    """(status_text, rich_style) for the header."""
    if not snapshot.up:
        return "NOMAD UNREACHABLE", "bold red"

    problems = []
    if snapshot.error:
        problems.append("SCRAPE INCOMPLETE")
    down = len(snapshot.nodes) - snapshot.nodes_ready
    if down:
        problems.append(f"{down} NODE(S) NOT READY")
    if snapshot.zombies:
        problems.append(f"{snapshot.zombies} ZOMBIE ALLOC(S)")
    failed = snapshot.allocations.get("failed", 0) + snapshot.allocations.get("lost", 0)
    if failed:
        problems.append(f"{failed} FAILED/LOST ALLOC(S)")
    if snapshot.evals.get("blocked", 0):
        problems.append("BLOCKED EVALS")

    if not problems:
        return "HEALTHY", "bold green"
    severity = "bold yellow" if len(problems) == 1 else "bold red"
    return " | ".join(problems), severity


def _gib(value: Optional[float]) -> str:
    if value is None:
        return "-"
    return f"{value / (MIB * 1024):.1f}"


def _node_table(snapshot: ScrapeSnapshot) -> Table:
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Node")
    table.add_column("DC", style="dim")
    table.add_column("Status")
    table.add_column("Version", style="dim")
    table.add_column("Memory GiB", justify="right")
    table.add_column("CPU MHz", justify="right")

    for node in snapshot.nodes:
        status_color = "green" if node.status == "ready" else "red"
        status = f"[{status_color}]{node.status}[/{status_color}]"
        if node.drain:
            status += " [yellow](draining)[/yellow]"

        memory = "-"
        if node.memory_total_bytes:
            ratio = (node.memory_used_bytes or 0) / node.memory_total_bytes
            memory = f"[{_color_for_ratio(ratio)}]{_gib(node.memory_used_bytes)}[/] / {_gib(node.memory_total_bytes)}"
        cpu = "-"
        if node.cpu_total_mhz:
            ratio = (node.cpu_used_mhz or 0) / node.cpu_total_mhz
            cpu = f"[{_color_for_ratio(ratio)}]{node.cpu_used_mhz or 0:.0f}[/] / {node.cpu_total_mhz:.0f}"

        table.add_row(node.name, node.datacenter, status, node.version, memory, cpu)
    return table


def _counts_table(title: str, counts: dict) -> Table:
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column(title, style="dim")
    table.add_column("Count", justify="right")
    for key in sorted(counts):
        table.add_row(key or "(none)", str(counts[key]))
    if not counts:
        table.add_row("[dim]none[/dim]", "")
    return table


def _cluster_table(snapshot: ScrapeSnapshot, prev: Optional[ScrapeSnapshot]) -> Table:
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Cluster", style="dim")
    table.add_column("Value", justify="right")
    table.add_column("", width=2)

    def fmt(value) -> str:
        return "-" if value is None else str(value)

    running_trend = _trend_arrow(snapshot.allocations_running, prev.allocations_running) if prev else ""

    table.add_row("Leader", "yes" if snapshot.is_leader else "no", "")
    table.add_row("Servers", fmt(snapshot.cluster_servers), "")
    table.add_row("Nodes ready", f"{snapshot.nodes_ready}/{len(snapshot.nodes)}", "")
    table.add_row("Jobs", fmt(snapshot.jobs_total), "")
    table.add_row("Running allocations", str(snapshot.allocations_running), running_trend)
    table.add_row("Zombie allocations", str(snapshot.zombies), "")
    table.add_row("Client errors (total)", str(snapshot.client_errors), "")
    if snapshot.raft_applied_index is not None:
        table.add_row("Raft applied index", f"{snapshot.raft_applied_index:.0f}", "")
    return table


def _latency_table(snapshot: ScrapeSnapshot) -> Table:
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Query", style="dim")
    table.add_column("Mean", justify="right")
    for query in sorted(snapshot.latency):
        table.add_row(query, f"{snapshot.latency[query] * 1000:.1f}ms")
    return table


def build_display(
    snapshot: ScrapeSnapshot,
    source_name: str,
    history: Deque[ScrapeSnapshot],
) -> Layout:
    layout = Layout()
    prev = history[-2] if len(history) > 1 else None

    status_text, status_style = _evaluate_health(snapshot)
    header = Text(f"  nomad-exporter v{__version__}  |  {source_name}", style="bold white on blue")
    header.append(f"\n  {snapshot.timestamp.strftime('%Y-%m-%d %H:%M:%S')}  ", style="dim")
    header.append(f"  STATUS: {status_text}", style=status_style)

    footer = Text("  Press Ctrl+C to stop", style="dim")
    if snapshot.error:
        footer = Text(f"  {snapshot.error}", style="yellow")

    layout.split_column(
        Layout(Panel(header, border_style="blue"), size=4),
        Layout(name="top"),
        Layout(name="bottom"),
        Layout(Panel(footer, border_style="dim"), size=3),
    )
    layout["top"].split_row(
        Layout(Panel(_cluster_table(snapshot, prev), title="Cluster", border_style="cyan")),
        Layout(Panel(_node_table(snapshot), title="Nodes", border_style="cyan"), ratio=2),
    )
    layout["bottom"].split_row(
        Layout(Panel(_counts_table("Allocation status", snapshot.allocations), title="Allocations", border_style="cyan")),
        Layout(Panel(_counts_table("Eval status", snapshot.evals), title="Evaluations", border_style="cyan")),
        Layout(Panel(_counts_table("Deployment status", snapshot.deployments), title="Deployments", border_style="cyan")),
        Layout(Panel(_latency_table(snapshot), title="API latency", border_style="cyan")),
    )
    return layout


def render_once(exporter: NomadExporter, console: Optional[Console] = None) -> ScrapeSnapshot:
    """Single scrape printed as plain tables. Used by `show`."""
    console = console or Console()
    snapshot = take_snapshot(exporter)

    status_text, status_style = _evaluate_health(snapshot)
    console.print(f"\n[bold]{exporter.api.name()}[/bold]  [{status_style}]{status_text}[/{status_style}]")
    if snapshot.error:
        console.print(f"[yellow]{snapshot.error}[/yellow]")
    if not snapshot.up:
        return snapshot

    console.print(_cluster_table(snapshot, None))
    console.print(_node_table(snapshot))
    tables: List[Table] = [
        _counts_table("Allocation status", snapshot.allocations),
        _counts_table("Task state", snapshot.tasks),
        _counts_table("Eval status", snapshot.evals),
        _counts_table("Deployment status", snapshot.deployments),
    ]
    for table in tables:
        console.print(table)
    console.print(_latency_table(snapshot))
    console.print()
    return snapshot


def run_dashboard(exporter: NomadExporter, refresh_interval: float = 5.0):
    console = Console()
    source_name = exporter.api.name()
    history: Deque[ScrapeSnapshot] = deque(maxlen=HISTORY_SIZE)

    log.info("Starting dashboard: source=%s, refresh=%.1fs", source_name, refresh_interval)
    console.print(f"\n[bold]Starting nomad-exporter v{__version__}...[/bold]")
    console.print(f"Source: {source_name}")
    console.print(f"Refresh: every {refresh_interval}s")
    console.print()
    time.sleep(1)

    consecutive_failures = 0

    with Live(console=console, refresh_per_second=1, screen=True) as live:
        try:
            while True:
                snapshot = take_snapshot(exporter)
                if not snapshot.up:
                    consecutive_failures += 1
                    log.warning("Scrape failed (attempt %d/%d): %s",
                                consecutive_failures, MAX_CONSECUTIVE_FAILURES, snapshot.error)
                    if consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
                        log.error("Lost connection after %d retries, exiting", MAX_CONSECUTIVE_FAILURES)
                        break
                    error_text = Text(
                        f"  Connection error (retry {consecutive_failures}/{MAX_CONSECUTIVE_FAILURES}): {snapshot.error}",
                        style="bold red",
                    )
                    live.update(Panel(error_text, border_style="red"))
                    time.sleep(refresh_interval)
                    continue

                consecutive_failures = 0
                history.append(snapshot)
                live.update(build_display(snapshot, source_name, history))
                time.sleep(refresh_interval)
        except KeyboardInterrupt:
            pass

    if consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
        console.print(f"\n[bold red]Lost connection after {MAX_CONSECUTIVE_FAILURES} retries.[/bold red]")
    else:
        console.print(f"\n[dim]Dashboard stopped after {len(history)} scrapes.[/dim]")


def run_jsonl(exporter: NomadExporter, refresh_interval: float = 5.0):
    """One JSON object per scrape per line, for log pipelines."""
    source_name = exporter.api.name()
    log.info("Starting JSONL output: source=%s, refresh=%.1fs", source_name, refresh_interval)

    consecutive_failures = 0

    try:
        while True:
            snapshot = take_snapshot(exporter)
            if snapshot.up:
                consecutive_failures = 0
            else:
                consecutive_failures += 1
                log.warning("Scrape failed (attempt %d/%d): %s",
                            consecutive_failures, MAX_CONSECUTIVE_FAILURES, snapshot.error)
                if consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
                    log.error("Lost connection after %d retries, exiting", MAX_CONSECUTIVE_FAILURES)
                    break

            record = snapshot.summary()
            record["source"] = source_name
            sys.stdout.write(json.dumps(record) + "\n")
            sys.stdout.flush()
            time.sleep(refresh_interval)
    except KeyboardInterrupt:
        pass
