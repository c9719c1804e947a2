"""
nomad-exporter entry point.

Usage:
    nomad-exporter serve                          Expose /metrics on :9172
    nomad-exporter --mock show                    One-shot scrape of a simulated cluster
    nomad-exporter --address http://nomad:4646 watch --output jsonl
    nomad-exporter probe                          Exit 0 if the leader answers
"""

from __future__ import annotations

import logging

import click
from prometheus_client import disable_created_metrics

from nomad_exporter import __version__
from nomad_exporter.api.base import NomadAPI
from nomad_exporter.api.http_client import NomadHTTPClient
from nomad_exporter.api.mock_client import MockNomadAPI
from nomad_exporter.collector.exporter import NomadExporter
from nomad_exporter.config import DEFAULT_LISTEN_PORT, DEFAULT_NOMAD_ADDRESS, ExporterConfig

log = logging.getLogger("nomad_exporter")


def _build_api(mock: bool, seed: int, config: ExporterConfig) -> NomadAPI:
    if mock:
        return MockNomadAPI(seed=seed)
    return NomadHTTPClient(
        address=config.address,
        token=config.token,
        timeout_seconds=config.timeout,
        ca_file=config.ca_file,
        verify_tls=config.verify_tls,
    )


def _build_exporter(ctx: click.Context) -> NomadExporter:
    config: ExporterConfig = ctx.obj["config"]
    api = _build_api(ctx.obj["mock"], ctx.obj["seed"], config)
    log.info("Using %s", api.name())
    return NomadExporter(api, config)


@click.group()
@click.version_option(version=__version__, prog_name="nomad-exporter")
@click.option("--mock", is_flag=True, default=False, help="Use a simulated Nomad cluster")
@click.option("--seed", default=42, show_default=True, help="Seed for the simulated cluster")
@click.option("--address", envvar="NOMAD_ADDR", default=DEFAULT_NOMAD_ADDRESS, show_default=True,
              help="Nomad agent URL")
@click.option("--token", envvar="NOMAD_TOKEN", default=None, help="ACL token sent as X-Nomad-Token")
@click.option("--ca-file", envvar="NOMAD_CACERT", default=None, type=click.Path(exists=True, dir_okay=False),
              help="CA bundle used to verify the Nomad agent")
@click.option("--insecure", is_flag=True, default=False, help="Skip TLS verification")
@click.option("--timeout", default=10.0, show_default=True, help="Per-request timeout in seconds")
@click.option("--allow-stale-reads", is_flag=True, default=False,
              help="Read cluster-wide state even when the agent is not the leader")
@click.option("--node-metrics/--no-node-metrics", default=True, show_default=True)
@click.option("--allocation-metrics/--no-allocation-metrics", default=True, show_default=True)
@click.option("--allocation-stats-metrics/--no-allocation-stats-metrics", default=True, show_default=True,
              help="Per-node capacity and usage (three extra calls per node)")
@click.option("--peer-metrics/--no-peer-metrics", default=True, show_default=True)
@click.option("--serf-metrics/--no-serf-metrics", default=True, show_default=True,
              help="Raft stats of the queried agent")
@click.option("--job-metrics/--no-job-metrics", default=True, show_default=True)
@click.option("--eval-metrics/--no-eval-metrics", default=True, show_default=True)
@click.option("--deployment-metrics/--no-deployment-metrics", default=True, show_default=True)
@click.option("--concurrency", default=20, show_default=True, help="Max concurrent node detail fetches")
@click.option("--allocation-concurrency", default=50, show_default=True,
              help="Max concurrent allocation detail fetches")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging")
@click.pass_context
def cli(ctx, mock: bool, seed: int, address: str, token: str, ca_file: str, insecure: bool,
        timeout: float, allow_stale_reads: bool, node_metrics: bool, allocation_metrics: bool,
        allocation_stats_metrics: bool, peer_metrics: bool, serf_metrics: bool, job_metrics: bool,
        eval_metrics: bool, deployment_metrics: bool, concurrency: int, allocation_concurrency: int,
        verbose: bool):
    """nomad-exporter - Prometheus exporter for HashiCorp Nomad."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)
    disable_created_metrics()

    config = ExporterConfig(
        address=address,
        token=token,
        ca_file=ca_file,
        verify_tls=not insecure,
        timeout=timeout,
        allow_stale_reads=allow_stale_reads,
        node_metrics=node_metrics,
        allocation_metrics=allocation_metrics,
        allocation_stats_metrics=allocation_stats_metrics,
        peer_metrics=peer_metrics,
        serf_metrics=serf_metrics,
        job_metrics=job_metrics,
        eval_metrics=eval_metrics,
        deployment_metrics=deployment_metrics,
        concurrency=concurrency,
        allocation_concurrency=allocation_concurrency,
    )
    try:
        config.validate()
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    ctx.ensure_object(dict)
    ctx.obj["mock"] = mock
    ctx.obj["seed"] = seed
    ctx.obj["config"] = config


@cli.command()
@click.option("--listen-address", default="0.0.0.0", show_default=True, help="Address to bind")
@click.option("--port", default=DEFAULT_LISTEN_PORT, show_default=True, help="Port to bind")
@click.pass_context
def serve(ctx, listen_address: str, port: int):
    """Serve /metrics and /health for Prometheus."""
    from nomad_exporter.server import serve_forever

    config: ExporterConfig = ctx.obj["config"]
    config.listen_address = listen_address
    config.listen_port = port

    exporter = _build_exporter(ctx)
    serve_forever(exporter, host=config.listen_address, port=config.listen_port)


@cli.command()
@click.pass_context
def probe(ctx):
    """Check that the Nomad leader endpoint answers. Exit code 0 or 1."""
    exporter = _build_exporter(ctx)
    try:
        healthy = exporter.probe()
    finally:
        exporter.close()

    click.echo("OK" if healthy else "UNHEALTHY")
    ctx.exit(0 if healthy else 1)


@cli.command()
@click.pass_context
def show(ctx):
    """Run a single scrape and print the results as tables."""
    from nomad_exporter.dashboard.terminal import render_once

    exporter = _build_exporter(ctx)
    try:
        snapshot = render_once(exporter)
    finally:
        exporter.close()

    if not snapshot.up:
        ctx.exit(1)


@cli.command()
@click.option("--refresh", default=5.0, show_default=True, help="Seconds between scrapes")
@click.option("--output", type=click.Choice(["tui", "jsonl"]), default="tui",
              help="Output mode: tui (Rich dashboard) or jsonl (one JSON line per scrape)")
@click.pass_context
def watch(ctx, refresh: float, output: str):
    """Scrape repeatedly and show a live dashboard."""
    from nomad_exporter.dashboard.terminal import run_dashboard, run_jsonl

    exporter = _build_exporter(ctx)
    runner = run_jsonl if output == "jsonl" else run_dashboard
    try:
        runner(exporter, refresh_interval=refresh)
    finally:
        exporter.close()


if __name__ == "__main__":
    cli()
