"""
Deployment progress.

One count per deployment, then five gauges per task group describing
how far the rollout got. All six series are cleared before each
scrape so finished or garbage-collected deployments drop out.
"""

from __future__ import annotations

from nomad_exporter.api.base import NomadAPIError
from nomad_exporter.collector.base import CollectionError, ScrapeContext, SubCollector
from nomad_exporter.config import ExporterConfig
from nomad_exporter.metrics import collect_all


def _bool_label(value: bool) -> str:
    return "true" if value else "false"


class DeploymentCollector(SubCollector):

    def name(self) -> str:
        return "deployment"

    def enabled(self, config: ExporterConfig) -> bool:
        return config.deployment_metrics

    def collect(self, ctx: ScrapeContext) -> None:
        acc = ctx.accumulators
        for metric in acc.deployment_metrics():
            metric.clear()

        if not ctx.should_read:
            return

        try:
            deployments = ctx.api.list_deployments(ctx.options)
        except NomadAPIError as e:
            raise CollectionError("deployment", "could not get deployments", e) from e

        for dep in deployments:
            job_version = str(dep.job_version)
            acc.deployments.labels(dep.status, dep.job_id, job_version).inc()

            for group_name, group in dep.task_groups.items():
                labels = (
                    dep.status,
                    dep.job_id,
                    job_version,
                    group_name,
                    _bool_label(group.promoted),
                    _bool_label(group.auto_revert),
                )
                acc.deployment_desired_canaries.labels(*labels).set(group.desired_canaries)
                acc.deployment_desired_total.labels(*labels).set(group.desired_total)
                acc.deployment_placed_allocs.labels(*labels).set(group.placed_allocs)
                acc.deployment_healthy_allocs.labels(*labels).set(group.healthy_allocs)
                acc.deployment_unhealthy_allocs.labels(*labels).set(group.unhealthy_allocs)

        ctx.sink.extend(collect_all(acc.deployment_metrics()))
