"""Evaluation counts by status."""

from __future__ import annotations

from nomad_exporter.api.base import NomadAPIError
from nomad_exporter.collector.base import CollectionError, ScrapeContext, SubCollector
from nomad_exporter.config import ExporterConfig


class EvaluationCollector(SubCollector):

    def name(self) -> str:
        return "eval"

    def enabled(self, config: ExporterConfig) -> bool:
        return config.eval_metrics

    def collect(self, ctx: ScrapeContext) -> None:
        evals = ctx.accumulators.evals
        evals.clear()

        if not ctx.should_read:
            return

        try:
            evaluations = ctx.api.list_evaluations(ctx.options)
        except NomadAPIError as e:
            raise CollectionError("eval", "could not get evaluation metrics", e) from e

        for evaluation in evaluations:
            evals.labels(evaluation.status).inc()

        ctx.sink.extend(evals.collect())
