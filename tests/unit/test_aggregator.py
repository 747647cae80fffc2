"""Tests for fan-out and merging of provider results."""

from __future__ import annotations

import asyncio

from context_client.aggregator import ResultAggregator, observe_annotations, observe_items
from context_client.errors import ProviderError
from context_client.metrics import (
    OUTCOME_EMPTY,
    OUTCOME_FAILURE,
    OUTCOME_NOT_APPLICABLE,
    OUTCOME_SUCCESS,
    ProviderMetricsCollector,
)
from context_client.models import Annotation, AnnotationsParams, ItemsParams
from context_client.streams import from_source
from tests.unit.helpers.factories import (
    Collector,
    RecordingLogger,
    item,
    mock_provider_client,
    provider_list_stream,
    titles,
    with_settings,
)

PARAMS = ItemsParams(uri="file:///a.go")


def _delayed(result, delay: float):
    async def respond(params, settings):
        await asyncio.sleep(delay)
        return result

    return respond


class TestObserveItems:
    async def test_union_in_provider_order_despite_failure(self):
        """Test union in provider order despite failure."""
        logger = RecordingLogger()
        a = mock_provider_client("https://a", items=[item("A")])
        b = mock_provider_client("https://b", side_effect=ProviderError("down"))
        c = mock_provider_client("https://c", items=[item("C1"), item("C2")])
        providers = provider_list_stream([with_settings(a), with_settings(b), with_settings(c)])

        result = await observe_items(providers, PARAMS, logger=logger, emit_partial=False).first()

        assert titles(result) == ["A", "C1", "C2"]
        assert logger.contains("Error getting items from provider https://b: provider error")
        assert not logger.contains("provider https://a")

    async def test_partial_snapshots_grow(self):
        """Test partial snapshots grow."""
        a = mock_provider_client("https://a", side_effect=_delayed([item("A")], 0.0))
        b = mock_provider_client("https://b", side_effect=_delayed([item("B")], 0.05))
        providers = provider_list_stream([with_settings(a), with_settings(b)])

        collector = Collector(observe_items(providers, PARAMS))
        await collector.wait_for_completion()

        assert [titles(v) for v in collector.values] == [["A"], ["A", "B"]]

    async def test_partial_snapshots_keep_provider_order(self):
        """Test partial snapshots keep provider order."""
        a = mock_provider_client("https://a", side_effect=_delayed([item("A")], 0.05))
        b = mock_provider_client("https://b", side_effect=_delayed([item("B")], 0.0))
        providers = provider_list_stream([with_settings(a), with_settings(b)])

        collector = Collector(observe_items(providers, PARAMS))
        await collector.wait_for_completion()

        assert [titles(v) for v in collector.values] == [["B"], ["A", "B"]]

    async def test_without_partial_only_settled_value(self):
        """Test without partial only settled value."""
        a = mock_provider_client("https://a", side_effect=_delayed([item("A")], 0.0))
        b = mock_provider_client("https://b", side_effect=_delayed([item("B")], 0.03))
        providers = provider_list_stream([with_settings(a), with_settings(b)])

        collector = Collector(observe_items(providers, PARAMS, emit_partial=False))
        await collector.wait_for_completion()

        assert [titles(v) for v in collector.values] == [["A", "B"]]

    async def test_empty_provider_list_emits_empty(self):
        """Test empty provider list emits empty."""
        assert await observe_items(provider_list_stream([]), PARAMS).first() == []

    async def test_consecutive_equal_snapshots_are_dropped(self):
        """Test consecutive equal snapshots are dropped."""
        a = mock_provider_client("https://a", items=[item("A")])
        providers = provider_list_stream([with_settings(a)], [with_settings(a)])

        collector = Collector(observe_items(providers, PARAMS))
        await collector.wait_for_completion()

        assert [titles(v) for v in collector.values] == [["A"]]

    async def test_new_provider_list_cancels_previous_calls(self):
        """Test new provider list cancels previous calls."""
        cancelled = asyncio.Event()

        async def hang(params, settings):
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        slow = mock_provider_client("https://slow", side_effect=hang)
        fast = mock_provider_client("https://fast", items=[item("F")])
        outer_values = asyncio.Queue()
        outer_values.put_nowait([with_settings(slow)])

        async def lists():
            while True:
                yield await outer_values.get()

        collector = Collector(observe_items(from_source(lists), PARAMS))
        await asyncio.sleep(0.01)
        outer_values.put_nowait([with_settings(fast)])
        await collector.wait_for_values(1)

        assert titles(collector.values[0]) == ["F"]
        await asyncio.wait_for(cancelled.wait(), 1)
        collector.subscription.unsubscribe()

    async def test_settings_passed_to_provider(self):
        """Test settings passed to provider."""
        a = mock_provider_client("https://a", items=[])
        providers = provider_list_stream([with_settings(a, {"token": "x"})])

        await observe_items(providers, PARAMS, emit_partial=False).first()

        a.items.assert_awaited_once_with(PARAMS, {"token": "x"})


class TestObserveAnnotations:
    async def test_not_applicable_contributes_nothing(self):
        """Test not applicable contributes nothing."""
        logger = RecordingLogger()
        annotation = Annotation.model_validate({"uri": "file:///a.go", "item": {"title": "A"}})
        a = mock_provider_client("https://a", annotations=None)
        b = mock_provider_client("https://b", annotations=[annotation])
        providers = provider_list_stream([with_settings(a), with_settings(b)])
        params = AnnotationsParams(uri="file:///a.go", content="x")

        result = await observe_annotations(
            providers, params, logger=logger, emit_partial=False
        ).first()

        assert result == [annotation]
        assert logger.contains("Provider https://a does not apply to this resource")
        assert not logger.contains("Error getting")


class TestAggregatorMetrics:
    async def test_outcomes_are_counted(self):
        """Test outcomes are counted."""
        metrics = ProviderMetricsCollector()
        aggregator = ResultAggregator(metrics=metrics)
        ok = mock_provider_client("https://metrics-ok", items=[item("A")])
        empty = mock_provider_client("https://metrics-empty", items=[])
        broken = mock_provider_client("https://metrics-broken", side_effect=RuntimeError("x"))
        providers = provider_list_stream(
            [with_settings(ok), with_settings(empty), with_settings(broken)]
        )

        await aggregator.observe_items(providers, PARAMS, emit_partial=False).first()

        assert metrics.call_count("https://metrics-ok", "items", OUTCOME_SUCCESS) == 1
        assert metrics.call_count("https://metrics-empty", "items", OUTCOME_EMPTY) == 1
        assert metrics.call_count("https://metrics-broken", "items", OUTCOME_FAILURE) == 1

    async def test_not_applicable_is_counted(self):
        """Test not applicable is counted."""
        metrics = ProviderMetricsCollector()
        aggregator = ResultAggregator(metrics=metrics)
        gated = mock_provider_client("https://metrics-gated", annotations=None)
        providers = provider_list_stream([with_settings(gated)])

        await aggregator.observe_annotations(
            providers, AnnotationsParams(uri="file:///a", content=""), emit_partial=False
        ).first()

        assert (
            metrics.call_count("https://metrics-gated", "annotations", OUTCOME_NOT_APPLICABLE)
            == 1
        )

    async def test_disabled_metrics_record_nothing(self):
        """Test disabled metrics record nothing."""
        metrics = ProviderMetricsCollector(enabled=False)
        a = mock_provider_client("https://metrics-off", items=[item("A")])

        await ResultAggregator(metrics=metrics).observe_items(
            provider_list_stream([with_settings(a)]), PARAMS
        ).first()

        assert metrics.summary() == {}
