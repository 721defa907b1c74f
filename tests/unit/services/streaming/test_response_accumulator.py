"""Unit tests for ResponseAccumulator."""

import pytest

from chat_client.services.streaming.accumulator import (
    ResponseAccumulator,
    timing_write_back_payload,
)
from chat_client.services.streaming.events import (
    ContentFrame,
    DoneFrame,
    MetadataFrame,
    MetaFrame,
    ModelInfoFrame,
    SearchDomainFrame,
    ServerErrorFrame,
    SourcesFrame,
    StatusFrame,
    StatusType,
)
from chat_client.services.streaming.indicators import IndicatorChannel, IndicatorPhase
from chat_client.services.streaming.timing import ThinkingVariant
from tests.fixtures.stream_fixtures import (
    FakeClock,
    InMemoryMessageStore,
    create_test_context,
)


class TestContentHandling:
    """Test content fragments and first-content timing."""

    def test_content_concatenated_in_order(self):
        ctx = create_test_context()
        accumulator = ResponseAccumulator()

        for text in ("Hel", "lo", ", world"):
            accumulator.on_content(ctx, ContentFrame(text=text))

        assert ctx.draft.content == "Hello, world"
        assert ctx.observed_content is True

    def test_first_fragment_records_timing_once(self):
        clock = FakeClock(start=100.0)
        ctx = create_test_context(clock=clock)
        accumulator = ResponseAccumulator()

        clock.advance(2.0)
        accumulator.on_content(ctx, ContentFrame(text="a"))
        clock.advance(5.0)
        accumulator.on_content(ctx, ContentFrame(text="b"))

        assert ctx.draft.metadata["thinkingDurationMs"] == 2000.0
        assert ctx.draft.metadata["thoughtDurationLabel"] == "Thought for 2.0 seconds"
        assert ctx.timing.recorded.elapsed_ms == 2000.0

    def test_empty_fragment_ignored(self):
        ctx = create_test_context()
        accumulator = ResponseAccumulator()

        accumulator.on_content(ctx, ContentFrame(text=""))

        assert ctx.observed_content is False
        assert ctx.timing.recorded is None

    def test_first_fragment_clears_thinking_and_retires_search(self):
        ctx = create_test_context()
        accumulator = ResponseAccumulator()
        accumulator.on_model_info(ctx, ModelInfoFrame(reasoning_effort="high"))
        accumulator.on_status(ctx, StatusFrame(StatusType.SEARCH_START))
        accumulator.on_status(ctx, StatusFrame(StatusType.CODE_EXECUTION_START))

        accumulator.on_content(ctx, ContentFrame(text="x"))

        assert ctx.thinking.visible is False
        assert ctx.indicators.get(IndicatorChannel.WEB_SEARCH).phase is IndicatorPhase.COMPLETE
        assert ctx.indicators.get(IndicatorChannel.CODE_EXECUTION).phase is IndicatorPhase.ACTIVE

    def test_write_back_queued_until_promotion(self):
        ctx = create_test_context()
        accumulator = ResponseAccumulator(InMemoryMessageStore())

        accumulator.on_content(ctx, ContentFrame(text="x"))

        assert ctx.pending_write_back is True
        assert accumulator.pending_write_backs == 0


class TestRoutingMetadata:
    """Test model_info and effort handling."""

    def test_model_info_merges_routing_fields_only(self):
        ctx = create_test_context()
        accumulator = ResponseAccumulator()

        accumulator.on_model_info(
            ctx, ModelInfoFrame(model="m-1", resolved_family="fam", speed_mode_used="fast")
        )
        accumulator.on_model_info(ctx, ModelInfoFrame(model="m-2"))

        assert ctx.draft.metadata == {
            "model": "m-2",
            "resolvedFamily": "fam",
            "speedModeUsed": "fast",
        }

    def test_effort_escalation_promotes_indicator(self):
        ctx = create_test_context()
        accumulator = ResponseAccumulator()

        accumulator.on_model_info(ctx, ModelInfoFrame(reasoning_effort="low"))
        assert ctx.thinking.variant is ThinkingVariant.THINKING

        accumulator.on_model_info(ctx, ModelInfoFrame(reasoning_effort="high"))
        assert ctx.thinking.variant is ThinkingVariant.EXTENDED

        accumulator.on_model_info(ctx, ModelInfoFrame(reasoning_effort="low"))
        assert ctx.thinking.variant is ThinkingVariant.EXTENDED


class TestMetaHandling:
    """Test promotion and server metadata merging."""

    @pytest.mark.asyncio
    async def test_meta_promotes_and_writes_back_pending_timing(self):
        clock = FakeClock(start=0.0)
        ctx = create_test_context(clock=clock)
        store = InMemoryMessageStore()
        accumulator = ResponseAccumulator(store)

        clock.advance(1.5)
        accumulator.on_content(ctx, ContentFrame(text="Hi"))
        accumulator.on_meta(
            ctx,
            MetaFrame(
                assistant_message_row_id="abc",
                user_message_row_id="u-1",
                metadata={"thinkingDurationMs": 1500.0, "thoughtDurationSeconds": 1.5,
                          "thoughtDurationLabel": "Thought for 1.5 seconds",
                          "thinking": {"durationMs": 1500.0, "durationSeconds": 1.5}},
            ),
        )
        await accumulator.drain_write_backs()

        assert ctx.draft.id == "abc"
        assert ctx.transcript.get("local-draft") is ctx.draft
        assert ctx.transcript.get("u-1") is ctx.user_message
        assert ctx.user_message.persisted_id == "u-1"
        assert ctx.pending_write_back is False
        assert store.writes == [
            {
                "messageId": "abc",
                "metadata": timing_write_back_payload(ctx.draft.metadata),
            }
        ]

    @pytest.mark.asyncio
    async def test_client_timing_overrides_server_timing(self):
        clock = FakeClock(start=0.0)
        ctx = create_test_context(clock=clock)
        store = InMemoryMessageStore()
        accumulator = ResponseAccumulator(store)
        accumulator.on_meta(ctx, MetaFrame(assistant_message_row_id="abc"))

        clock.advance(3.0)
        accumulator.on_content(ctx, ContentFrame(text="Hi"))
        await accumulator.drain_write_backs()
        store.writes.clear()

        accumulator.on_meta(
            ctx,
            MetaFrame(assistant_message_row_id="abc", metadata={"thinkingDurationMs": 42}),
        )
        await accumulator.drain_write_backs()

        assert ctx.draft.metadata["thinkingDurationMs"] == 3000.0
        assert len(store.writes) == 1
        assert store.writes[0]["metadata"]["thinkingDurationMs"] == 3000.0

    def test_meta_without_client_timing_keeps_server_values(self):
        ctx = create_test_context()
        accumulator = ResponseAccumulator(InMemoryMessageStore())

        accumulator.on_meta(
            ctx,
            MetaFrame(
                assistant_message_row_id="abc",
                model="m-1",
                metadata={"thinkingDurationMs": 42},
                context_usage={"percent": 30},
            ),
        )

        assert ctx.draft.metadata["thinkingDurationMs"] == 42
        assert ctx.draft.metadata["model"] == "m-1"
        assert ctx.draft.metadata["contextUsage"] == {"percent": 30}
        assert ctx.context_usage == {"percent": 30}
        assert accumulator.pending_write_backs == 0

    @pytest.mark.asyncio
    async def test_client_timing_wins_over_early_meta_timing(self):
        """Server timing delivered before the first token is replaced by the client measurement."""
        clock = FakeClock(start=0.0)
        ctx = create_test_context(clock=clock)
        store = InMemoryMessageStore()
        accumulator = ResponseAccumulator(store)
        accumulator.on_meta(
            ctx,
            MetaFrame(
                assistant_message_row_id="abc",
                metadata={"thinkingDurationMs": 42, "thoughtDurationSeconds": 0.042,
                          "thinking": {"durationMs": 42, "durationSeconds": 0.042}},
            ),
        )
        assert ctx.draft.metadata["thinkingDurationMs"] == 42

        clock.advance(2.5)
        accumulator.on_content(ctx, ContentFrame(text="Hi"))
        await accumulator.drain_write_backs()

        assert ctx.draft.metadata["thinkingDurationMs"] == 2500.0
        assert ctx.draft.metadata["thoughtDurationSeconds"] == 2.5
        assert ctx.draft.metadata["thinking"]["durationMs"] == 2500.0
        assert len(store.writes) == 1
        assert store.writes[0]["messageId"] == "abc"
        assert store.writes[0]["metadata"]["thinkingDurationMs"] == 2500.0

    def test_final_content_never_shortens(self):
        ctx = create_test_context()
        accumulator = ResponseAccumulator()
        accumulator.on_content(ctx, ContentFrame(text="Hello world"))

        accumulator.on_meta(ctx, MetaFrame(final_content="Hello"))
        assert ctx.draft.content == "Hello world"

        accumulator.on_meta(ctx, MetaFrame(final_content="Hello world!"))
        assert ctx.draft.content == "Hello world!"

    @pytest.mark.asyncio
    async def test_write_back_failure_is_swallowed(self):
        ctx = create_test_context()
        store = InMemoryMessageStore()
        store.write_error = RuntimeError("store down")
        accumulator = ResponseAccumulator(store)
        accumulator.on_content(ctx, ContentFrame(text="Hi"))

        accumulator.on_meta(ctx, MetaFrame(assistant_message_row_id="abc"))
        await accumulator.drain_write_backs()

        assert len(store.writes) == 1
        assert accumulator.pending_write_backs == 0


class TestAuxiliaryFrames:
    """Test domains, sources, server errors and terminal frames."""

    def test_search_domains_merged_into_metadata(self):
        ctx = create_test_context()
        accumulator = ResponseAccumulator()

        accumulator.on_search_domain(ctx, SearchDomainFrame(domain="Example.com"))
        accumulator.on_search_domain(ctx, SearchDomainFrame(domain="example.com"))
        accumulator.on_metadata(ctx, MetadataFrame(searched_domains=["news.org"]))

        assert ctx.draft.metadata["searchedDomains"] == ["Example.com", "news.org"]

    def test_sources_replace_citations_and_add_domains(self):
        ctx = create_test_context()
        accumulator = ResponseAccumulator()

        accumulator.on_sources(ctx, SourcesFrame(sources=[{"url": "https://old.com"}]))
        accumulator.on_sources(
            ctx, SourcesFrame(sources=[{"url": "https://www.new.com/a", "title": "New"}])
        )

        assert ctx.draft.metadata["citations"] == [
            {"url": "https://www.new.com/a", "title": "New"}
        ]
        assert ctx.draft.metadata["searchedDomains"] == ["old.com", "new.com"]

    def test_server_error_recorded_without_terminating(self):
        ctx = create_test_context()
        accumulator = ResponseAccumulator()

        accumulator.on_server_error(ctx, ServerErrorFrame(error="upstream_error"))

        assert ctx.draft.metadata["serverError"] == {"error": "upstream_error"}
        assert ctx.terminal_received is False

    def test_done_marks_terminal(self):
        ctx = create_test_context()

        ResponseAccumulator().on_done(ctx, DoneFrame())

        assert ctx.terminal_received is True
