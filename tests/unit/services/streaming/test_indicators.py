"""Unit tests for the auxiliary indicator board and search domains."""

from chat_client.services.streaming.events import StatusFrame, StatusType
from chat_client.services.streaming.indicators import (
    IndicatorBoard,
    IndicatorChannel,
    IndicatorPhase,
)
from chat_client.services.streaming.search_domains import (
    SearchDomainSet,
    domains_from_citations,
)


class TestIndicatorBoard:
    """Test per-channel state machines."""

    def test_search_lifecycle_expires_to_idle(self):
        board = IndicatorBoard(expiry_seconds=5.0)

        board.apply_status(StatusFrame(StatusType.SEARCH_START, query="news"), now=0.0)
        search = board.get(IndicatorChannel.WEB_SEARCH)
        assert search.phase is IndicatorPhase.ACTIVE
        assert search.query == "news"
        assert board.next_expiry() is None

        board.apply_status(StatusFrame(StatusType.SEARCH_COMPLETE), now=1.0)
        assert search.phase is IndicatorPhase.COMPLETE
        assert board.next_expiry() == 6.0

        assert board.expire(now=5.9) == []
        assert board.expire(now=6.0) == [IndicatorChannel.WEB_SEARCH]
        assert search.phase is IndicatorPhase.IDLE
        assert search.query is None

    def test_retrigger_cancels_expiry(self):
        """A new start before the window elapses keeps the channel active."""
        board = IndicatorBoard(expiry_seconds=5.0)
        board.apply_status(StatusFrame(StatusType.SEARCH_ERROR), now=0.0)

        board.apply_status(StatusFrame(StatusType.SEARCH_START), now=2.0)

        assert board.expire(now=10.0) == []
        assert board.get(IndicatorChannel.WEB_SEARCH).phase is IndicatorPhase.ACTIVE

    def test_channels_are_independent(self):
        board = IndicatorBoard(expiry_seconds=5.0)

        board.apply_status(StatusFrame(StatusType.FILE_READING_START), now=0.0)
        board.apply_status(StatusFrame(StatusType.CODE_EXECUTION_ERROR), now=0.0)

        assert board.get(IndicatorChannel.FILE_READING).phase is IndicatorPhase.ACTIVE
        assert board.get(IndicatorChannel.CODE_EXECUTION).phase is IndicatorPhase.ERROR
        assert board.get(IndicatorChannel.WEB_SEARCH).phase is IndicatorPhase.IDLE

    def test_file_search_uses_file_reading_channel(self):
        board = IndicatorBoard(expiry_seconds=5.0)

        indicator = board.apply_status(StatusFrame(StatusType.FILE_SEARCH_START), now=0.0)

        assert indicator.channel is IndicatorChannel.FILE_READING
        assert indicator.message == "Searching files…"

    def test_server_message_overrides_default(self):
        board = IndicatorBoard(expiry_seconds=5.0)

        indicator = board.apply_status(
            StatusFrame(StatusType.SEARCH_ERROR, message="Rate limited"), now=0.0
        )

        assert indicator.message == "Rate limited"

    def test_retire_active(self):
        board = IndicatorBoard(expiry_seconds=5.0)
        board.apply_status(StatusFrame(StatusType.SEARCH_START), now=0.0)
        board.apply_status(StatusFrame(StatusType.CODE_EXECUTION_START), now=0.0)

        board.retire_active([IndicatorChannel.WEB_SEARCH, IndicatorChannel.FILE_READING], now=1.0)

        assert board.get(IndicatorChannel.WEB_SEARCH).phase is IndicatorPhase.COMPLETE
        assert board.get(IndicatorChannel.FILE_READING).phase is IndicatorPhase.IDLE
        assert board.get(IndicatorChannel.CODE_EXECUTION).phase is IndicatorPhase.ACTIVE

    def test_clear_active_keeps_settled(self):
        board = IndicatorBoard(expiry_seconds=5.0)
        board.apply_status(StatusFrame(StatusType.SEARCH_COMPLETE), now=0.0)
        board.apply_status(StatusFrame(StatusType.FILE_READING_START), now=0.0)

        board.clear_active()

        assert board.get(IndicatorChannel.WEB_SEARCH).phase is IndicatorPhase.COMPLETE
        assert board.get(IndicatorChannel.FILE_READING).phase is IndicatorPhase.IDLE

    def test_snapshot_keyed_by_channel(self):
        board = IndicatorBoard(expiry_seconds=5.0)
        board.apply_status(StatusFrame(StatusType.SEARCH_START, query="q"), now=3.0)

        snapshot = board.snapshot()

        assert set(snapshot) == {"web_search", "file_reading", "code_execution"}
        assert snapshot["web_search"]["phase"] == "active"
        assert snapshot["web_search"]["query"] == "q"


class TestSearchDomainSet:
    """Test ordered case-insensitive domain merging."""

    def test_dedup_preserves_first_spelling_and_order(self):
        domains = SearchDomainSet()

        added = domains.update(["Example.com", " news.org ", "example.COM", "", None, "b.io"])

        assert added == ["Example.com", "news.org", "b.io"]
        assert domains.to_list() == ["Example.com", "news.org", "b.io"]
        assert "EXAMPLE.com" in domains
        assert domains.latest == "b.io"

    def test_clear(self):
        domains = SearchDomainSet(["a.com"])
        domains.clear()

        assert len(domains) == 0
        assert domains.add("a.com") is True

    def test_domains_from_citations(self):
        citations = [
            {"url": "https://www.example.com/page"},
            {"url": "http://docs.python.org/3/"},
            {"title": "no url"},
            "junk",
        ]

        assert domains_from_citations(citations) == ["example.com", "docs.python.org"]
