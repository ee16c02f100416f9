import asyncio
from datetime import date, timedelta
from unittest.mock import AsyncMock

import pytest

from newscrawler.crawler.crawl_engine import (
    BACKFILL,
    NIGHTLY,
    CrawlAlreadyRunningError,
    CrawlEngine,
)
from newscrawler.crawler.types import CategoryStatus
from newscrawler.filter.promotional_filter import PromotionalFilter
from newscrawler.utils.kst import kst_midnight

from conftest import NOW, FakeSearchClient, FakeStorage, make_category, make_hit


@pytest.fixture
def notifier():
    n = AsyncMock()
    n.notify = AsyncMock()
    return n


def build_engine(search, storage, ranker, summarizer, notifier=None, sink=None):
    return CrawlEngine(
        search_client=search,
        ranker=ranker,
        summarizer=summarizer,
        storage=storage,
        notifier=notifier,
        sink=sink,
        promotional_filters={
            "crawl_terms": PromotionalFilter(["이벤트"]),
            "backfill_terms": PromotionalFilter(["할인"]),
        },
        batch_delay=0,
        category_delay=0,
        clock=lambda: NOW,
    )


@pytest.mark.asyncio
async def test_nightly_run_deletes_before_inserting(mock_ranker, mock_summarizer, notifier, sink):
    storage = FakeStorage([
        make_category("테크", ["foo", "bar"], order=0),
        make_category("금융", ["qux"], order=1),
    ])
    search = FakeSearchClient({
        "foo": [make_hit("foo 출시")],
        "bar": [make_hit("bar 계약")],
        "qux": [make_hit("qux 금리")],
    })
    engine = build_engine(search, storage, mock_ranker, mock_summarizer, notifier, sink)

    result = await engine.run()

    assert storage.calls[:2] == ["delete", "load"]
    assert storage.calls[2:] == ["create"] * 3
    assert storage.deleted_dates == [date(2025, 3, 10)]
    assert result.total_articles == 3
    assert result.crawled_at == kst_midnight(date(2025, 3, 10))
    assert {a.crawled_at for a in result.articles} == {result.crawled_at}
    assert [c.status for c in result.categories] == [CategoryStatus.COMPLETE, CategoryStatus.COMPLETE]


@pytest.mark.asyncio
async def test_run_emits_start_and_completion(mock_ranker, mock_summarizer, notifier, sink):
    storage = FakeStorage([make_category("테크", ["foo"]), make_category("빈", [])])
    search = FakeSearchClient({"foo": [make_hit("foo 출시")]})
    engine = build_engine(search, storage, mock_ranker, mock_summarizer, notifier, sink)

    await engine.run()

    assert sink.types[0] == "crawl_started"
    assert sink.types[-1] == "crawl_completed"
    started = sink.events[0].payload
    assert started["total_categories"] == 2
    assert started["categories"] == [{"id": "cat-테크", "name": "테크"}, {"id": "cat-빈", "name": "빈"}]
    assert started["crawl_date"] == "2025-03-10"
    completed = sink.events[-1].payload
    assert completed["total_articles"] == 1
    assert isinstance(completed["duration"], int)
    assert "category_skipped" in sink.types


@pytest.mark.asyncio
async def test_notifier_receives_articles_with_category(mock_ranker, mock_summarizer, notifier):
    storage = FakeStorage([make_category("테크", ["foo"])])
    engine = build_engine(
        FakeSearchClient({"foo": [make_hit("foo 출시")]}), storage, mock_ranker, mock_summarizer, notifier
    )

    await engine.run()

    notifier.notify.assert_awaited_once()
    articles = notifier.notify.await_args.args[0]
    assert [a.category_name for a in articles] == ["테크"]


@pytest.mark.asyncio
async def test_notifier_skipped_without_articles(mock_ranker, mock_summarizer, notifier):
    engine = build_engine(
        FakeSearchClient(), FakeStorage([make_category("테크", ["foo"])]), mock_ranker, mock_summarizer, notifier
    )
    await engine.run()
    notifier.notify.assert_not_awaited()


@pytest.mark.asyncio
async def test_notifier_failure_is_swallowed(mock_ranker, mock_summarizer, notifier, sink):
    notifier.notify = AsyncMock(side_effect=RuntimeError("telegram down"))
    storage = FakeStorage([make_category("테크", ["foo"])])
    engine = build_engine(
        FakeSearchClient({"foo": [make_hit("foo 출시")]}), storage, mock_ranker, mock_summarizer, notifier, sink
    )

    result = await engine.run()

    assert result.total_articles == 1
    assert sink.types[-1] == "crawl_completed"


@pytest.mark.asyncio
async def test_category_exception_does_not_stop_run(mock_ranker, mock_summarizer, sink):
    storage = FakeStorage([make_category("A", ["a"]), make_category("B", ["b"])])
    engine = build_engine(
        FakeSearchClient({"b": [make_hit("b 뉴스")]}), storage, mock_ranker, mock_summarizer, sink=sink
    )
    real_process = engine._category_processor.process

    async def process(category, ctx):
        if category.name == "A":
            raise RuntimeError("category exploded")
        return await real_process(category, ctx)

    engine._category_processor.process = process

    result = await engine.run()

    assert [c.status for c in result.categories] == [CategoryStatus.ERROR, CategoryStatus.COMPLETE]
    assert result.categories[0].error == "category exploded"
    error_event = next(e for e in sink.events if e.type.value == "category_error")
    assert error_event.payload["category_name"] == "A"
    assert result.total_articles == 1


@pytest.mark.asyncio
async def test_delete_failure_propagates(mock_ranker, mock_summarizer):
    storage = FakeStorage([make_category("테크", ["foo"])])
    storage.delete_articles_for_date = AsyncMock(side_effect=RuntimeError("db down"))
    engine = build_engine(FakeSearchClient(), storage, mock_ranker, mock_summarizer)

    with pytest.raises(RuntimeError):
        await engine.run()
    assert not engine.is_running


@pytest.mark.asyncio
async def test_explicit_target_date(mock_ranker, mock_summarizer):
    storage = FakeStorage([])
    engine = build_engine(FakeSearchClient(), storage, mock_ranker, mock_summarizer)

    result = await engine.run(target_date=date(2025, 1, 2), delete_existing=False)

    assert storage.deleted_dates == []
    assert result.crawled_at == kst_midnight(date(2025, 1, 2))


@pytest.mark.asyncio
async def test_backfill_profile_uses_bounded_window(mock_ranker, mock_summarizer, notifier, sink):
    target = date(2025, 3, 1)
    anchor = kst_midnight(target)
    storage = FakeStorage([make_category("테크", ["foo", "bar"])])
    search = FakeSearchClient({
        "foo": [make_hit("foo 당일 이후", published_at=anchor + timedelta(hours=2))],
        "bar": [make_hit("bar 기간 안", published_at=anchor - timedelta(days=2))],
    })
    engine = build_engine(search, storage, mock_ranker, mock_summarizer, notifier, sink)

    result = await engine.run(BACKFILL, target_date=target)

    assert [a.keyword for a in result.articles] == ["bar"]
    assert storage.deleted_dates == []
    notifier.notify.assert_not_awaited()
    assert sink.events == []


@pytest.mark.asyncio
async def test_backfill_falls_back_when_all_promotional(mock_ranker, mock_summarizer):
    target = date(2025, 3, 1)
    published = kst_midnight(target) - timedelta(hours=5)
    storage = FakeStorage([make_category("유통", ["bar"])])
    search = FakeSearchClient({
        "bar": [make_hit(f"bar 할인 행사 {i}", published_at=published) for i in range(3)],
    })
    engine = build_engine(search, storage, mock_ranker, mock_summarizer)

    result = await engine.run(BACKFILL, target_date=target)

    assert result.total_articles == 1
    mock_ranker.rank_important.assert_not_awaited()


@pytest.mark.asyncio
async def test_nightly_drops_keyword_when_all_promotional(mock_ranker, mock_summarizer):
    storage = FakeStorage([make_category("유통", ["bar"])])
    search = FakeSearchClient({"bar": [make_hit(f"bar 이벤트 {i}") for i in range(3)]})
    engine = build_engine(search, storage, mock_ranker, mock_summarizer)

    result = await engine.run(NIGHTLY)

    assert result.total_articles == 0
    assert result.categories[0].outcomes[0].reason == "all candidates promotional"


@pytest.mark.asyncio
async def test_concurrent_run_rejected(mock_ranker, mock_summarizer):
    release = asyncio.Event()

    class SlowStorage(FakeStorage):
        async def load_categories_with_keywords(self):
            await release.wait()
            return []

    engine = build_engine(FakeSearchClient(), SlowStorage(), mock_ranker, mock_summarizer)
    first = asyncio.create_task(engine.run())
    await asyncio.sleep(0)

    assert engine.is_running
    with pytest.raises(CrawlAlreadyRunningError):
        await engine.run()

    release.set()
    await first
    assert not engine.is_running


@pytest.mark.asyncio
async def test_search_live_filters_and_ranks(mock_ranker, mock_summarizer):
    hits = [
        make_hit("<b>반도체</b> 수출 - 연합뉴스", hours_ago=24),
        make_hit("오래된 반도체 기사", hours_ago=24 * 10),
    ]
    search = FakeSearchClient({"반도체": hits})
    engine = build_engine(search, FakeStorage(), mock_ranker, mock_summarizer)

    await engine.search_live("  반도체 ", days_back=7)

    assert search.calls == ["반도체"]
    passed = mock_ranker.analyze_and_rank.await_args.args[0]
    assert [h.title for h in passed] == ["반도체 수출"]


@pytest.mark.asyncio
async def test_search_live_rejects_blank_query(mock_ranker, mock_summarizer):
    engine = build_engine(FakeSearchClient(), FakeStorage(), mock_ranker, mock_summarizer)
    with pytest.raises(ValueError):
        await engine.search_live("   ")


@pytest.mark.asyncio
async def test_search_live_never_touches_storage(mock_ranker, mock_summarizer):
    storage = FakeStorage()
    engine = build_engine(FakeSearchClient({"q": [make_hit("q 뉴스")]}), storage, mock_ranker, mock_summarizer)
    await engine.search_live("q")
    assert storage.calls == []


@pytest.mark.asyncio
async def test_find_alternatives(mock_ranker, mock_summarizer):
    search = FakeSearchClient({"foo": [make_hit("foo A"), make_hit("무관"), make_hit("foo B")]})
    engine = build_engine(search, FakeStorage(), mock_ranker, mock_summarizer)

    alternatives = await engine.find_alternatives("foo")

    assert [h.title for h in alternatives] == ["foo A", "foo B"]
