import asyncio

from mispark.core.leaderboard import LeaderboardView
from mispark.core.session import FeedSession
from mispark.models.leaderboard import LeaderboardEntry, UserRanking


def entry(user_id, total):
    return LeaderboardEntry(user_id=user_id, username=user_id.title(), total_reports=total)


def test_refresh_loads_entries(backend):
    backend.leaderboard = [entry("anna", 12), entry("ben", 7), entry("cyril", 3), entry("dana", 1)]
    view = LeaderboardView(backend)

    asyncio.run(view.refresh())

    assert view.loaded
    assert [e.user_id for e in view.top_three()] == ["anna", "ben", "cyril"]
    assert len(view.entries) == 4


def test_failed_refresh_keeps_last_list(backend):
    backend.leaderboard = [entry("anna", 12)]
    view = LeaderboardView(backend)

    async def scenario():
        await view.refresh()
        backend.leaderboard_error = RuntimeError("rpc failed")
        await view.refresh()

    asyncio.run(scenario())

    assert [e.user_id for e in view.entries] == ["anna"]


def test_change_bursts_are_coalesced(backend):
    view = LeaderboardView(backend)

    async def scenario():
        view.on_report_change()
        await asyncio.sleep(0)
        for _ in range(4):
            view.on_report_change()
        await view.refresh()

    asyncio.run(scenario())

    # one refresh running plus one queued behind it
    assert backend.leaderboard_calls == 2


def test_ranking_for_user(backend):
    backend.rankings["anna"] = UserRanking(rank=1, total_reports=12)
    view = LeaderboardView(backend)

    assert asyncio.run(view.ranking_for("anna")) == UserRanking(rank=1, total_reports=12)
    assert asyncio.run(view.ranking_for("nobody")) is None


def test_leaderboard_refreshes_on_feed_changes(backend, channel, uploader, make_report):
    backend.leaderboard = [entry("anna", 1)]
    view = LeaderboardView(backend)

    async def scenario():
        async with FeedSession(backend, channel, uploader) as session:
            session.reconciler.on_change.append(view.on_report_change)
            backend.add(make_report(3, 1))
            await channel.push("INSERT", {"id": 3})
            await view.refresh()

    asyncio.run(scenario())

    assert view.loaded
    assert backend.leaderboard_calls >= 1
