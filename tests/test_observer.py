import pytest

from lead_finder.io.static_driver import StaticPageDriver
from lead_finder.scanner.observer import PostObserver, collect_posts

URL = "https://www.linkedin.com/feed/"
HTML = """
<body>
  <article data-urn="urn:li:activity:10">
    <div class="feed-shared-update-v2">inner node of the same post</div>
  </article>
  <div class="feed-update">  no id on this one </div>
</body>
"""


async def _page(html: str = HTML):
    d = StaticPageDriver({URL: html})
    ctx = await d.new_context()
    await d.goto(ctx, URL)
    return d, ctx


@pytest.mark.asyncio
async def test_collect_posts_normalises_nested_matches() -> None:
    d, ctx = await _page()
    posts = await collect_posts(d, ctx)
    assert [post_id for post_id, _ in posts] == ["urn:li:activity:10", "noidonthisone"]
    assert posts[0][1].name == "article"


@pytest.mark.asyncio
async def test_poll_reports_each_post_once() -> None:
    d, ctx = await _page()
    obs = PostObserver(d, ctx, predicate=lambda post_id: post_id != "noidonthisone")

    assert [post_id for post_id, _ in await obs.poll()] == ["urn:li:activity:10"]
    assert await obs.poll() == []

    ctx.load(HTML.replace("</body>", '<div data-id="urn:li:activity:11">new</div></body>'), URL)
    assert [post_id for post_id, _ in await obs.poll()] == ["urn:li:activity:11"]

    obs.reset()
    assert len(await obs.poll()) == 2


@pytest.mark.asyncio
async def test_new_posts_until_stopped() -> None:
    d, ctx = await _page()
    obs = PostObserver(d, ctx, interval_ms=1)
    seen = []
    async for post_id, _ in obs.new_posts():
        seen.append(post_id)
        if len(seen) == 2:
            obs.stop()
    assert seen == ["urn:li:activity:10", "noidonthisone"]
    assert obs.stopped

    obs.resume()
    assert not obs.stopped
