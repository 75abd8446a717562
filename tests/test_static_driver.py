import pytest

from lead_finder.io.driver import wait_for_any
from lead_finder.io.static_driver import StaticPage, StaticPageDriver

HTML = """
<body>
  <div id="shown"><button class="b">ok</button></div>
  <div style="display: none"><button class="b" id="css">css</button></div>
  <div hidden><button class="b" id="attr">attr</button></div>
  <button class="b" id="aria" aria-hidden="true">aria</button>
  <button id="more">load more</button>
</body>
"""


@pytest.mark.asyncio
async def test_visibility_rules() -> None:
    d = StaticPageDriver()
    page = StaticPage.from_html(HTML)
    buttons = await d.query_all(page, "button.b")
    assert [await d.is_visible(page, b) for b in buttons] == [True, False, False, False]

    detached = await d.query(page, "#more")
    detached.extract()
    assert not await d.is_visible(page, detached)


@pytest.mark.asyncio
async def test_click_hook_mutates_document() -> None:
    d = StaticPageDriver()
    page = StaticPage.from_html(HTML)
    page.on_click("#more", lambda p, el: el.decompose())

    await d.click_element(page, await d.query(page, "#more"))
    assert await d.query(page, "#more") is None
    assert len(page.events_of("click")) == 1


@pytest.mark.asyncio
async def test_closest_and_scoped_queries() -> None:
    d = StaticPageDriver()
    page = StaticPage.from_html(HTML)
    inner = await d.query(page, "#css")
    assert await d.closest(page, inner, "div") is not None
    assert await d.closest(page, inner, "section") is None
    shown = await d.query(page, "#shown")
    assert len(await d.query_all(page, "button", root=shown)) == 1


@pytest.mark.asyncio
async def test_goto_and_bounded_wait() -> None:
    d = StaticPageDriver({"https://a.test/": "<title>A</title><p class='x'>hi</p>"})
    page = await d.new_context()
    await d.goto(page, "https://a.test/")
    assert await d.title(page) == "A"
    assert await d.visible_text(page) == "hi"
    assert await wait_for_any(d, page, [".missing", ".x"], timeout_ms=0) is not None
    assert await wait_for_any(d, page, [".missing"], timeout_ms=5, poll_interval_ms=1) is None

    await d.goto(page, "https://unknown.test/")
    assert await d.current_url(page) == "https://unknown.test/"
    assert await d.content(page) == "<html><body></body></html>"
