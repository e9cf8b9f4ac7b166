"""End-to-end flows over scripted in-memory pages, plus one real-browser run."""

import json
import time
from pathlib import Path

import pytest

from autowait import BrowserManager, EngineConfig, expect
from autowait.events import EventKind
from autowait.exceptions import (
    ActionTimeoutError,
    BrowserError,
    DriverError,
    EventWaitTimeoutError,
)

BASE_URL = "https://shop.test"


@pytest.fixture
async def login_page(make_page, simple_form_path: Path):
    """The login form wired to a slow login API that reveals the dashboard."""
    page = await make_page(simple_form_path.read_text(), url=f"{BASE_URL}/login")
    page.driver.serve("**/api/login", json={"user": "testuser"}, delay_ms=80)

    async def submit(event) -> None:
        driver = event.driver
        user = driver.value_of(driver.query("#username")[0])
        response = await driver.fetch("/api/login", method="POST", post_data=json.dumps({"user": user}))
        if response.ok:
            driver.set_text("#user-display", response.json()["user"])
            driver.set_attribute("#dashboard-section", "hidden", None)

    page.driver.on("#login-form", "submit", submit)
    return page


async def test_login_flow(login_page) -> None:
    """Fill, submit and wait for the API round trip without any sleeps."""
    page = login_page
    await page.get_by_label("Username").fill("testuser")
    await page.get_by_label("Password").fill("secret123")
    await page.get_by_label("Remember me").check()

    response = await page.wait_for_response(
        "**/api/login",
        trigger=lambda: page.get_by_role("button", name="Login").click(),
        timeout=2000,
    )

    assert response.status == 200
    assert response.request.method == "POST"
    await expect(page.locator("#dashboard-section")).to_be_visible()
    await expect(page.get_by_test_id("user-display")).to_have_text("testuser")


async def test_request_predicate_sees_post_body(login_page) -> None:
    page = login_page
    await page.fill("#username", "ada")
    request = await page.wait_for_request(
        lambda r: r.method == "POST",
        trigger=lambda: page.click("#login-btn"),
        timeout=2000,
    )
    assert json.loads(request.post_data) == {"user": "ada"}


async def test_popup_from_target_blank_link(make_page, store_html: str) -> None:
    page = await make_page(store_html, url=f"{BASE_URL}/")
    page.driver.serve(f"{BASE_URL}/help", "<title>Help Center</title><h1>How can we help?</h1>")

    popup = await page.wait_for_popup(
        trigger=lambda: page.get_by_role("link", name="Help").click(), timeout=2000
    )

    await expect(popup).to_have_title("Help Center")
    await expect(popup).to_have_url(f"{BASE_URL}/help")
    assert await popup.get_by_role("heading").inner_text() == "How can we help?"
    assert page.popups == [popup]
    assert page.url == f"{BASE_URL}/"


async def test_popup_wait_for_load_state(make_page) -> None:
    page = await make_page("<a href='/help' target='_blank'>Help</a>", url=f"{BASE_URL}/")
    page.driver.serve(f"{BASE_URL}/help", "<title>Help Center</title>", delay_ms=80)

    popup = await page.wait_for_popup(
        trigger=lambda: page.get_by_role("link").click(), timeout=2000
    )
    assert await popup.title() == ""

    await popup.wait_for_load_state()
    assert await popup.title() == "Help Center"
    assert popup.url == f"{BASE_URL}/help"
    await popup.wait_for_load_state("networkidle")


async def test_wait_for_load_state_times_out(make_page) -> None:
    page = await make_page("<a href='/slow'>Slow</a>", url=f"{BASE_URL}/")
    page.driver.serve(f"{BASE_URL}/slow", "<title>Slow</title>", delay_ms=500)
    page.driver.schedule(0, lambda d: d.navigate("/slow"))
    await page.wait_for_timeout(20)

    with pytest.raises(EventWaitTimeoutError):
        await page.wait_for_load_state(timeout=50)
    with pytest.raises(ValueError, match="state must be one of"):
        await page.wait_for_load_state("idle")


async def test_route_fulfills_search_api(make_page, store_html: str) -> None:
    page = await make_page(store_html, url=f"{BASE_URL}/")

    def search(event):
        query = event.driver.value_of(event.driver.query("#search-query")[0])
        return event.driver.fetch(f"/api/search?q={query}")

    page.driver.on("#search-form", "submit", search)
    calls = []

    async def fake_search(route) -> None:
        calls.append(route.request.url)
        await route.fulfill(json={"results": ["Pliers"]})

    await page.route("**/api/search*", fake_search)
    await page.get_by_role("searchbox").fill("pliers")
    response = await page.wait_for_response(
        "**/api/search*",
        trigger=lambda: page.get_by_test_id("search-submit").click(),
        timeout=2000,
    )

    assert response.json() == {"results": ["Pliers"]}
    assert calls == [f"{BASE_URL}/api/search?q=pliers"]


async def test_aborted_request_fails(make_page) -> None:
    page = await make_page("<p>x</p>", url=f"{BASE_URL}/")
    await page.route("**/*.png", lambda route: route.abort("blockedbyclient"))
    failed = []
    page.events.subscribe(EventKind.REQUEST_FAILED, failed.append)

    with pytest.raises(DriverError, match="BLOCKEDBYCLIENT"):
        await page.driver.fetch("/logo.png", resource_type="image")
    assert [r.url for r in failed] == [f"{BASE_URL}/logo.png"]

    await page.unroute("**/*.png")
    response = await page.driver.fetch("/logo.png")
    assert response.status == 404


async def test_navigation_and_default_timeout(make_page) -> None:
    page = await make_page("<a href='/cart'>Cart</a>", url=f"{BASE_URL}/")
    page.driver.serve("**/cart", "<title>Cart</title><p id='empty'>Your cart is empty</p>")

    navigation = await page.wait_for_event(
        "navigation", trigger=lambda: page.get_by_role("link").click(), timeout=2000
    )
    assert navigation.url == f"{BASE_URL}/cart"
    assert await page.title() == "Cart"

    page.set_default_timeout(100)
    start = time.monotonic()
    with pytest.raises(ActionTimeoutError):
        await page.get_by_role("link").click()
    assert time.monotonic() - start < 0.8


async def test_storage_state_round_trip(make_page, tmp_path: Path) -> None:
    state = {"cookies": [{"name": "sid", "value": "abc", "domain": "shop.test"}], "origins": []}
    page = await make_page("<p>x</p>", storage_state=state)
    saved = await page.storage_state(tmp_path / "state" / "auth.json")
    assert saved == state
    assert json.loads((tmp_path / "state" / "auth.json").read_text()) == state


async def test_real_browser_login(simple_form_path: Path) -> None:
    """Same engine over real Playwright; skipped when no browser is installed."""
    manager = BrowserManager(EngineConfig(action_timeout_ms=5000, poll_interval_ms=50))
    try:
        await manager.start()
    except BrowserError as exc:
        pytest.skip(f"Playwright browser unavailable: {exc}")
    try:
        page = await manager.new_page()
        await page.goto(f"file://{simple_form_path}")
        await page.set_content(
            (await page.content()).replace(
                "</body>",
                "<script>document.getElementById('login-form').addEventListener('submit', e => {"
                "e.preventDefault();"
                "setTimeout(() => {"
                "document.getElementById('user-display').textContent ="
                " document.getElementById('username').value;"
                "document.getElementById('dashboard-section').hidden = false;"
                "}, 200);});</script></body>",
            )
        )
        await page.get_by_label("Username").fill("testuser")
        await page.get_by_role("button", name="Login").click()
        await expect(page.get_by_test_id("user-display")).to_have_text("testuser")
    finally:
        await manager.stop()
