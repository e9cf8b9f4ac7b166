"""Tests for retrying expect() assertions."""

import re
import time

import pytest

from autowait.assertions import LocatorAssertions, PageAssertions, expect
from autowait.exceptions import ExpectationError


class TestLocatorAssertions:
    async def test_visible_after_late_reveal(self, make_page) -> None:
        page = await make_page('<div id="toast" hidden>Saved</div>')
        page.driver.schedule(80, lambda d: d.set_attribute("#toast", "hidden", None))
        await expect(page.locator("#toast")).to_be_visible()

    async def test_failure_waits_full_timeout_and_reports(self, make_page) -> None:
        page = await make_page('<div id="toast" hidden>Saved</div>')
        start = time.monotonic()
        with pytest.raises(ExpectationError) as exc_info:
            await expect(page.locator("#toast")).to_be_visible(timeout=100)
        assert time.monotonic() - start >= 0.09
        assert "to_be_visible" in str(exc_info.value)
        assert isinstance(exc_info.value, AssertionError)

    async def test_not_inverts(self, make_page) -> None:
        page = await make_page('<p id="spinner">Loading</p>')
        page.driver.schedule(50, lambda d: d.remove("#spinner"))
        await expect(page.locator("#spinner")).not_.to_be_attached()
        await expect(page.locator("#spinner")).to_be_hidden()

    async def test_custom_message(self, make_page) -> None:
        page = await make_page("<p>x</p>")
        with pytest.raises(ExpectationError, match="cart should be empty"):
            await expect(page.locator("p"), "cart should be empty").to_have_text(
                "y", timeout=50
            )

    async def test_count(self, make_page, store_html) -> None:
        page = await make_page(store_html)
        cards = page.get_by_test_id("product-card")
        await expect(cards).to_have_count(4)
        page.driver.schedule(50, lambda d: d.remove("li.card:last-child"))
        await expect(cards).to_have_count(3)

    async def test_text_full_contains_regex_and_list(self, make_page, store_html) -> None:
        page = await make_page(store_html)
        await expect(page.locator("li h3").first).to_have_text("Combination Pliers")
        await expect(page.locator("li h3").first).to_contain_text("Pliers")
        await expect(page.locator("li h3").first).not_.to_have_text("Pliers", timeout=50)
        await expect(page.locator(".price").nth(1)).to_have_text(re.compile(r"^\$12"))
        await expect(page.locator("li h3")).to_have_text(
            ["Combination Pliers", "Pliers", "Bolt Cutters", re.compile("Long")]
        )

    async def test_text_updates_are_awaited(self, make_page) -> None:
        page = await make_page('<span id="cart-count">0</span>')
        page.driver.schedule(60, lambda d: d.set_text("#cart-count", "2"))
        await expect(page.locator("#cart-count")).to_have_text("2")

    async def test_value_and_attribute(self, make_page, simple_form_path) -> None:
        page = await make_page(simple_form_path.read_text())
        await page.locator("#username").fill("alice")
        await expect(page.locator("#username")).to_have_value("alice")
        await expect(page.locator("#username")).to_have_value(re.compile("^ali"))
        await expect(page.locator("#password")).to_have_attribute("type", "password")

    async def test_states(self, make_page, simple_form_path, store_html) -> None:
        form = await make_page(simple_form_path.read_text())
        await expect(form.locator("#username")).to_be_editable()
        await expect(form.locator("#login-btn")).to_be_enabled()
        await expect(form.locator("#remember")).to_be_checked(checked=False)
        await form.locator("#remember").check()
        await expect(form.locator("#remember")).to_be_checked()

        store = await make_page(store_html)
        await expect(store.get_by_role("button", name="Add to cart").nth(2)).to_be_disabled()

    async def test_missing_element_fails_state_check(self, make_page) -> None:
        page = await make_page("<p>x</p>")
        with pytest.raises(ExpectationError, match="element not found"):
            await expect(page.locator("#nope")).to_be_enabled(timeout=50)


class TestPageAssertions:
    async def test_url_and_title(self, make_page, simple_form_path) -> None:
        page = await make_page(simple_form_path.read_text(), url="https://shop.test/login")
        await expect(page).to_have_url("https://shop.test/login")
        await expect(page).to_have_url(re.compile(r"/login$"))
        await expect(page).to_have_title("Login - Test Page")
        await expect(page).not_.to_have_title("Dashboard", timeout=50)

    async def test_url_after_navigation(self, make_page) -> None:
        page = await make_page("<a href='/done'>Finish</a>", url="https://shop.test/")
        page.driver.serve("**/done", "<title>Done</title>")
        await page.get_by_role("link", name="Finish").click()
        await expect(page).to_have_url("https://shop.test/done")
        await expect(page).to_have_title(re.compile("Done"))


class TestExpect:
    async def test_dispatch_by_type(self, make_page) -> None:
        page = await make_page("<p>x</p>")
        assert isinstance(expect(page), PageAssertions)
        assert isinstance(expect(page.locator("p")), LocatorAssertions)

    def test_rejects_other_targets(self) -> None:
        with pytest.raises(TypeError, match="Locator or a Page"):
            expect("p")
