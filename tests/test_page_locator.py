"""Tests for the Page and Locator facades."""

import dataclasses
import logging

import httpx
import pytest

from cdpsdk import Locator, Page


@pytest.fixture
def page(http_client):
    return Page(http_client, "p1")


class TestLocatorChaining:
    def test_three_level_chain(self, page):
        locator = page.locator("div").locator("p").locator("a")
        assert locator.selector == "div p a"
        assert locator.selectors == ("div", "p", "a")
        assert list(locator.selectors) == ["div", "p", "a"]

    def test_parent_unchanged(self, page):
        parent = page.locator("div")
        child = parent.locator("p")
        child.locator("a")

        assert parent.selector == "div"
        assert parent.selectors == ("div",)
        assert child.selectors == ("div", "p")

    def test_siblings_independent(self, page):
        parent = page.locator("ul")
        first = parent.locator("li.first")
        last = parent.locator("li.last")

        assert first.selector == "ul li.first"
        assert last.selector == "ul li.last"
        assert parent.selectors == ("ul",)

    def test_locator_is_frozen(self, page):
        locator = page.locator("div")
        with pytest.raises(dataclasses.FrozenInstanceError):
            locator.selectors = ("span",)

    def test_list_fragments_normalized(self, http_client):
        fragments = ["div", "p"]
        locator = Locator(http_client, "p1", fragments)
        fragments.append("a")
        assert locator.selectors == ("div", "p")

    def test_client_locator(self, http_client):
        locator = http_client.locator("p1", "form").locator("input")
        assert locator.page_id == "p1"
        assert locator.selector == "form input"


class TestLocatorForwarding:
    def test_text_uses_effective_selector(self, page, http_handler):
        http_handler.respond({"text": "Hello"})
        assert page.locator("body").locator("p").text() == "Hello"

        assert http_handler.last.url.path == "/api/element/text"
        assert http_handler.last_body() == {"sessionId": "sess-1", "pageId": "p1", "selector": "body p"}

    def test_count(self, page, http_handler):
        http_handler.respond({"count": 7})
        assert page.locator("ul").locator("li").count() == 7
        assert http_handler.last_body()["selector"] == "ul li"

    def test_set_value(self, page, http_handler):
        page.locator("form").locator("input[name=q]").set_value("python")
        body = http_handler.last_body()
        assert body["selector"] == "form input[name=q]"
        assert body["value"] == "python"

    def test_attribute_and_all_attributes(self, page, http_handler):
        http_handler.respond({"value": "/home", "attributes": ["/home", "/about"]})
        nav = page.locator("nav").locator("a")
        assert nav.attribute("href") == "/home"
        assert nav.all_attributes("href") == ["/home", "/about"]
        assert http_handler.last_body()["attribute"] == "href"

    def test_wait_visible(self, page, http_handler):
        page.locator("#modal").wait_visible()
        assert http_handler.last.url.path == "/api/page/wait-for-selector-visible"
        assert http_handler.last_body()["selector"] == "#modal"


class TestPage:
    def test_navigate(self, page, http_handler):
        page.navigate("https://example.com")
        assert http_handler.last.url.path == "/api/page/navigate"
        assert http_handler.last_body() == {"sessionId": "sess-1", "pageId": "p1", "url": "https://example.com"}

    def test_get_url(self, page, http_handler):
        http_handler.respond({"url": "https://example.com/"})
        assert page.get_url() == "https://example.com/"
        assert http_handler.last.url.params["pageId"] == "p1"

    def test_click_and_exists(self, page, http_handler):
        http_handler.respond({"exists": True})
        page.click("#go")
        assert http_handler.last.url.path == "/api/element/click"
        assert page.exists("#go") is True

    def test_wait_uses_default_timeout(self, page, http_handler):
        page.wait("#late")
        assert http_handler.last_body()["timeout"] == 10000

    def test_screenshot(self, page, http_handler):
        http_handler.reply = lambda request: httpx.Response(200, content=b"\xff\xd8\xff")
        assert page.screenshot("jpeg") == b"\xff\xd8\xff"

    def test_expect_ext_page_returns_page(self, page, http_handler):
        http_handler.respond({"pageId": "popup-1"})
        popup = page.expect_ext_page("() => window.open('/x')")
        assert isinstance(popup, Page)
        assert popup.page_id == "popup-1"
        assert popup.client is page.client

    def test_navigate_then(self, page, http_handler):
        http_handler.respond({"title": "Done"})
        assert page.navigate_then("https://example.com", lambda p: p.get_title()) == "Done"
        paths = [r.url.path for r in http_handler.requests]
        assert paths == ["/api/page/navigate", "/api/page/title"]

    def test_navigate_and_wait(self, page, http_handler):
        result = page.navigate_and_wait("https://example.com", lambda p: p.wait_for_selector_visible("#ready"))
        assert result is None
        paths = [r.url.path for r in http_handler.requests]
        assert paths == ["/api/page/navigate", "/api/page/wait-for-selector-visible"]

    def test_log_title_and_url(self, page, http_handler, caplog):
        http_handler.respond({"title": "Example", "url": "https://example.com/"})
        with caplog.at_level(logging.INFO, logger="cdpsdk.page"):
            assert page.log_title() == "Example"
            assert page.log_url() == "https://example.com/"
        assert "p1 title: Example" in caplog.text
        assert "p1 URL: https://example.com/" in caplog.text

    def test_close(self, page, http_handler):
        page.close()
        assert http_handler.last.url.path == "/api/page/close"
