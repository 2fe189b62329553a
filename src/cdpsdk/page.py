"""Page facade over HTTPClient.

PUBLIC API:
  - Page: Client operations curried with one page ID
"""

import logging
from typing import TYPE_CHECKING, Any, Callable, List

from cdpsdk.locator import Locator

if TYPE_CHECKING:
    from cdpsdk.http_client import HTTPClient

logger = logging.getLogger(__name__)


class Page:
    """One remote page.

    Every method forwards to the client with this page's ID. The service owns
    the page lifecycle; a Page is only a handle.

    Attributes:
        client: Client the calls are forwarded to.
        page_id: Remote page ID.
    """

    def __init__(self, client: "HTTPClient", page_id: str):
        self.client = client
        self.page_id = page_id

    def __repr__(self) -> str:
        return f"Page(page_id={self.page_id!r})"

    # Navigation

    def navigate(self, url: str) -> None:
        self.client.navigate(self.page_id, url)

    def navigate_with_loaded_state(self, url: str) -> None:
        self.client.navigate_with_loaded_state(self.page_id, url)

    def reload(self) -> None:
        self.client.reload(self.page_id)

    def reload_with_loaded_state(self) -> None:
        self.client.reload_with_loaded_state(self.page_id)

    # Page info

    def get_title(self) -> str:
        return self.client.get_title(self.page_id)

    def get_url(self) -> str:
        return self.client.get_url(self.page_id)

    def log_title(self) -> str:
        """Fetch the title, log it at INFO and return it."""
        title = self.get_title()
        logger.info(f"Page {self.page_id} title: {title}")
        return title

    def log_url(self) -> str:
        url = self.get_url()
        logger.info(f"Page {self.page_id} URL: {url}")
        return url

    def get_html(self) -> str:
        return self.client.get_html(self.page_id)

    def execute_script(self, script: str) -> Any:
        return self.client.execute_script(self.page_id, script)

    def screenshot(self, format: str = "png") -> bytes:
        return self.client.screenshot(self.page_id, format)

    # Waiting

    def wait_for_load_state_load(self) -> None:
        self.client.wait_for_load_state_load(self.page_id)

    def wait_for_dom_content_loaded(self) -> None:
        self.client.wait_for_dom_content_loaded(self.page_id)

    def wait_for_selector_visible(self, selector: str) -> None:
        self.client.wait_for_selector_visible(self.page_id, selector)

    def wait(self, selector: str, timeout: int = 10000) -> None:
        self.client.element_wait(self.page_id, selector, timeout)

    # Advanced

    def expect_response_text(self, url_or_predicate: str, callback: str) -> str:
        return self.client.expect_response_text(self.page_id, url_or_predicate, callback)

    def must_inner_text(self, selector: str) -> str:
        return self.client.must_inner_text(self.page_id, selector)

    def must_text_content(self, selector: str) -> str:
        return self.client.must_text_content(self.page_id, selector)

    def expect_ext_page(self, callback: str) -> "Page":
        """Run callback and return a Page for the tab it opens."""
        return Page(self.client, self.client.expect_ext_page(self.page_id, callback))

    def release(self) -> None:
        self.client.release(self.page_id)

    def close_all(self) -> None:
        self.client.close_all(self.page_id)

    def close(self) -> None:
        self.client.close_page(self.page_id)

    # Elements

    def locator(self, selector: str) -> Locator:
        return Locator(self.client, self.page_id, (selector,))

    def exists(self, selector: str) -> bool:
        return self.client.element_exists(self.page_id, selector)

    def text(self, selector: str) -> str:
        return self.client.element_text(self.page_id, selector)

    def click(self, selector: str) -> None:
        self.client.element_click(self.page_id, selector)

    def hover(self, selector: str) -> None:
        self.client.element_hover(self.page_id, selector)

    def set_value(self, selector: str, value: str) -> None:
        self.client.element_set_value(self.page_id, selector, value)

    def attribute(self, selector: str, attr: str) -> str:
        return self.client.element_attribute(self.page_id, selector, attr)

    def all_texts(self, selector: str) -> List[str]:
        return self.client.element_all_texts(self.page_id, selector)

    def all_attributes(self, selector: str, attr: str) -> List[str]:
        return self.client.element_all_attributes(self.page_id, selector, attr)

    def count(self, selector: str) -> int:
        return self.client.element_count(self.page_id, selector)

    # Chaining

    def navigate_then(self, url: str, callback: Callable[["Page"], Any]) -> Any:
        """Navigate, then hand this page to callback and return its result."""
        self.navigate(url)
        return callback(self)

    def navigate_and_wait(self, url: str, wait: Callable[["Page"], Any]) -> Any:
        """Navigate, then run wait (e.g. a wait_for_selector call) on this page."""
        return self.navigate_then(url, wait)

    def click_then(self, selector: str, callback: Callable[["Page"], Any]) -> Any:
        self.click(selector)
        return callback(self)

    def set_value_then(self, selector: str, value: str, callback: Callable[["Page"], Any]) -> Any:
        self.set_value(selector, value)
        return callback(self)


__all__ = ["Page"]
