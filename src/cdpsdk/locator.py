"""Chainable element locator.

PUBLIC API:
  - Locator: Immutable selector chain bound to a page
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from cdpsdk.http_client import HTTPClient


@dataclass(frozen=True)
class Locator:
    """Selector chain bound to one page.

    Each fragment narrows the previous one as a CSS descendant selector, so
    ``page.locator("div").locator("p")`` targets ``"div p"``. Chaining returns
    a new Locator and leaves the parent untouched.

    Attributes:
        client: Client the calls are forwarded to.
        page_id: Page the selector is evaluated in.
        selectors: Ordered selector fragments.
    """

    client: "HTTPClient" = field(repr=False, compare=False)
    page_id: str
    selectors: tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, "selectors", tuple(self.selectors))

    @property
    def selector(self) -> str:
        """Effective selector string."""
        return " ".join(self.selectors)

    def locator(self, selector: str) -> "Locator":
        """Narrow to descendants matching selector."""
        return Locator(self.client, self.page_id, self.selectors + (selector,))

    def exists(self) -> bool:
        return self.client.element_exists(self.page_id, self.selector)

    def text(self) -> str:
        return self.client.element_text(self.page_id, self.selector)

    def click(self) -> None:
        self.client.element_click(self.page_id, self.selector)

    def hover(self) -> None:
        self.client.element_hover(self.page_id, self.selector)

    def set_value(self, value: str) -> None:
        self.client.element_set_value(self.page_id, self.selector, value)

    def attribute(self, attr: str) -> str:
        return self.client.element_attribute(self.page_id, self.selector, attr)

    def all_texts(self) -> List[str]:
        return self.client.element_all_texts(self.page_id, self.selector)

    def all_attributes(self, attr: str) -> List[str]:
        return self.client.element_all_attributes(self.page_id, self.selector, attr)

    def count(self) -> int:
        return self.client.element_count(self.page_id, self.selector)

    def wait(self, timeout: int = 10000) -> None:
        self.client.element_wait(self.page_id, self.selector, timeout)

    def wait_visible(self) -> None:
        self.client.wait_for_selector_visible(self.page_id, self.selector)

    def inner_text(self) -> str:
        return self.client.must_inner_text(self.page_id, self.selector)

    def text_content(self) -> str:
        return self.client.must_text_content(self.page_id, self.selector)


__all__ = ["Locator"]
