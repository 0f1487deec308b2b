"""Delete backorder lines that were never delivered and report which products they belonged to."""
import logging
import re
from typing import Optional

from restock.config import config
from restock.models import ProductConfig, SelectorSet
from restock.session.errors import SelectorNotFoundError
from restock.session.web_session import WebSession, click_first, raise_if_logged_out, read_first_text

logger = logging.getLogger(__name__)


def _quantity(text: Optional[str]) -> Optional[int]:
    digits = re.sub(r"\D", "", text or "")
    return int(digits) if digits else None


class BackorderCleaner:
    """Walks the supplier's backorder page and purges lines whose whole quantity is still backordered.

    A line is purged when its ordered quantity equals its backordered quantity,
    i.e. nothing was delivered. The page is reloaded after every deletion so row
    indexes never go stale.
    """

    def __init__(
        self,
        session: WebSession,
        products: list[ProductConfig],
        url: str = config.BACKORDERS_URL,
        selectors: Optional[SelectorSet] = None,
        selector_timeout: float = config.SELECTOR_TIMEOUT,
        max_rows: int = 50,
    ):
        self.session = session
        self.products = products
        self.url = url
        self.selectors = selectors or SelectorSet()
        self.selector_timeout = selector_timeout
        self.max_rows = max_rows

    def _in_row(self, index: int, cells: list[str]) -> list[str]:
        return [f"{row} >> nth={index} >> {cell}" for row in self.selectors.backorder_row for cell in cells]

    def match_product(self, line_name: str) -> Optional[ProductConfig]:
        """Product whose ``backorder_match`` (or name) appears in the backorder line name."""
        name = line_name.upper()
        for product in self.products:
            needle = (product.backorder_match or product.name).upper()
            if needle and needle in name:
                return product
        return None

    async def purge(self) -> list[str]:
        """Purge fully backordered lines; returns the ids of the products they matched."""
        await self.session.goto(self.url)
        purged: list[str] = []
        index = 0
        for _ in range(self.max_rows):
            name = await read_first_text(self.session, self._in_row(index, self.selectors.backorder_name))
            if name is None:
                if index == 0:
                    await raise_if_logged_out(self.session, "backorder cleanup")
                break

            ordered_text = await read_first_text(self.session, self._in_row(index, self.selectors.backorder_ordered_qty))
            backordered_text = await read_first_text(self.session, self._in_row(index, self.selectors.backorder_qty))
            ordered, backordered = _quantity(ordered_text), _quantity(backordered_text)
            if not ordered or ordered != backordered:
                index += 1
                continue

            await self._delete_row(index)
            product = self.match_product(name)
            if product is None:
                logger.warning(f"Purged backorder {name!r} ({ordered} units) matches no watched product")
            else:
                logger.info(f"{product.id}: purged backorder {name!r} ({ordered} units)")
                if product.id not in purged:
                    purged.append(product.id)

            await self.session.goto(self.url)
            index = 0

        return purged

    async def _delete_row(self, index: int) -> None:
        await click_first(self.session, self._in_row(index, self.selectors.backorder_delete), self.selector_timeout)
        try:
            await click_first(self.session, self.selectors.backorder_confirm, self.selector_timeout)
        except SelectorNotFoundError:
            logger.debug("No delete confirmation dialog, continuing")
