"""
Paged Queries

Materializes a result set of unknown size with repeated bounded fetches and
no count query:

    1. Issue "<base> LIMIT P+1 OFFSET O" through a fresh command
    2. More than P rows back: keep the first P, advance O by P, repeat
    3. Otherwise keep everything and stop

The extra row is the only signal that another page exists, so a page that
happens to be exactly full never ends the loop early. Rounds run strictly one
after another. The base query must order its rows deterministically.

Usage:
    rows = fetch_all_pages(
        conn,
        "SELECT number FROM UNNEST(GENERATE_ARRAY(1, 5000)) AS number ORDER BY number",
        page_size=100,
        row_mapper=lambda reader: reader.get_int64(0),
    )
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, List, Optional

from bqclient.reader import DataReader
from bqclient.settings import settings

if TYPE_CHECKING:
    from bqclient.connection import Connection

logger = logging.getLogger(__name__)

RowMapper = Callable[[DataReader], Any]


def default_row_mapper(reader: DataReader) -> Any:
    return reader.get_values()


def build_page_query(base_query: str, limit: int, offset: int) -> str:
    """Append LIMIT/OFFSET to a query, dropping any trailing semicolons."""
    base = base_query.rstrip().rstrip(";").rstrip()
    return f"{base} LIMIT {limit} OFFSET {offset}"


@dataclass
class PageCursor:
    """Progress of one paged fetch."""

    page_size: int
    offset: int = 0
    rows: List[Any] = field(default_factory=list)
    page_count: int = 0
    done: bool = False

    def accept(self, page_rows: List[Any]) -> None:
        """Fold one round's rows (up to page_size + 1) into the cursor."""
        self.page_count += 1
        if len(page_rows) > self.page_size:
            self.rows.extend(page_rows[:self.page_size])
            self.offset += self.page_size
        else:
            self.rows.extend(page_rows)
            self.done = True


@dataclass
class PagedResult:
    rows: List[Any]
    page_count: int

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)


class PagedQuery:
    """
    Runs a base query page by page on one open connection.

    Args:
        connection: Open connection
        base_query: Query without LIMIT/OFFSET, with a stable ORDER BY
        page_size: Rows per page (default: BQCLIENT_DEFAULT_PAGE_SIZE)
        row_mapper: Maps the reader's current row to a result item

    Raises:
        ValueError: If page_size is less than 1
    """

    def __init__(
        self,
        connection: "Connection",
        base_query: str,
        page_size: Optional[int] = None,
        row_mapper: Optional[RowMapper] = None,
    ):
        if page_size is None:
            page_size = settings.default_page_size
        if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
            raise ValueError(f"page_size must be a positive integer, got {page_size!r}")

        self.connection = connection
        self.base_query = base_query
        self.page_size = page_size
        self.row_mapper = row_mapper or default_row_mapper

    def run(self) -> PagedResult:
        """
        Fetch every page.

        A failing round aborts the whole fetch; its error propagates unchanged
        and no partial result is returned.
        """
        cursor = PageCursor(page_size=self.page_size)

        while not cursor.done:
            offset = cursor.offset
            try:
                page_rows = self._fetch_page(offset)
            except Exception as e:
                logger.warning(
                    f"Paged query aborted on page {cursor.page_count + 1} (offset {offset}): {e}"
                )
                raise
            cursor.accept(page_rows)
            logger.debug(f"Page {cursor.page_count} at offset {offset} returned {len(page_rows)} rows")

        logger.debug(f"Paged query finished: {len(cursor.rows)} rows in {cursor.page_count} pages")
        return PagedResult(rows=cursor.rows, page_count=cursor.page_count)

    def _fetch_page(self, offset: int) -> List[Any]:
        sql = build_page_query(self.base_query, self.page_size + 1, offset)
        with self.connection.create_command(sql) as command:
            with command.execute_reader() as reader:
                page_rows = []
                while reader.read():
                    page_rows.append(self.row_mapper(reader))
                return page_rows


def fetch_all_pages(
    connection: "Connection",
    base_query: str,
    page_size: Optional[int] = None,
    row_mapper: Optional[RowMapper] = None,
) -> List[Any]:
    """Run a paged query and return all of its rows."""
    return PagedQuery(connection, base_query, page_size, row_mapper).run().rows
