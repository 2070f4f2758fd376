"""Book Builder Protocol: a graph-linked item store served over a line protocol.

Layout of one book (under the configured data_dir):
    <name>_items.db       # id|TYPE|title|body   (newline -> \\n, | -> \\p)
    <name>_links.db       # a|b with a < b

Adds and links are single-line appends. DELETE compacts: both files are
rewritten from the surviving in-memory state.

Wire protocol: one request line in, one framed reply out
(ERR <CODE> | OK [payload] | block ending in .END).
"""

from bbp.books import BookFiles
from bbp.commands import CommandProcessor
from bbp.config import BBPConfig, init_config, load_config
from bbp.models import Item, ItemType
from bbp.store import ItemStore

__all__ = [
    "BBPConfig",
    "BookFiles",
    "CommandProcessor",
    "Item",
    "ItemStore",
    "ItemType",
    "init_config",
    "load_config",
]
