import json
from typing import Dict, Iterable, List, Optional

from pydantic import TypeAdapter

from tableside.models.schemas import BasketLine

_lines = TypeAdapter(List[BasketLine])


def parse_basket_updates(raw: Optional[str]) -> List[BasketLine]:
    """Decode the JSON-encoded basketUpdates field of an update-basket event"""
    if not raw:
        return []
    if not isinstance(raw, (str, bytes)):
        raise ValueError(f"basketUpdates must be a JSON string, got {type(raw).__name__}")
    return _lines.validate_python(json.loads(raw))


class Basket:
    """Local basket: menu item id -> quantity"""

    def __init__(self, items: Optional[Dict[int, int]] = None):
        self.items: Dict[int, int] = dict(items or {})

    def merge(self, updates: Iterable[BasketLine]) -> Dict[int, int]:
        for line in updates:
            if self.items.get(line.menuItemId):
                self.items[line.menuItemId] += line.quantity
            else:
                self.items[line.menuItemId] = line.quantity
        return self.items

    def __len__(self) -> int:
        return len(self.items)
