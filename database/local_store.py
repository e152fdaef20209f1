import json
import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

PRODUCTS_KEY = "pos_products"
USERS_KEY = "pos_users"
ORDERS_KEY = "pos_orders"
CUSTOMERS_KEY = "pos_customers"


class LocalMirrorStore:
    """
    Key/value mirror of the remote collections, kept in a single JSON file.

    Each key holds a JSON array snapshot. There is no schema validation and no
    locking: a second process writing the same file wins on its next save.
    """

    def __init__(self, path: str):
        self.path = path

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Local mirror %s unreadable, treating as empty: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: Dict[str, Any]) -> None:
        folder = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(folder, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def read(self, collection: str) -> Optional[Any]:
        return self._load().get(collection)

    def write(self, collection: str, snapshot: Any) -> None:
        data = self._load()
        data[collection] = snapshot
        self._dump(data)

    def init(self, defaults: Dict[str, Any]) -> None:
        """Seed each default snapshot whose key is not stored yet."""
        data = self._load()
        missing = [key for key in defaults if key not in data]
        if not missing:
            return
        for key in missing:
            data[key] = defaults[key]
            logger.info("Seeded local mirror key %s", key)
        self._dump(data)
