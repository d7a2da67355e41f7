"""
Meta tree - a case-insensitive, JSON backed key/value tree with change signatures.

Nested objects become nested MetaNodes. Arrays become a single nested node
into which their object/array elements are merged; scalar array elements
are dropped. The signature of a node is its compact JSON rendering with
sorted keys, and the baseline is re-captured by load() and reset_signature().
"""

import json
from typing import Any, Dict, Iterator, List, Optional, Union

from .accessor import Accessor, match_key
from .config import ARCHIVE_KEY
from .crypto import CryptoError, ICryptoProvider
from .values import TypedValue, ValueKind
from ..util.logging import logger


def _scalar(value: Any) -> TypedValue:
    """Typed storage for a JSON scalar: int, bool and str pass through, null stays null."""
    if value is None:
        return TypedValue.null()
    if isinstance(value, bool):
        return TypedValue(ValueKind.BOOLEAN, value)
    if isinstance(value, int):
        return TypedValue.integer(value)
    if isinstance(value, str):
        return TypedValue(ValueKind.TEXT, value)
    return TypedValue(ValueKind.TEXT, str(value))


class MetaNode(Accessor):
    """Recursive key/value tree with JSON import/export and baseline signatures."""

    def __init__(self, json_text: Optional[str] = None):
        self._coll: Dict[str, Union[TypedValue, 'MetaNode']] = {}
        self._original_signature = self.to_json(True)
        if json_text is not None:
            self.load(json_text)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MetaNode':
        node = cls()
        node._load_dict(data)
        node.reset_signature()
        return node

    def load(self, json_text: str, clear: bool = True) -> None:
        """Load (or merge, with clear=False) a JSON object.

        Parse errors and documents nested too deeply are logged, never
        raised; the tree keeps what it held and that becomes the baseline.
        """
        if clear:
            self.clear()
        try:
            parsed = json.loads(json_text)
            if isinstance(parsed, dict):
                # Build aside so a document too deep to handle leaves no half-built branch
                staged = MetaNode()
                staged._load_dict(parsed)
                staged.reset_signature()
                for key, item in staged._coll.items():
                    self._put(key, item)
            else:
                logger.log_meta_operation("load", "ignored",
                                          {"reason": f"top level is {type(parsed).__name__}, not an object"})
        except (ValueError, TypeError, RecursionError) as e:
            # JSONDecodeError and UnicodeDecodeError are ValueErrors
            logger.log_meta_operation("load", "failed", {"error": f"{type(e).__name__}: {e}"})
        self.reset_signature()

    def _load_dict(self, data: Dict[str, Any]) -> None:
        for key, value in data.items():
            if isinstance(value, dict):
                sub = MetaNode()
                sub._load_dict(value)
                self._put(key, sub)
            elif isinstance(value, list):
                sub = MetaNode()
                sub._load_items(value)
                self._put(key, sub)
            else:
                self._put(key, _scalar(value))

    def _load_items(self, items: List[Any]) -> None:
        # Arrays are flattened into this node; scalar elements are not kept
        for item in items:
            if isinstance(item, dict):
                self._load_dict(item)
            elif isinstance(item, list):
                self._load_items(item)

    def _matched_key(self, key: str) -> str:
        matched = match_key(self._coll, key)
        return matched if matched is not None else key.lower()

    def _put(self, key: str, item: Union[TypedValue, 'MetaNode']) -> None:
        self._coll[self._matched_key(key)] = item

    def has_key(self, key: str) -> bool:
        return match_key(self._coll, key) is not None

    def _lookup(self, key: str) -> Union[TypedValue, 'MetaNode']:
        return self._coll[self._matched_key(key)]

    def set(self, key: str, value: Any, crypto: Optional[ICryptoProvider] = None) -> None:
        """Store a value; None removes the key, dicts and lists become nested nodes."""
        if value is None:
            self.remove(key)
            return
        if isinstance(value, MetaNode):
            self._put(key, value)
        elif isinstance(value, dict):
            self._put(key, MetaNode.from_dict(value))
        elif isinstance(value, list):
            sub = MetaNode()
            sub._load_items(value)
            sub.reset_signature()
            self._put(key, sub)
        else:
            ok, stored = self._conceal(key, value, crypto)
            if ok:
                self._put(key, TypedValue.from_native(stored))

    def set_or_remove(self, key: str, value: Any, crypto: Optional[ICryptoProvider] = None) -> None:
        """set(), except that None and empty strings remove the key."""
        if value is None or (isinstance(value, str) and len(value) == 0):
            self.remove(key)
            return
        self.set(key, value, crypto)

    def remove(self, key: str) -> bool:
        matched = match_key(self._coll, key)
        if matched is None:
            return False
        del self._coll[matched]
        return True

    def clear(self) -> None:
        self._coll.clear()

    def add(self, collection: Dict[str, Any], crypto: Optional[ICryptoProvider] = None) -> None:
        for key, value in collection.items():
            self.set(key, value, crypto)

    def add_sub(self, key: str, json_text: str) -> 'MetaNode':
        """Parse `json_text` into a new nested node stored under `key`."""
        sub = MetaNode(json_text)
        self._put(key, sub)
        return sub

    def encrypt(self, value: str, crypto: ICryptoProvider) -> str:
        ok, encrypted = self._conceal("<value>", value, crypto)
        return encrypted if ok else ""

    def decrypt(self, value: str, crypto: ICryptoProvider) -> str:
        try:
            return crypto.decrypt(value)
        except CryptoError as e:
            logger.warning(f"Decryption failed: {e}")
            return ""

    def decrypt_key(self, key: str, crypto: ICryptoProvider) -> str:
        """Decrypted text stored under `key` ("" when missing or undecryptable)."""
        return self.get(key, "", crypto)

    def reset_signature(self) -> None:
        """Make the current state the baseline, for this node and every nested node."""
        self._original_signature = self.to_json(True)
        for item in self._coll.values():
            if isinstance(item, MetaNode):
                item.reset_signature()

    def has_changed(self) -> bool:
        return self._original_signature != self.to_json(True)

    def get_signature(self, archive_original: bool = False, archive_key: str = ARCHIVE_KEY) -> str:
        """Sorted JSON rendering, optionally with the baseline embedded.

        With archive_original, a changed tree is rendered with its baseline
        as a nested node under `archive_key`. The tree itself is left as it
        was. An existing scalar under `archive_key` suppresses the archive;
        an existing nested node there is hidden for the rendering and put
        back afterwards. A blank `archive_key` gives "".
        """
        if not archive_key.strip():
            return ""
        ret = self.to_json(True)
        if archive_original and ret != self._original_signature:
            existing = match_key(self._coll, archive_key)
            if existing is None or isinstance(self._coll[existing], MetaNode):
                slot = existing if existing is not None else archive_key.lower()
                snapshot = dict(self._coll)
                self._coll[slot] = MetaNode(self._original_signature)
                ret = self.to_json(True)
                self._coll = snapshot
        return ret

    def to_dict(self) -> Dict[str, Any]:
        ret = {}
        for key, item in self._coll.items():
            if isinstance(item, MetaNode):
                ret[key] = item.to_dict()
            else:
                ret[key] = item.to_json_value()
        return ret

    def to_json(self, sorted: bool = False) -> str:
        """Compact JSON. sorted=True gives the deterministic signature form."""
        return json.dumps(self.to_dict(), sort_keys=sorted, separators=(",", ":"), ensure_ascii=False)

    def keys(self) -> List[str]:
        return list(self._coll.keys())

    @staticmethod
    def pairs_to_json(*args: Any) -> str:
        """JSON object from alternating key, value arguments; values are stringified."""
        data = {}
        for key, value in zip(args[0::2], args[1::2]):
            data[str(key)] = "{NULL}" if value is None else str(value)
        return json.dumps(data, separators=(",", ":"), ensure_ascii=False)

    def __getitem__(self, key: str) -> Any:
        item = self.get(key)
        return "" if item is None else item

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __delitem__(self, key: str) -> None:
        self.remove(key)

    def __len__(self) -> int:
        return len(self._coll)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __repr__(self) -> str:
        return f"MetaNode({self.to_json(True)})"
