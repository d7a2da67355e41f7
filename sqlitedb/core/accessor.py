"""
Shared accessor protocol for records and meta trees.

Reads are soft-typed: the default passed to get() selects the type family
the stored value is coerced into, and every failure falls back to that
default. Nothing in this module raises to the caller.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable, Optional, Tuple

from .crypto import CryptoError, ICryptoProvider
from .values import TypedValue, ValueKind
from ..util.logging import logger

TRUE_WORDS = ("true", "1", "yes", "t", "y")
FALSE_WORDS = ("false", "0", "no", "f", "n")


def parse_bool(text: str) -> Optional[bool]:
    """Parse canonical boolean text; None when it is not a boolean."""
    word = text.strip().lower()
    if word in TRUE_WORDS:
        return True
    if word in FALSE_WORDS:
        return False
    return None


def try_coerce(stored: TypedValue, hint: Any) -> Tuple[bool, Any]:
    """Coerce a stored value into the type family of `hint`.

    Returns (ok, value). Integer, boolean, float and text hints go through
    the canonical render-then-parse path so every kind is handled the same
    way; bytes and datetime hints need a matching kind (or ISO text).
    """
    if stored.is_null:
        return False, None
    if hint is None:
        return True, stored.to_native()

    text = stored.render()
    # bool before int, it is a subclass
    if isinstance(hint, bool):
        parsed = parse_bool(text)
        return parsed is not None, parsed
    if isinstance(hint, int):
        if stored.is_integer:
            return True, int(stored.value)
        try:
            return True, int(text)
        except ValueError:
            return False, None
    if isinstance(hint, float):
        if stored.kind is ValueKind.BOOLEAN:
            return False, None
        try:
            return True, float(text)
        except ValueError:
            return False, None
    if isinstance(hint, str):
        return True, text
    if isinstance(hint, bytes):
        if stored.kind is ValueKind.BLOB:
            return True, stored.value
        return False, None
    if isinstance(hint, datetime):
        if stored.kind is ValueKind.DATE:
            return True, stored.value
        if stored.kind is ValueKind.TEXT:
            try:
                return True, datetime.fromisoformat(text)
            except ValueError:
                return False, None
        return False, None

    native = stored.to_native()
    if isinstance(native, type(hint)):
        return True, native
    return False, None


def coerce(stored: TypedValue, default: Any) -> Any:
    ok, value = try_coerce(stored, default)
    return value if ok else default


def fold_key(name: str) -> str:
    """Case-insensitive form of a key, shared by records and meta trees."""
    return name.casefold()


def match_key(keys: Iterable[str], name: str) -> Optional[str]:
    """First key equal to `name` ignoring case, or None."""
    folded = fold_key(name)
    for key in keys:
        if fold_key(key) == folded:
            return key
    return None


class Accessor(ABC):
    """Default-hinted get / transform-capable set shared by Record and MetaNode."""

    @abstractmethod
    def has_key(self, name: str) -> bool:
        """Case-insensitive existence test."""
        pass

    @abstractmethod
    def _lookup(self, name: str) -> Any:
        """Stored item for an existing key (TypedValue or a nested container)."""
        pass

    @abstractmethod
    def set(self, name: str, value: Any, crypto: Optional[ICryptoProvider] = None) -> None:
        pass

    def get(self, name: str, default: Any = None, crypto: Optional[ICryptoProvider] = None) -> Any:
        """Value under `name` coerced to the type of `default`, else `default`."""
        if not self.has_key(name):
            return default
        stored = self._lookup(name)
        if not isinstance(stored, TypedValue):
            if default is None or isinstance(stored, type(default)):
                return stored
            return default
        ok, revealed = self._reveal(name, stored, crypto)
        if not ok:
            return default
        return coerce(revealed, default)

    def _reveal(self, name: str, stored: TypedValue, crypto: Optional[ICryptoProvider]) -> Tuple[bool, TypedValue]:
        if crypto is None or stored.kind is not ValueKind.TEXT:
            return True, stored
        try:
            return True, TypedValue(ValueKind.TEXT, crypto.decrypt(stored.value))
        except CryptoError as e:
            logger.warning(f"Decryption failed for key '{name}': {e}")
            return False, stored

    def _conceal(self, name: str, value: Any, crypto: Optional[ICryptoProvider]) -> Tuple[bool, Any]:
        if crypto is None or not isinstance(value, str):
            return True, value
        try:
            return True, crypto.encrypt(value)
        except CryptoError as e:
            logger.warning(f"Encryption failed for key '{name}': {e}")
            return False, value

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has_key(name)
