"""
Entitlement codec.

Translates between the string columns the store keeps and the in-memory
structures the business logic works on:

- ``User.claimed_mods``: a multiset of claimed mod slots, ``"3[2],7[1]"``
- ``Server.mods``: the active mod-id set, ``"1,3,4"``

Parsing is lenient: one corrupt token is dropped (and logged) rather than
blocking the rest of the field.
"""

import logging
import re
from typing import Dict, Iterable, Iterator, List, Tuple

from modmarket.app.core.exceptions import MalformedEncodingError

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"^(-?\d+)\[(\d+)\]$")


class ClaimedSlots:
    """
    Keyed count of claimed mod slots: mod id -> number of claims.
    
    Counts are always >= 1; a key whose count would reach 0 is removed.
    """
    
    def __init__(self, counts: Dict[int, int] = None):
        self._counts: Dict[int, int] = {}
        for mod_id, count in (counts or {}).items():
            if count > 0:
                self._counts[int(mod_id)] = int(count)
    
    def increment(self, mod_id: int) -> int:
        self._counts[mod_id] = self._counts.get(mod_id, 0) + 1
        return self._counts[mod_id]
    
    def decrement(self, mod_id: int) -> int:
        """Release one claim. Absent keys are left alone (returns 0)."""
        current = self._counts.get(mod_id)
        if current is None:
            return 0
        if current <= 1:
            del self._counts[mod_id]
            return 0
        self._counts[mod_id] = current - 1
        return current - 1
    
    def count(self, mod_id: int) -> int:
        return self._counts.get(mod_id, 0)
    
    def as_dict(self) -> Dict[int, int]:
        return dict(self._counts)
    
    def __contains__(self, mod_id: object) -> bool:
        return mod_id in self._counts
    
    def __iter__(self) -> Iterator[int]:
        return iter(self._counts)
    
    def __len__(self) -> int:
        return len(self._counts)
    
    def __eq__(self, other: object) -> bool:
        if isinstance(other, ClaimedSlots):
            return self._counts == other._counts
        if isinstance(other, dict):
            return self._counts == other
        return NotImplemented
    
    def __repr__(self) -> str:
        return f"ClaimedSlots({self._counts!r})"


def parse_slot_token(token: str) -> Tuple[int, int]:
    """
    Parse one ``modId[count]`` token.
    
    Raises:
        MalformedEncodingError: token does not match the format
    """
    match = _TOKEN_RE.match(token.strip())
    if not match:
        raise MalformedEncodingError(f"Malformed claimed-slot token: {token!r}")
    return int(match.group(1)), int(match.group(2))


def decode_claimed_slots(encoded: str) -> ClaimedSlots:
    """Decode ``User.claimed_mods``; later duplicate keys overwrite earlier ones."""
    counts: Dict[int, int] = {}
    if not encoded or not encoded.strip():
        return ClaimedSlots()
    
    for token in encoded.split(","):
        if not token.strip():
            continue
        try:
            mod_id, count = parse_slot_token(token)
        except MalformedEncodingError as exc:
            logger.debug("Skipping claimed-slot token: %s", exc)
            continue
        counts[mod_id] = count
    
    return ClaimedSlots(counts)


def encode_claimed_slots(slots: ClaimedSlots) -> str:
    """Render ``modId[count]`` tokens joined by ``,`` in ascending id order."""
    counts = slots.as_dict()
    return ",".join(f"{mod_id}[{counts[mod_id]}]" for mod_id in sorted(counts))


def decode_mod_list(encoded: str) -> List[int]:
    """Decode ``Server.mods`` (or ``Bundle.mod_ids``) to a sorted list of unique ids."""
    ids = set()
    if not encoded:
        return []
    for token in encoded.split(","):
        token = token.strip()
        if not token:
            continue
        try:
            ids.add(int(token))
        except ValueError:
            logger.debug("Skipping mod-list token: %r", token)
    return sorted(ids)


def encode_mod_list(mod_ids: Iterable[int]) -> str:
    return ",".join(str(mod_id) for mod_id in sorted(set(mod_ids)))
