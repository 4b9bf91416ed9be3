"""Symbolic state identifiers and their resolution to slots and roots."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from .api.types import ChainHead
from .codec import decode_hex, encode_hex
from .exceptions import DecodingError, InvalidIdentifier, NotSupported
from .spec.constants import GENESIS_SLOT, UINT64_MAX

logger = logging.getLogger(__name__)


class StateIdKind(str, Enum):
    GENESIS = "genesis"
    JUSTIFIED = "justified"
    FINALIZED = "finalized"
    HEAD = "head"
    SLOT = "slot"
    ROOT = "root"


_SYMBOLIC = {
    "genesis": StateIdKind.GENESIS,
    "justified": StateIdKind.JUSTIFIED,
    "finalized": StateIdKind.FINALIZED,
    "head": StateIdKind.HEAD,
}


@dataclass(frozen=True)
class StateIdentifier:
    """A reference to a beacon state: symbolic, by slot or by state root."""

    kind: StateIdKind
    slot: Optional[int] = None
    root: Optional[bytes] = None

    @classmethod
    def parse(cls, value: Union[str, int, bytes, "StateIdentifier"]) -> "StateIdentifier":
        """Interpret a caller-supplied state identifier.

        Accepts ``genesis``, ``justified``, ``finalized``, ``head``, a decimal
        slot (string or int), a ``0x``-prefixed 32-byte root or the root as
        raw bytes.

        Raises:
            InvalidIdentifier: the value fits none of the accepted forms
        """
        if isinstance(value, StateIdentifier):
            return value
        if isinstance(value, bool):
            raise InvalidIdentifier(f"invalid state ID {value!r}")
        if isinstance(value, (bytes, bytearray)):
            return cls.at_root(value)
        if isinstance(value, int):
            return cls.at_slot(value)
        if not isinstance(value, str):
            raise InvalidIdentifier(f"invalid state ID {value!r}")

        if value in _SYMBOLIC:
            return cls(_SYMBOLIC[value])
        if value.startswith("0x"):
            try:
                return cls(StateIdKind.ROOT, root=decode_hex(value, 32))
            except DecodingError as e:
                raise InvalidIdentifier(f"invalid state root {value}: {e.message}") from e
        if not value or not value.isdigit() or not value.isascii():
            raise InvalidIdentifier(f"invalid state ID {value}")
        return cls.at_slot(int(value))

    @classmethod
    def at_slot(cls, slot: int) -> "StateIdentifier":
        if slot < 0 or slot > UINT64_MAX:
            raise InvalidIdentifier(f"slot {slot} is outside the uint64 range")
        return cls(StateIdKind.SLOT, slot=slot)

    @classmethod
    def at_root(cls, root: bytes) -> "StateIdentifier":
        if len(root) != 32:
            raise InvalidIdentifier(f"state root must be 32 bytes, got {len(root)}")
        return cls(StateIdKind.ROOT, root=bytes(root))

    @property
    def is_symbolic(self) -> bool:
        return self.kind not in (StateIdKind.SLOT, StateIdKind.ROOT)

    def __str__(self) -> str:
        if self.kind is StateIdKind.SLOT:
            return str(self.slot)
        if self.kind is StateIdKind.ROOT:
            return encode_hex(self.root)
        return self.kind.value


StateIdLike = Union[str, int, bytes, StateIdentifier]


def epoch_at_slot(slot: int, slots_per_epoch: int) -> int:
    return slot // slots_per_epoch


def start_slot_of_epoch(epoch: int, slots_per_epoch: int) -> int:
    return epoch * slots_per_epoch


class StateResolver:
    """Resolves state identifiers against one backend.

    Symbolic identifiers other than ``genesis`` always fetch a fresh chain
    head. Roots go through the backend's own root-to-slot lookup.

    Args:
        chain_head: fetches the current chain head
        root_to_slot: maps a state root to its slot
        slots_per_epoch: returns the (cached) slots-per-epoch constant
        slot_to_root: optional, maps a slot to its state root
    """

    def __init__(
        self,
        chain_head: Callable[[], Awaitable[ChainHead]],
        root_to_slot: Callable[[bytes], Awaitable[int]],
        slots_per_epoch: Callable[[], Awaitable[int]],
        slot_to_root: Optional[Callable[[int], Awaitable[bytes]]] = None,
    ):
        self._chain_head = chain_head
        self._root_to_slot = root_to_slot
        self._slots_per_epoch = slots_per_epoch
        self._slot_to_root = slot_to_root

    async def slot(self, state_id: StateIdLike) -> int:
        ident = StateIdentifier.parse(state_id)
        if ident.kind is StateIdKind.GENESIS:
            return GENESIS_SLOT
        if ident.kind is StateIdKind.SLOT:
            return ident.slot
        if ident.kind is StateIdKind.ROOT:
            return await self._root_to_slot(ident.root)

        head = await self._chain_head()
        if ident.kind is StateIdKind.HEAD:
            return head.slot
        if ident.kind is StateIdKind.JUSTIFIED:
            return head.justified_slot
        return head.finalized_slot

    async def epoch(self, state_id: StateIdLike) -> int:
        slot = await self.slot(state_id)
        return epoch_at_slot(slot, await self._slots_per_epoch())

    async def state_root(self, state_id: StateIdLike) -> bytes:
        ident = StateIdentifier.parse(state_id)
        if ident.kind is StateIdKind.ROOT:
            return ident.root
        if ident.kind is StateIdKind.HEAD:
            head = await self._chain_head()
            return head.state_root
        if self._slot_to_root is None:
            raise NotSupported(f"cannot resolve state root for {ident}")
        return await self._slot_to_root(await self.slot(ident))
