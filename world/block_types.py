"""Block classification used by the pathfinder's cost and exclusion rules."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Protocol, Union

CellValue = Union[int, float]


class BlockClass(Enum):
    AIR = "air"
    BEDROCK = "bedrock"
    SOLID = "solid"
    LIQUID = "liquid"


@dataclass(frozen=True)
class BlockDef:
    name: str
    block_class: BlockClass = BlockClass.SOLID


BlockRegistry = Dict[int, BlockDef]

DEFAULT_REGISTRY: BlockRegistry = {
    0: BlockDef("air", BlockClass.AIR),
    7: BlockDef("bedrock", BlockClass.BEDROCK),
    8: BlockDef("flowing_water", BlockClass.LIQUID),
    9: BlockDef("water", BlockClass.LIQUID),
    10: BlockDef("flowing_lava", BlockClass.LIQUID),
    11: BlockDef("lava", BlockClass.LIQUID),
}


class BlockClassifier(Protocol):
    def classify(self, value: Optional[CellValue]) -> BlockClass:
        ...

    def air_value(self) -> CellValue:
        ...


class RegistryClassifier:
    """Classify stored block ids through a registry lookup.

    ``unobserved`` is returned for cells the store has no data for, and
    ``unknown`` for ids missing from the registry. Fractional values never
    name a block id and classify as ``unknown`` too.
    """

    def __init__(
        self,
        registry: Optional[BlockRegistry] = None,
        *,
        unknown: BlockClass = BlockClass.SOLID,
        unobserved: BlockClass = BlockClass.AIR,
    ) -> None:
        self.registry: BlockRegistry = dict(DEFAULT_REGISTRY if registry is None else registry)
        self.unknown = unknown
        self.unobserved = unobserved

    def classify(self, value: Optional[CellValue]) -> BlockClass:
        if value is None:
            return self.unobserved
        if value != int(value):
            return self.unknown
        block = self.registry.get(int(value))
        if block is None:
            return self.unknown
        return block.block_class

    def air_value(self) -> int:
        """Return the id recorded for cells known to be empty."""
        for block_id, block in sorted(self.registry.items()):
            if block.block_class is BlockClass.AIR:
                return block_id
        raise LookupError("registry has no air block")
