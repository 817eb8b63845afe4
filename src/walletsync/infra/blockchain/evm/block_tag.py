"""Block reference accepted by eth_getBlockByNumber / eth_getBalance."""

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional


class BlockTagKind(str, Enum):
    LATEST = "latest"
    EARLIEST = "earliest"
    PENDING = "pending"
    NUMBER = "number"


@dataclass(frozen=True)
class BlockTag:
    """Either a symbolic tag or a concrete block height.

    Two tags are equal when their wire strings are equal.
    """

    kind: BlockTagKind
    number: Optional[int] = None

    LATEST: ClassVar["BlockTag"]
    EARLIEST: ClassVar["BlockTag"]
    PENDING: ClassVar["BlockTag"]

    def __post_init__(self) -> None:
        if self.kind == BlockTagKind.NUMBER:
            if self.number is None or self.number < 0:
                raise ValueError(f"Block height must be a non-negative int, got {self.number!r}")
        elif self.number is not None:
            raise ValueError(f"Symbolic tag {self.kind.value} cannot carry a height")

    @classmethod
    def of(cls, height: int) -> "BlockTag":
        return cls(BlockTagKind.NUMBER, height)

    @classmethod
    def parse(cls, raw: str) -> "BlockTag":
        """Parse a wire string. Unparseable heights fall back to block 0."""
        for kind in (BlockTagKind.LATEST, BlockTagKind.EARLIEST, BlockTagKind.PENDING):
            if raw == kind.value:
                return cls(kind)
        digits = raw[2:] if raw.startswith("0x") else raw
        try:
            height = int(digits, 16)
        except ValueError:
            height = 0
        return cls.of(max(height, 0))

    @property
    def value(self) -> str:
        if self.kind == BlockTagKind.NUMBER:
            return hex(self.number)
        return self.kind.value

    def precedes(self, other: "BlockTag") -> bool:
        """Ordering used when comparing a requested tag against another.

        Only meaningful for height-vs-height or height-vs-symbolic checks;
        symbolic-vs-symbolic results are not a total order (LATEST precedes
        itself, PENDING precedes everything).
        """
        if self.kind == BlockTagKind.EARLIEST:
            return False
        if self.kind == BlockTagKind.LATEST:
            return other.kind != BlockTagKind.PENDING
        if self.kind == BlockTagKind.PENDING:
            return True
        if other.kind == BlockTagKind.EARLIEST:
            return False
        if other.kind == BlockTagKind.NUMBER:
            return self.number < other.number
        return True

    def __str__(self) -> str:
        return self.value


BlockTag.LATEST = BlockTag(BlockTagKind.LATEST)
BlockTag.EARLIEST = BlockTag(BlockTagKind.EARLIEST)
BlockTag.PENDING = BlockTag(BlockTagKind.PENDING)
