"""Caption tags that mark a relay object as one part of a larger file."""

import re
from dataclasses import dataclass
from typing import Optional

PART_TAG_PATTERN = re.compile(r'\.part(\d+)/(\d+)$')


@dataclass(frozen=True)
class PartTag:
    """Parsed ``{base_name}.part{index}/{total}`` caption."""
    base_name: str
    index: int
    total: int

    def sibling(self, index: int) -> 'PartTag':
        return PartTag(self.base_name, index, self.total)

    def __str__(self) -> str:
        return format_part_tag(self.base_name, self.index, self.total)


def format_part_tag(base_name: str, index: int, total: int) -> str:
    """
    Build the caption for part ``index`` of ``total``.

    Raises:
        ValueError: If index is outside 1..total
    """
    if total < 1 or not 1 <= index <= total:
        raise ValueError(f"Invalid part position {index}/{total}")
    return f"{base_name}.part{index}/{total}"


def parse_part_tag(caption: Optional[str]) -> Optional[PartTag]:
    """
    Parse a relay caption.

    Returns:
        PartTag, or None when the caption is empty, does not match the part
        pattern, or names an impossible position (the object is then treated
        as a whole, untagged file)
    """
    if not caption:
        return None

    match = PART_TAG_PATTERN.search(caption)
    if match is None:
        return None

    index, total = int(match.group(1)), int(match.group(2))
    if total < 1 or not 1 <= index <= total:
        return None

    return PartTag(base_name=caption[:match.start()], index=index, total=total)
