"""Turn a Textract block graph into form fields and table grids.

Textract returns a flat list of blocks linked by id. Form fields are
``KEY_VALUE_SET`` blocks whose CHILD relationships point at WORD blocks and
whose VALUE relationship points at the value side. Tables are ``TABLE``
blocks whose children are ``CELL`` blocks carrying 1-based row and column
indices; Textract omits cells it found nothing in, so the grid has to be
rebuilt from the sparse coordinates.
"""

from decimal import ROUND_HALF_UP, Decimal
from functools import cmp_to_key
from typing import Any, Dict, Iterable, List, Optional

from ..common.exceptions import ParsingError
from ..common.models import ExtractedDocument, TableCell
from ..utils.safe_log import safe_log

# Words whose tops differ by less than this (fraction of page height) are on the same line
LINE_TOLERANCE = 0.01

Block = Dict[str, Any]
BlockMap = Dict[str, Block]


def round_confidence(value: float) -> float:
    """Round a confidence score to one decimal place, halves away from zero."""
    return float(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def build_block_map(blocks: Iterable[Block]) -> BlockMap:
    """Index blocks by id."""
    return {block["Id"]: block for block in blocks if "Id" in block}


def _bounding_box(block: Block) -> Optional[Dict[str, float]]:
    return (block.get("Geometry") or {}).get("BoundingBox")


def _compare_reading_order(a: Block, b: Block) -> int:
    box_a = _bounding_box(a)
    box_b = _bounding_box(b)
    if not box_a or not box_b:
        return 0

    y_diff = box_a.get("Top", 0) - box_b.get("Top", 0)
    if abs(y_diff) < LINE_TOLERANCE:
        x_diff = box_a.get("Left", 0) - box_b.get("Left", 0)
    else:
        x_diff = y_diff
    if x_diff < 0:
        return -1
    if x_diff > 0:
        return 1
    return 0


def sort_word_blocks(blocks: Iterable[Block]) -> List[Block]:
    """Sort word blocks top to bottom, then left to right within a line.

    The line tolerance makes this a comparison rather than a key (two words
    can each be "on the same line" as a third without being on the same line
    as each other), so it goes through ``cmp_to_key``. Blocks without a
    bounding box compare equal and keep their input order.
    """
    return sorted(blocks, key=cmp_to_key(_compare_reading_order))


def _relationship_ids(block: Block, relationship_type: str) -> List[str]:
    ids: List[str] = []
    for relationship in block.get("Relationships") or []:
        if relationship.get("Type") == relationship_type:
            ids.extend(relationship.get("Ids") or [])
    return ids


def text_from_ids(ids: Iterable[str], block_map: BlockMap) -> str:
    """Join the text of the WORD blocks among ``ids`` in reading order."""
    word_blocks = [
        block_map[block_id]
        for block_id in ids
        if block_id in block_map and block_map[block_id].get("BlockType") == "WORD"
    ]
    return " ".join(block["Text"] for block in sort_word_blocks(word_blocks) if block.get("Text"))


def text_from_relationship(block: Block, block_map: BlockMap, entity_type: str) -> str:
    """Text of a block's CHILD words, if the block has the given entity type."""
    if entity_type not in (block.get("EntityTypes") or []) or not block.get("Relationships"):
        return ""
    return text_from_ids(_relationship_ids(block, "CHILD"), block_map)


def _value_word_ids(value_ids: Iterable[str], block_map: BlockMap) -> List[str]:
    """Resolve VALUE relationship ids to word ids.

    VALUE normally points at a KEY_VALUE_SET block of entity type VALUE whose
    CHILD relationships hold the words; WORD ids referenced directly are kept.
    """
    word_ids: List[str] = []
    for value_id in value_ids:
        value_block = block_map.get(value_id)
        if not value_block:
            continue
        if value_block.get("BlockType") == "KEY_VALUE_SET":
            word_ids.extend(_relationship_ids(value_block, "CHILD"))
        else:
            word_ids.append(value_id)
    return word_ids


def extract_key_value_pairs(blocks: List[Block], block_map: Optional[BlockMap] = None):
    """Pull form fields out of KEY_VALUE_SET blocks.

    Returns:
        Tuple of (key -> value text, key -> key block confidence rounded to 1dp).
        A key seen twice keeps the last value.
    """
    if block_map is None:
        block_map = build_block_map(blocks)

    key_value_pairs: Dict[str, str] = {}
    confidence_scores: Dict[str, float] = {}

    for block in blocks:
        if block.get("BlockType") != "KEY_VALUE_SET":
            continue
        if "KEY" not in (block.get("EntityTypes") or []):
            continue

        key = text_from_relationship(block, block_map, "KEY")
        if not key:
            continue

        value_ids = _relationship_ids(block, "VALUE")
        if not value_ids:
            continue

        value = text_from_ids(_value_word_ids(value_ids, block_map), block_map)
        if not value:
            continue

        key_value_pairs[key] = value
        confidence_scores[key] = round_confidence(float(block.get("Confidence") or 0))

    return key_value_pairs, confidence_scores


def _cell_from_block(cell_block: Block, block_map: BlockMap) -> TableCell:
    words = [
        block_map[word_id]
        for word_id in _relationship_ids(cell_block, "CHILD")
        if word_id in block_map and block_map[word_id].get("BlockType") == "WORD"
    ]
    text = " ".join(word.get("Text", "") for word in words)
    if words:
        confidence = sum(float(word.get("Confidence") or 0) for word in words) / len(words)
    else:
        confidence = 0
    return TableCell(
        text=text,
        confidence=round_confidence(confidence),
        row_index=int(cell_block.get("RowIndex") or 0),
        column_index=int(cell_block.get("ColumnIndex") or 0),
    )


def build_table_grid(table_block: Block, block_map: BlockMap) -> List[List[TableCell]]:
    """Rebuild a dense row-major grid from a TABLE block's sparse CELL children."""
    cells_by_position: Dict[tuple, TableCell] = {}
    for cell_id in _relationship_ids(table_block, "CHILD"):
        cell_block = block_map.get(cell_id)
        if not cell_block or cell_block.get("BlockType") != "CELL":
            continue
        cell = _cell_from_block(cell_block, block_map)
        cells_by_position[(cell.row_index, cell.column_index)] = cell

    max_row = max((row for row, _ in cells_by_position), default=0)
    max_column = max((column for _, column in cells_by_position), default=0)

    return [
        [
            cells_by_position.get((r, c)) or TableCell.empty(r, c)
            for c in range(1, max_column + 1)
        ]
        for r in range(1, max_row + 1)
    ]


def extract_tables(blocks: List[Block], block_map: Optional[BlockMap] = None) -> List[List[List[TableCell]]]:
    """Rebuild every TABLE block as a grid of cells."""
    if block_map is None:
        block_map = build_block_map(blocks)

    return [
        build_table_grid(block, block_map)
        for block in blocks
        if block.get("BlockType") == "TABLE" and block.get("Relationships")
    ]


def process_textract_results(results: Dict[str, Any]) -> ExtractedDocument:
    """Parse a (merged) GetDocumentAnalysis response into an ExtractedDocument.

    Raises:
        ParsingError: If the block graph cannot be processed.
    """
    try:
        blocks = results.get("Blocks") or []
        if not blocks:
            return ExtractedDocument()

        block_map = build_block_map(blocks)
        key_value_pairs, confidence_scores = extract_key_value_pairs(blocks, block_map)
        tables = extract_tables(blocks, block_map)

        return ExtractedDocument(
            key_value_pairs=key_value_pairs,
            confidence_scores=confidence_scores,
            tables=tables,
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        safe_log("Error processing Textract results", level="ERROR", error=str(e))
        raise ParsingError(f"Failed to process Textract results: {e}", cause=e) from e
