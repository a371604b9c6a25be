"""Confidence-based routing: decide whether a document needs a human to look at it."""

from typing import Any, Dict, List, Optional

from ..common.models import ExtractedDocument
from ..textract.parsing import round_confidence

DEFAULT_CONFIDENCE_THRESHOLD = 85.0

# Low-confidence cells listed in a summary
MAX_LISTED_CELLS = 10


def requires_human_review(
    extracted: ExtractedDocument,
    threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> bool:
    """True if any form field or table cell is below ``threshold``.

    Grid positions Textract returned no cell for carry confidence 0, so a
    table with holes always goes to review.
    """
    if any(confidence < threshold for confidence in extracted.confidence_scores.values()):
        return True
    return any(cell.confidence < threshold for cell in extracted.iter_cells())


def summarize_confidence(
    extracted: ExtractedDocument,
    threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> Dict[str, Any]:
    """Counts and listings of what fell below the threshold."""
    low_confidence_fields: List[Dict[str, Any]] = [
        {"key": key, "confidence": confidence}
        for key, confidence in extracted.confidence_scores.items()
        if confidence < threshold
    ]

    low_confidence_cells: List[Dict[str, Any]] = []
    total_cells = 0
    for table_index, table in enumerate(extracted.tables):
        for row in table:
            for cell in row:
                total_cells += 1
                if cell.confidence < threshold:
                    low_confidence_cells.append({
                        "tableIndex": table_index,
                        "rowIndex": cell.row_index,
                        "columnIndex": cell.column_index,
                        "text": cell.text,
                        "confidence": cell.confidence,
                    })

    scores = list(extracted.confidence_scores.values())
    average: Optional[float] = round_confidence(sum(scores) / len(scores)) if scores else None

    return {
        "confidenceThreshold": threshold,
        "totalFields": len(scores),
        "lowConfidenceFieldCount": len(low_confidence_fields),
        "lowConfidenceFields": low_confidence_fields,
        "averageFieldConfidence": average,
        "totalTables": len(extracted.tables),
        "totalCells": total_cells,
        "lowConfidenceCellCount": len(low_confidence_cells),
        "lowConfidenceCells": low_confidence_cells[:MAX_LISTED_CELLS],
    }
