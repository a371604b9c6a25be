"""Amazon Textract analysis jobs and block-graph parsing."""

from .jobs import (
    build_human_loop_config,
    describe_flow_definition,
    start_document_analysis,
    wait_for_results,
)
from .parsing import (
    extract_key_value_pairs,
    extract_tables,
    process_textract_results,
    sort_word_blocks,
)

__all__ = [
    "build_human_loop_config",
    "describe_flow_definition",
    "start_document_analysis",
    "wait_for_results",
    "extract_key_value_pairs",
    "extract_tables",
    "process_textract_results",
    "sort_word_blocks",
]
