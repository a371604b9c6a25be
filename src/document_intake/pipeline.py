"""Document processing pipeline.

upload -> analyze -> poll -> extract -> classify -> persist

Every step talks to a managed AWS service; this module only sequences them
and decides, from the extracted confidence scores, whether the document
needs a human to check it.
"""

import time
import uuid
from typing import Any, Callable, Dict, Optional, Tuple

from .common.config import Settings
from .common.exceptions import DocumentProcessingError, RecordNotFoundError
from .common.models import (
    CONTENT_CLASSIFIERS,
    AnalysisResult,
    ExtractedDocument,
    ProcessingResult,
    ProcessingStatus,
    ResultRecord,
)
from .review import requires_human_review, start_human_review, summarize_confidence
from .storage import ResultStore, build_upload_key, document_exists, upload_document
from .textract import process_textract_results, start_document_analysis, wait_for_results
from .utils.documents import inspect_document
from .utils.safe_log import safe_log


class DocumentPipeline:
    """Runs one document through S3, Textract, review routing and DynamoDB."""

    def __init__(
        self,
        settings: Settings,
        store: Optional[ResultStore] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.store = store or ResultStore(settings)
        self.sleep = sleep

    def _analyze(self, s3_key: str) -> Tuple[AnalysisResult, ExtractedDocument]:
        safe_log("Starting Textract analysis job", s3_key=s3_key)
        job_id = start_document_analysis(s3_key, self.settings)

        safe_log(f"Waiting for Textract job {job_id} to complete")
        analysis = wait_for_results(job_id, self.settings, sleep=self.sleep)

        safe_log("Processing Textract results", job_id=job_id, blocks=len(analysis.blocks))
        extracted = process_textract_results(analysis.as_response())
        return analysis, extracted

    def _route_review(
        self,
        file_id: str,
        s3_key: str,
        analysis: AnalysisResult,
        extracted: ExtractedDocument,
    ) -> Tuple[bool, str, Dict[str, Any]]:
        threshold = self.settings.confidence_threshold
        needs_review = requires_human_review(extracted, threshold)
        summary = summarize_confidence(extracted, threshold)
        safe_log(f"Human review required: {needs_review}", file_id=file_id)

        # Textract's HumanLoopConfig is the primary review path; only start a
        # loop ourselves when it did not
        human_loop_arn = ""
        if analysis.human_loop_activation and analysis.human_loop_activation.human_loop_arn:
            human_loop_arn = analysis.human_loop_activation.human_loop_arn
        elif needs_review and self.settings.human_review_enabled:
            human_loop_arn = start_human_review(file_id, s3_key, extracted, self.settings)

        return needs_review, human_loop_arn, summary

    def _debug_info(self, s3_key: str, job_id: str, needs_review: bool, summary: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "flowDefinitionArn": self.settings.flow_definition_arn,
            "s3Location": {
                "bucket": self.settings.bucket_name,
                "key": s3_key,
            },
            "jobId": job_id,
            "humanReviewTriggered": needs_review,
            "humanLoopConfig": {
                "flowDefinitionArn": self.settings.flow_definition_arn,
                "dataAttributes": {"contentClassifiers": list(CONTENT_CLASSIFIERS)},
                "activationConditionsUsed": self.settings.human_review_enabled,
            },
            "confidenceSummary": summary,
        }

    def process_upload(self, file_name: str, content: bytes) -> ProcessingResult:
        """Process a newly uploaded document end to end.

        Raises:
            RequestValidationError: The upload is empty, too large or unreadable.
            DocumentProcessingError: Any AWS step failed.
        """
        safe_log("Starting file upload process", file_name=file_name)
        info = inspect_document(file_name, content, self.settings.max_file_size)

        file_id = str(uuid.uuid4())
        s3_key = build_upload_key(file_id, file_name, self.settings.upload_prefix)

        try:
            # 1. Upload to S3
            upload_document(content, s3_key, self.settings, file_name=file_name)

            # 2-4. Start Textract job, poll until complete, parse blocks
            analysis, extracted = self._analyze(s3_key)

            # 5. Decide on human review
            needs_review, human_loop_arn, summary = self._route_review(
                file_id, s3_key, analysis, extracted
            )

            # 6. Store results in DynamoDB
            safe_log("Storing results in DynamoDB", file_id=file_id)
            self.store.put_result(ResultRecord(
                file_id=file_id,
                file_name=file_name,
                s3_key=s3_key,
                extracted_data=extracted,
                requires_human_review=needs_review,
                human_loop_arn=human_loop_arn,
                job_id=analysis.job_id,
                status=ProcessingStatus.PENDING_REVIEW if needs_review else ProcessingStatus.PROCESSED,
                confidence_summary=summary,
                page_count=analysis.page_count or info.page_count or 0,
                content_hash=info.content_hash,
            ))
        except DocumentProcessingError as e:
            e.document_id = e.document_id or file_id
            safe_log("Processing error", level="ERROR", file_id=file_id, data=e.to_dict())
            raise
        except Exception as e:
            safe_log("Processing error", level="ERROR", file_id=file_id, error=str(e))
            raise DocumentProcessingError(str(e), document_id=file_id, cause=e) from e

        # Counts only; the summary lists raw table text
        safe_log(
            "Document processed successfully",
            file_id=file_id,
            low_confidence_fields=summary["lowConfidenceFieldCount"],
            low_confidence_cells=summary["lowConfidenceCellCount"],
        )
        return ProcessingResult(
            file_id=file_id,
            extracted_data=extracted,
            requires_human_review=needs_review,
            human_loop_arn=human_loop_arn,
            debug_info=self._debug_info(s3_key, analysis.job_id, needs_review, summary),
        )

    def reprocess(self, file_id: str) -> Dict[str, Any]:
        """Re-run Textract on a stored document and overwrite its results.

        Raises:
            RecordNotFoundError: No record, or its S3 object is gone.
            DocumentProcessingError: Any AWS step failed.
        """
        safe_log("Starting reprocessing", file_id=file_id)
        record = self.store.get_result(file_id)
        if record is None:
            raise RecordNotFoundError(f"No processed document found for fileId {file_id}", document_id=file_id)
        if not record.s3_key or not document_exists(record.s3_key, self.settings):
            raise RecordNotFoundError("Original document not found in S3", document_id=file_id)

        try:
            analysis, extracted = self._analyze(record.s3_key)
            needs_review, human_loop_arn, summary = self._route_review(
                file_id, record.s3_key, analysis, extracted
            )
            self.store.update_result(
                file_id,
                extracted,
                requires_human_review=needs_review,
                human_loop_arn=human_loop_arn,
                job_id=analysis.job_id,
                confidence_summary=summary,
            )
        except DocumentProcessingError as e:
            e.document_id = e.document_id or file_id
            safe_log("Reprocessing error", level="ERROR", file_id=file_id, data=e.to_dict())
            raise
        except Exception as e:
            safe_log("Reprocessing error", level="ERROR", file_id=file_id, error=str(e))
            raise DocumentProcessingError(str(e), document_id=file_id, cause=e) from e

        result = {
            "message": "Document reprocessing completed",
            "fileId": file_id,
            "jobId": analysis.job_id,
            "requiresHumanReview": needs_review,
            "extractedData": extracted.to_dict(),
        }
        if human_loop_arn:
            result["humanLoopArn"] = human_loop_arn
        return result
