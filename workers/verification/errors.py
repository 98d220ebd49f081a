"""
Document parsing errors raised by the upload pipeline.

The verification core never raises on bad input; these errors describe
failures of the collaborators around it (OCR, LLM, network).
"""

from enum import Enum
from typing import Any, Dict, Optional


class ParsingStep(str, Enum):
    """Pipeline step that failed."""
    OCR = "ocr"
    LLM_PARSING = "llm_parsing"
    NORMALIZATION = "normalization"
    VALIDATION = "validation"
    NETWORK = "network"
    PDF_EXTRACTION = "pdf_extraction"
    UNKNOWN = "unknown"


USER_MESSAGES = {
    ParsingStep.OCR: "Failed to extract text from the image. Please ensure the image is clear and readable.",
    ParsingStep.LLM_PARSING: "Failed to parse the test results. Please ensure the document contains valid test results.",
    ParsingStep.NORMALIZATION: "Failed to process the test results. Please try again.",
    ParsingStep.VALIDATION: "The document does not appear to contain valid test results.",
    ParsingStep.NETWORK: "Network error. Please check your connection and try again.",
    ParsingStep.PDF_EXTRACTION: "Failed to extract text from the PDF. The file may be corrupted or password-protected.",
    ParsingStep.UNKNOWN: "Failed to process the document. Please try again.",
}


class DocumentParsingError(Exception):
    """A document could not be turned into a parsed result."""

    def __init__(
        self,
        step: ParsingStep,
        message: str,
        file_identifier: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.step = ParsingStep(step)
        self.message = message
        self.file_identifier = file_identifier
        self.original_error = original_error
        self.details = details or {}

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.step]

    @property
    def is_retryable(self) -> bool:
        """Only network failures are worth retrying; parse failures are fatal."""
        return self.step == ParsingStep.NETWORK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step.value,
            "message": self.message,
            "user_message": self.user_message,
            "file_identifier": self.file_identifier,
            "retryable": self.is_retryable,
            "details": self.details,
            "original_error": repr(self.original_error) if self.original_error else None,
        }
