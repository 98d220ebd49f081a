"""
STI Result Verification Workers Package.

Pipeline:
- standardizer: Result status and test name normalization, panel labels
- deduplicator: Per-document duplicate collapse with clinical-safety priority
- scoring: Seven-check trust score and verified gate
- merger: Best-per-check merge across documents sharing a date
- date_grouping: One clinical summary per collection date
- reverify: Name-match recalculation after a profile change
- pipeline: Document build and the single-flight sync service
"""

from workers.verification.models import (
    TestStatus,
    TestResult,
    Conflict,
    DeduplicationResult,
    VerificationCheck,
    VerificationResult,
    VerificationLevel,
    NoProfile,
    Profile,
    LLMResponse,
    ParsedDocument,
    DateGroupedResult,
)
from workers.verification.standardizer import (
    standardize_result,
    normalize_test_name,
    determine_test_type,
)
from workers.verification.deduplicator import deduplicate_test_results
from workers.verification.scoring import calculate_verification_score, score_and_gate, score_to_level
from workers.verification.merger import merge_verification_results
from workers.verification.date_grouping import group_parsed_documents_by_date
from workers.verification.reverify import recalculate_name_match, reverify_name_matches
from workers.verification.errors import DocumentParsingError, ParsingStep
from workers.verification.pipeline import build_parsed_document, UploadSyncService, SyncOutcome

__all__ = [
    # Models
    'TestStatus',
    'TestResult',
    'Conflict',
    'DeduplicationResult',
    'VerificationCheck',
    'VerificationResult',
    'VerificationLevel',
    'NoProfile',
    'Profile',
    'LLMResponse',
    'ParsedDocument',
    'DateGroupedResult',

    # Normalization
    'standardize_result',
    'normalize_test_name',
    'determine_test_type',

    # Deduplication
    'deduplicate_test_results',

    # Scoring
    'calculate_verification_score',
    'score_and_gate',
    'score_to_level',
    'merge_verification_results',

    # Grouping
    'group_parsed_documents_by_date',

    # Reverification
    'recalculate_name_match',
    'reverify_name_matches',

    # Orchestration
    'DocumentParsingError',
    'ParsingStep',
    'build_parsed_document',
    'UploadSyncService',
    'SyncOutcome',
]
