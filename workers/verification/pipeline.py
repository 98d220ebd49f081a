"""
Upload Pipeline Orchestration.

Turns LLM extraction records into scored ParsedDocuments and runs the
"sync now" flow: extract, build, group by date, save. Only one sync runs at
a time; a sync requested while another is in progress returns a no-op
"skipped" outcome instead of queueing.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from workers.verification.date_grouping import group_parsed_documents_by_date
from workers.verification.date_validator import format_collection_date
from workers.verification.deduplicator import deduplicate_test_results
from workers.verification.errors import DocumentParsingError, ParsingStep
from workers.verification.lab_lookup import LabDirectory
from workers.verification.models import (
    DateGroupedResult,
    LLMResponse,
    ParsedDocument,
    TestResult,
    VerificationDetails,
    as_identity_profile,
    as_text,
)
from workers.verification.scoring import ACCESSION_NUMBER, NAME_MATCH, calculate_verification_score
from workers.verification.standardizer import (
    FULL_PANEL_LABEL,
    determine_test_type,
    normalize_test_name,
    standardize_result,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Per-document build
# =============================================================================

def _resolve_test_type(detected: str, llm_test_type: Optional[str]) -> str:
    # A detected full panel beats whatever the LLM called it
    if detected == FULL_PANEL_LABEL:
        return detected
    return llm_test_type or detected


def build_parsed_document(
    llm_response: Union[LLMResponse, Dict[str, Any]],
    profile: Any = None,
    reference_time: Optional[datetime] = None,
    file_identifier: Optional[str] = None,
    lab_directory: Optional[LabDirectory] = None,
) -> ParsedDocument:
    """
    Normalize, deduplicate and score one LLM extraction.

    Args:
        llm_response: LLM record (or its dict form)
        profile: The user's name (Profile, dict or None)
        reference_time: Upload time for the date checks
        file_identifier: Source file, carried into errors
        lab_directory: Lab lookup override

    Returns:
        ParsedDocument ready for date grouping

    Raises:
        DocumentParsingError: step "normalization" if the record can't be processed
    """
    try:
        if isinstance(llm_response, dict):
            llm_response = LLMResponse.from_dict(llm_response)

        normalized = [
            TestResult(
                name=normalize_test_name(test.name),
                result=test.result,
                status=standardize_result(test.result),
            )
            for test in llm_response.tests
        ]
        dedup = deduplicate_test_results(normalized)
        detected = determine_test_type(t.name for t in dedup.tests)

        verification = calculate_verification_score(
            llm_response,
            identity_profile=as_identity_profile(profile),
            reference_time=reference_time,
            lab_directory=lab_directory,
        )
    except DocumentParsingError:
        raise
    except Exception as e:
        raise DocumentParsingError(
            ParsingStep.NORMALIZATION,
            f"Failed to normalize extraction: {e}",
            file_identifier=file_identifier,
            original_error=e,
        ) from e

    name_check = verification.get_check(NAME_MATCH)
    accession_check = verification.get_check(ACCESSION_NUMBER)

    details = VerificationDetails(
        lab_name=as_text(llm_response.lab_name),
        patient_name=as_text(llm_response.patient_name),
        has_health_card=llm_response.health_card_present is True,
        has_accession_number=accession_check.passed if accession_check else False,
        name_matched=name_check.passed if name_check else False,
    )

    if dedup.conflicts:
        logger.warning(
            f"{file_identifier or 'document'}: {len(dedup.conflicts)} conflicting results"
        )

    return ParsedDocument(
        collection_date=format_collection_date(llm_response.collection_date),
        tests=dedup.tests,
        test_type=_resolve_test_type(detected, llm_response.test_type),
        notes=llm_response.notes,
        is_verified=verification.is_verified,
        verification_details=details,
        verification=verification,
        conflicts=dedup.conflicts,
    )


# =============================================================================
# Sync service
# =============================================================================

Extractor = Callable[[Any], Awaitable[Union[LLMResponse, Dict[str, Any]]]]
SaveCallable = Callable[[str, List[DateGroupedResult]], Any]


@dataclass
class SyncOutcome:
    """Result of one sync request."""
    success: bool
    skipped: bool = False
    saved: int = 0
    groups: List[DateGroupedResult] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)


class UploadSyncService:
    """
    Runs the upload flow for a user, one sync at a time.

    Usage:
        service = UploadSyncService(save=store_groups, extractor=call_llm)
        outcome = await service.sync(user_id, uploads, profile)
        if outcome.skipped:
            ...  # another sync was already running

    Args:
        save: Called with (user_id, groups); returns the number saved.
            May be a plain function or a coroutine function.
        extractor: Optional async callable turning one upload into an LLM
            record. Without it, uploads are taken to be LLM records already.
    """

    def __init__(self, save: SaveCallable, extractor: Optional[Extractor] = None):
        self.save = save
        self.extractor = extractor
        self._lock: Optional[asyncio.Lock] = None

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @property
    def is_syncing(self) -> bool:
        return self._lock is not None and self._lock.locked()

    async def _extract(self, source: Any, file_identifier: str) -> Union[LLMResponse, Dict[str, Any]]:
        if self.extractor is None:
            return source
        try:
            return await self.extractor(source)
        except DocumentParsingError:
            raise
        except (ConnectionError, TimeoutError, asyncio.TimeoutError) as e:
            raise DocumentParsingError(
                ParsingStep.NETWORK,
                f"Extractor unreachable: {e}",
                file_identifier=file_identifier,
                original_error=e,
            ) from e
        except Exception as e:
            raise DocumentParsingError(
                ParsingStep.LLM_PARSING,
                f"Extractor failed: {e}",
                file_identifier=file_identifier,
                original_error=e,
            ) from e

    async def sync(
        self,
        user_id: str,
        extractions: List[Any],
        profile: Any = None,
        reference_time: Optional[datetime] = None,
    ) -> SyncOutcome:
        """
        Process a batch of uploads and save one result per collection date.

        Documents that fail are reported in ``errors`` and left out of the
        grouping; the sync fails only when nothing could be parsed or the
        save itself raises.
        """
        lock = self._get_lock()
        if lock.locked():
            logger.info(f"Sync for user {user_id} skipped: a sync is already running")
            return SyncOutcome(success=True, skipped=True, saved=0)

        async with lock:
            started = reference_time or datetime.now(timezone.utc)
            documents: List[ParsedDocument] = []
            errors: List[Dict[str, Any]] = []

            for index, source in enumerate(extractions):
                file_identifier = f"upload_{index}"
                try:
                    record = await self._extract(source, file_identifier)
                    documents.append(build_parsed_document(
                        record,
                        profile=profile,
                        reference_time=started,
                        file_identifier=file_identifier,
                    ))
                except DocumentParsingError as e:
                    logger.error(f"[Sync {user_id}] {file_identifier} failed at {e.step.value}: {e.message}")
                    errors.append(e.to_dict())

            if extractions and not documents:
                logger.warning(f"[Sync {user_id}] no documents could be parsed")
                return SyncOutcome(success=False, errors=errors)

            groups = group_parsed_documents_by_date(documents)

            saved = self.save(user_id, groups)
            if inspect.isawaitable(saved):
                saved = await saved

            logger.info(
                f"[Sync {user_id}] {len(documents)} documents, "
                f"{len(groups)} date groups, {saved} saved, {len(errors)} failed"
            )
            return SyncOutcome(success=True, saved=saved or 0, groups=groups, errors=errors)
