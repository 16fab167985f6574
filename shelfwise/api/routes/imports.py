"""
Import API Routes

Two-phase book import:
- parse: classify an uploaded file against the user's books
- confirm: commit the user's decisions
- skipped.csv: export what was left out
"""

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import Response
from loguru import logger

from shelfwise.api.dependencies import (
    Settings,
    get_current_user_id,
    get_import_service,
    get_settings,
)
from shelfwise.api.schemas import (
    ConfirmRequest,
    ConfirmResponse,
    ErrorResponse,
    ParseRequest,
    ParseResponse,
    SkippedExportRequest,
)
from shelfwise.errors import ShelfwiseException
from shelfwise.importing.classifier import ClassificationResult, InvalidRow
from shelfwise.importing.errors import RejectionReason
from shelfwise.importing.extractor import format_from_filename
from shelfwise.importing.normalizer import NormalizedBookEntry
from shelfwise.importing.service import ImportService
from shelfwise.importing.session import ImportDecisionSet, LibraryUpdateRequest
from shelfwise.importing.skipped import collect_skipped_rows, render_skipped_csv
from shelfwise.storage import RecordKind


router = APIRouter(prefix="/imports", tags=["imports"])

PARSE_ERRORS = {
    400: {"model": ErrorResponse, "description": "Malformed file"},
    401: {"model": ErrorResponse, "description": "Missing X-User-ID header"},
    413: {"model": ErrorResponse, "description": "File too large"},
    415: {"model": ErrorResponse, "description": "Unsupported format"},
}


def _check_size(size: int, settings: Settings):
    limit = settings.max_upload_size_mb * 1024 * 1024
    if size > limit:
        raise ShelfwiseException(
            message="File too large",
            code="FILE_TOO_LARGE",
            status_code=413,
            detail=f"Import files are limited to {settings.max_upload_size_mb}MB",
        )


def _parse_response(result: ClassificationResult) -> ParseResponse:
    return ParseResponse.model_validate(result.to_dict())


# =============================================================================
# Parse Endpoints
# =============================================================================

@router.post(
    "/parse",
    response_model=ParseResponse,
    responses=PARSE_ERRORS,
)
async def parse_import(
    request: ParseRequest,
    user_id: str = Depends(get_current_user_id),
    service: ImportService = Depends(get_import_service),
    settings: Settings = Depends(get_settings),
):
    """
    Parse an import file sent in the request body and classify every entry.

    Nothing is written. Send the chosen entries to /imports/confirm.
    """
    _check_size(len(request.data), settings)
    logger.info(
        f"Parsing {request.format} import for user {user_id} "
        f"(target={request.target.value}, {len(request.data)} chars)"
    )

    result = await service.parse(user_id, request.data, request.format, request.target)
    return _parse_response(result)


@router.post(
    "/parse/upload",
    response_model=ParseResponse,
    responses=PARSE_ERRORS,
)
async def parse_upload(
    file: UploadFile = File(..., description="JSON, CSV, XLSX or XLS file"),
    target: RecordKind = Form(RecordKind.COMPLETED),
    user_id: str = Depends(get_current_user_id),
    service: ImportService = Depends(get_import_service),
    settings: Settings = Depends(get_settings),
):
    """
    Parse an uploaded import file; the format comes from its extension.
    """
    fmt = format_from_filename(file.filename)

    content = await file.read()
    _check_size(len(content), settings)

    logger.info(
        f"Parsing upload {file.filename} for user {user_id} "
        f"(target={target.value}, size={len(content) // 1024}KB)"
    )

    result = await service.parse(user_id, content, fmt, target)
    return _parse_response(result)


# =============================================================================
# Confirm Endpoint
# =============================================================================

@router.post(
    "/confirm",
    response_model=ConfirmResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Missing X-User-ID header"},
    },
)
def confirm_import(
    request: ConfirmRequest,
    user_id: str = Depends(get_current_user_id),
    service: ImportService = Depends(get_import_service),
):
    """
    Commit the user's decisions.

    Always completes; per-item failures are listed in notes.
    """
    logger.info(
        f"Confirming import for user {user_id}: {len(request.books_to_import)} books, "
        f"{len(request.library_updates)} library updates (target={request.target.value})"
    )

    decisions = ImportDecisionSet(
        books_to_import=[
            NormalizedBookEntry.from_dict(book.model_dump())
            for book in request.books_to_import
        ],
        library_updates=[
            LibraryUpdateRequest(
                book_id=update.book_id,
                new_date_finished=update.new_date_finished,
                title=update.title,
            )
            for update in request.library_updates
        ],
        target=request.target,
    )

    result = service.confirm(user_id, decisions)
    return ConfirmResponse.model_validate(result.to_dict())


# =============================================================================
# Skipped Export Endpoint
# =============================================================================

@router.post(
    "/skipped.csv",
    response_class=Response,
    responses={
        200: {"content": {"text/csv": {}}, "description": "CSV of skipped items"},
    },
)
def export_skipped(request: SkippedExportRequest):
    """Download a CSV of the items an import left out."""
    invalid = []
    for row in request.invalid:
        try:
            reason = RejectionReason(row.reason)
        except ValueError:
            reason = RejectionReason.UNPARSABLE_ROW
        invalid.append(InvalidRow(row.row_number, reason, row.original, row.detail))

    rows = collect_skipped_rows(
        skipped_not_found=[NormalizedBookEntry.from_dict(b.model_dump()) for b in request.not_found],
        duplicates=[NormalizedBookEntry.from_dict(b.model_dump()) for b in request.duplicates],
        invalid=invalid,
        target=request.target,
    )

    return Response(
        content=render_skipped_csv(rows),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="skipped-books.csv"'},
    )
