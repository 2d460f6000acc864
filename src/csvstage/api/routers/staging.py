"""Staging endpoints: upload, browse, validate, export, import, delete."""

from fastapi import APIRouter, Query, Response

from csvstage.api.deps import ServiceDep, StagingPageDep
from csvstage.api.schemas import ExportRequest, ImportRequest, UploadRequest
from csvstage.core.models import ImportSummary, StagingPages, UploadSummary, ValidationSummary
from csvstage.staging.exporter import CSV_MEDIA_TYPE

router = APIRouter()


def csv_response(filename: str, content: bytes) -> Response:
    return Response(
        content=content,
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# Registered before /staging/{collection} so "import" is not taken as a name
@router.post("/staging/import", response_model=ImportSummary)
async def import_staged_rows(request: ImportRequest, service: ServiceDep) -> ImportSummary:
    """Commit staged valid rows into the collection."""
    return await service.import_rows(request.collection, request.ids)


@router.post("/staging/{collection}", response_model=UploadSummary)
async def upload_staging(
    collection: str, request: UploadRequest, service: ServiceDep
) -> UploadSummary:
    """Replace the collection's staged rows."""
    return await service.upload(collection, request.valid, request.invalid)


@router.get("/staging/{collection}", response_model=StagingPages)
async def get_staging(collection: str, service: ServiceDep, pages: StagingPageDep) -> StagingPages:
    """One page of valid and one page of invalid rows."""
    valid_page, valid_size, invalid_page, invalid_size = pages
    return await service.pages(collection, valid_page, valid_size, invalid_page, invalid_size)


@router.post("/staging/{collection}/validate", response_model=ValidationSummary)
async def validate_staging(collection: str, service: ServiceDep) -> ValidationSummary:
    """Move staged rows that collide with stored documents to the invalid set."""
    return await service.validate(collection)


@router.delete("/staging/{collection}", status_code=204)
async def delete_staging(collection: str, service: ServiceDep) -> Response:
    """Remove the staging store; succeeds when there is none."""
    await service.delete(collection)
    return Response(status_code=204)


@router.get("/staging/{collection}/export")
async def export_staging(
    collection: str,
    service: ServiceDep,
    ids: str | None = Query(None, description="Comma-separated row ids; all rows when absent"),
    include_id: bool = Query(True),
) -> Response:
    """Staged valid rows as CSV."""
    selected = [i for i in (ids or "").split(",") if i]
    filename, content = await service.export_staged(collection, selected, include_id)
    return csv_response(filename, content)


@router.post("/staging/{collection}/export")
async def export_staging_selection(
    collection: str,
    request: ExportRequest,
    service: ServiceDep,
    include_id: bool = Query(True),
) -> Response:
    """Staged valid rows as CSV, selected by id in the body."""
    filename, content = await service.export_staged(collection, request.ids, include_id)
    return csv_response(filename, content)
