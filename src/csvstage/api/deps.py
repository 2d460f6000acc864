"""FastAPI dependency injection."""

from typing import Annotated

from fastapi import Depends, Query, Request

from csvstage.staging.service import StagingService


def get_service(request: Request) -> StagingService:
    """The service built by the application lifespan."""
    service: StagingService = request.app.state.service
    return service


ServiceDep = Annotated[StagingService, Depends(get_service)]


def staging_page_params(
    valid_page: int = Query(1, description="Page of valid rows (values below 1 mean 1)"),
    valid_page_size: int | None = Query(None, description="Valid rows per page, at most 100"),
    invalid_page: int = Query(1, description="Page of invalid rows"),
    invalid_page_size: int | None = Query(None, description="Invalid rows per page, at most 100"),
) -> tuple[int, int | None, int, int | None]:
    """Pagination for both staging tables. Out-of-range values are clamped, not rejected."""
    return valid_page, valid_page_size, invalid_page, invalid_page_size


StagingPageDep = Annotated[tuple[int, int | None, int, int | None], Depends(staging_page_params)]
