import json
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Response, status
from pydantic import ValidationError

from expense_tracker.core.config import Settings
from expense_tracker.core.errors import InvalidSortError, JsonPatchError
from expense_tracker.db.repository import ExpenseTrackerRepository, RepositoryActionStatus
from expense_tracker.models.constants import status_from_name
from expense_tracker.models.expense_group import ExpenseGroup
from expense_tracker.services.factory import expense_group_from_dto, expense_group_to_dto
from expense_tracker.services.json_patch import PatchOperation, apply_patch, parse_patch_document
from expense_tracker.services.query import build_pagination, page_slice, parse_sort

router = APIRouter(prefix="/api/expensegroups", tags=["expense groups"])

logger = logging.getLogger("expense_tracker.routers.expense_groups")

LIST_ROUTE_NAME = "ExpenseGroupList"
PAGINATION_HEADER = "X-Pagination"
IMMUTABLE_FIELDS = ("id", "userId")

# Dependencies -----------------------------------------------------


def get_repository(request: Request) -> ExpenseTrackerRepository:
    return request.app.state.repository


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


# Helpers ----------------------------------------------------------


def _server_error(message: str) -> HTTPException:
    logger.exception(message)
    return HTTPException(status_code=500, detail=message)


def _page_link(request: Request, page: int, page_size: int, sort: str,
               status_name: Optional[str], user_id: Optional[str]) -> str:
    params: dict[str, Any] = {"page": page, "pageSize": page_size, "sort": sort}
    if status_name is not None:
        params["status"] = status_name
    if user_id is not None:
        params["userId"] = user_id
    return str(request.url_for(LIST_ROUTE_NAME).include_query_params(**params))


def _apply_patch_to_group(current: ExpenseGroup, operations: List[PatchOperation]) -> ExpenseGroup:
    document = current.model_dump(by_alias=True, mode="json")
    patched = apply_patch(document, operations)
    if not isinstance(patched, dict):
        raise JsonPatchError("patched document must be a JSON object")
    for field in IMMUTABLE_FIELDS:
        if patched.get(field) != document[field]:
            raise JsonPatchError(f"'{field}' cannot be changed")
    try:
        return ExpenseGroup.model_validate(patched)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = "/".join(str(part) for part in first.get("loc", ()))
        raise JsonPatchError(f"patched document is invalid at '{location}': {first.get('msg')}") from exc


# Routes -----------------------------------------------------------
@router.get(
    "",
    name=LIST_ROUTE_NAME,
    response_model=List[ExpenseGroup],
    summary="List expense groups with filtering, sorting and paging",
)
async def list_expense_groups(
    request: Request,
    response: Response,
    sort: str = Query("id", description="Comma separated fields, '-' prefix for descending"),
    status_name: Optional[str] = Query(
        None, alias="status", description="open | confirmed | processed; other values are ignored"
    ),
    user_id: Optional[str] = Query(None, alias="userId"),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, alias="pageSize", ge=1),
    repository: ExpenseTrackerRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
):
    # 1. Resolve query parameters
    size = min(page_size or settings.default_page_size, settings.max_page_size)
    status_filter = status_from_name(status_name)
    try:
        sort_spec = parse_sort(sort)
    except InvalidSortError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    # 2. Fetch sorted & filtered candidates
    try:
        entities = repository.list_expense_groups(
            sort=sort_spec,
            status_id=int(status_filter) if status_filter is not None else None,
            user_id=user_id,
        )

        # 3. Pagination envelope travels in a header, not the body
        envelope = build_pagination(
            page,
            size,
            len(entities),
            lambda n: _page_link(request, n, size, sort, status_name, user_id),
        )
        response.headers[PAGINATION_HEADER] = json.dumps(envelope.as_dict())

        return [expense_group_to_dto(e) for e in page_slice(entities, page, size)]
    except Exception as exc:
        raise _server_error("failed to list expense groups") from exc


@router.get("/{group_id}", response_model=ExpenseGroup, summary="Get an expense group")
async def get_expense_group(
    group_id: int,
    repository: ExpenseTrackerRepository = Depends(get_repository),
):
    try:
        entity = repository.get_expense_group(group_id)
    except Exception as exc:
        raise _server_error("failed to load expense group") from exc
    if entity is None:
        raise HTTPException(status_code=404, detail="expense group not found")
    return expense_group_to_dto(entity)


@router.post(
    "",
    response_model=ExpenseGroup,
    status_code=status.HTTP_201_CREATED,
    summary="Create an expense group",
)
async def create_expense_group(
    request: Request,
    response: Response,
    payload: Optional[ExpenseGroup] = Body(None),
    repository: ExpenseTrackerRepository = Depends(get_repository),
):
    if payload is None:
        raise HTTPException(status_code=400, detail="request body is required")
    try:
        result = repository.insert_expense_group(expense_group_from_dto(payload))
    except Exception as exc:
        raise _server_error("failed to create expense group") from exc

    if result.status != RepositoryActionStatus.CREATED:
        raise HTTPException(status_code=400, detail="expense group was not created")

    created = expense_group_to_dto(result.entity)
    base = str(request.url.replace(query="")).rstrip("/")
    response.headers["Location"] = f"{base}/{created.id}"
    logger.info("expense group created", extra={"expense_group_id": created.id})
    return created


@router.put("/{group_id}", response_model=ExpenseGroup, summary="Replace an expense group")
async def replace_expense_group(
    group_id: int,
    payload: Optional[ExpenseGroup] = Body(None),
    repository: ExpenseTrackerRepository = Depends(get_repository),
):
    if payload is None:
        raise HTTPException(status_code=400, detail="request body is required")
    if payload.id is None:
        payload = payload.model_copy(update={"id": group_id})
    elif payload.id != group_id:
        raise HTTPException(status_code=400, detail="body id does not match path id")

    try:
        result = repository.update_expense_group(expense_group_from_dto(payload))
    except Exception as exc:
        raise _server_error("failed to update expense group") from exc

    if result.status == RepositoryActionStatus.UPDATED:
        return expense_group_to_dto(result.entity)
    if result.status == RepositoryActionStatus.NOT_FOUND:
        raise HTTPException(status_code=404, detail="expense group not found")
    raise HTTPException(status_code=400, detail="expense group was not updated")


@router.patch(
    "/{group_id}",
    response_model=ExpenseGroup,
    summary="Partially update an expense group with a JSON Patch document",
)
async def patch_expense_group(
    group_id: int,
    document: Any = Body(None),
    repository: ExpenseTrackerRepository = Depends(get_repository),
):
    # 1. Validate the patch document itself
    try:
        operations = parse_patch_document(document)
    except JsonPatchError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    # 2. Fetch existing group
    try:
        entity = repository.get_expense_group(group_id)
    except Exception as exc:
        raise _server_error("failed to load expense group") from exc
    if entity is None:
        raise HTTPException(status_code=404, detail="expense group not found")

    # 3. Apply operations to a copy; nothing is persisted unless all succeed
    try:
        patched = _apply_patch_to_group(expense_group_to_dto(entity), operations)
    except JsonPatchError as exc:
        logger.info("patch rejected: %s", exc, extra={"expense_group_id": group_id})
        raise HTTPException(status_code=400, detail=str(exc))

    # 4. Persist
    try:
        result = repository.update_expense_group(expense_group_from_dto(patched))
    except Exception as exc:
        raise _server_error("failed to update expense group") from exc

    if result.status == RepositoryActionStatus.UPDATED:
        return expense_group_to_dto(result.entity)
    raise HTTPException(status_code=400, detail="expense group was not updated")


@router.delete(
    "/{group_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an expense group and its expenses",
)
async def delete_expense_group(
    group_id: int,
    repository: ExpenseTrackerRepository = Depends(get_repository),
):
    try:
        result = repository.delete_expense_group(group_id)
    except Exception as exc:
        raise _server_error("failed to delete expense group") from exc

    if result.status == RepositoryActionStatus.DELETED:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    if result.status == RepositoryActionStatus.NOT_FOUND:
        raise HTTPException(status_code=404, detail="expense group not found")
    raise HTTPException(status_code=400, detail="expense group was not deleted")
