"""FastAPI endpoints for users and exercise logs."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import FileResponse, JSONResponse
from pydantic import ValidationError

from exercise_tracker.config import (
    EXERCISE_NOT_SAVED_ERROR,
    EXERCISES_QUERY_ERROR,
    INDEX_PAGE,
    MISSING_FIELDS_ERROR,
    USER_ID_NOT_FOUND_ERROR,
    USER_ID_REQUIRED_ERROR,
    USER_NOT_FOUND_ERROR,
)
from exercise_tracker.models import (
    AddExerciseRequest,
    ExerciseLogEntry,
    ExerciseLogResponse,
    ExerciseResponse,
    NewUserRequest,
    SoftErrorResponse,
    UserResponse,
)
from exercise_tracker.results import Ok, Result, SoftError, render
from exercise_tracker.storage import ExerciseStore
from exercise_tracker.validation import FieldValidationError, is_present, parse_date, parse_limit

logger = logging.getLogger(__name__)

router = APIRouter()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for startup and shutdown."""
    # Startup
    await app.state.store.start()
    yield
    # Shutdown
    await app.state.store.stop()


def get_store(request: Request) -> ExerciseStore:
    """Dependency returning the process-wide store."""
    return request.app.state.store


async def read_body(request: Request) -> Dict[str, Any]:
    """Read a JSON or form-encoded request body into a dict."""
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Request body is not valid JSON",
            )
        return body if isinstance(body, dict) else {}

    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        return dict(form)

    return {}


async def add_exercise(store: ExerciseStore, data: Dict[str, Any]) -> Result:
    """
    Add an exercise to a user.

    ``userId``, ``description`` and ``duration`` are required. ``date`` is
    optional and falls back to the current time when missing or unparsable.
    Failures are reported as soft errors.
    """
    if not all(is_present(data.get(field)) for field in ("userId", "description", "duration")):
        return SoftError(MISSING_FIELDS_ERROR)

    try:
        exercise_request: Optional[AddExerciseRequest] = AddExerciseRequest.model_validate(data)
    except ValidationError as e:
        logger.info("Invalid exercise fields: %s", e.errors())
        exercise_request = None

    # The owner is looked up before a malformed exercise is rejected
    user_id = exercise_request.user_id if exercise_request else str(data["userId"])
    try:
        user = await store.find_user(user_id)
    except Exception:
        logger.warning("User lookup failed for %r", user_id, exc_info=True)
        user = None
    if user is None:
        return SoftError(USER_ID_NOT_FOUND_ERROR)

    if exercise_request is None:
        return SoftError(EXERCISE_NOT_SAVED_ERROR)

    try:
        exercise = await store.create_exercise(
            user_id=user["_id"],
            description=exercise_request.description,
            duration=exercise_request.duration,
            date=exercise_request.date,
        )
    except Exception:
        logger.warning("Could not save exercise for user %s", user["_id"], exc_info=True)
        return SoftError(EXERCISE_NOT_SAVED_ERROR)

    return Ok(
        ExerciseResponse(
            id=exercise["_id"],
            description=exercise["description"],
            duration=exercise["duration"],
            date=exercise["date"],
            username=user["username"],
        )
    )


async def get_log(
    store: ExerciseStore,
    user_id: Optional[str],
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    limit: Optional[str] = None,
) -> Result:
    """
    Fetch a user's exercise log.

    ``date_from`` and ``date_to`` are inclusive bounds. ``limit`` caps the
    number of entries; ``0`` or a non-numeric value means no cap. Entries
    come back in store order and ``count`` is the number returned.
    """
    if not user_id:
        return SoftError(USER_ID_REQUIRED_ERROR)

    try:
        user = await store.find_user(user_id)
    except Exception:
        logger.warning("User lookup failed for %r", user_id, exc_info=True)
        user = None
    if user is None:
        return SoftError(USER_NOT_FOUND_ERROR)

    lower = parse_date(date_from) if date_from else None
    upper = parse_date(date_to) if date_to else None
    if (date_from and lower is None) or (date_to and upper is None):
        logger.debug("Unparsable log bounds from=%r to=%r", date_from, date_to)
        return SoftError(EXERCISES_QUERY_ERROR)

    try:
        exercises = await store.find_exercises(
            user_id=user["_id"],
            date_from=lower,
            date_to=upper,
            limit=parse_limit(limit),
        )
    except Exception:
        logger.warning("Exercise query failed for user %s", user["_id"], exc_info=True)
        return SoftError(EXERCISES_QUERY_ERROR)

    log = [
        ExerciseLogEntry(
            id=exercise["_id"],
            description=exercise["description"],
            duration=exercise["duration"],
            date=exercise["date"],
        )
        for exercise in exercises
    ]
    return Ok(
        ExerciseLogResponse(
            id=user["_id"],
            username=user["username"],
            log=log,
            count=len(log),
        )
    )


@router.get("/", include_in_schema=False)
async def index() -> FileResponse:
    """Serve the HTML entry page."""
    return FileResponse(INDEX_PAGE)


@router.post(
    "/api/exercise/new-user",
    response_model=UserResponse,
    summary="Create user",
    description="Register a new user by username",
)
async def new_user(request: Request, store: ExerciseStore = Depends(get_store)) -> UserResponse:
    """
    Create a user.

    A missing or empty username is rejected with HTTP 400.
    """
    body = await read_body(request)
    try:
        user_request = NewUserRequest.model_validate(body)
    except ValidationError as e:
        raise FieldValidationError.from_validation_error(e)

    user = await store.create_user(user_request.username)
    logger.info("Created user %s (%s)", user["_id"], user_request.username)
    return UserResponse(id=user["_id"], username=user["username"])


@router.get(
    "/api/exercise/users",
    response_model=List[UserResponse],
    summary="List users",
    description="Return every user as {id, username}",
)
async def list_users(store: ExerciseStore = Depends(get_store)) -> List[UserResponse]:
    users = await store.list_users()
    return [UserResponse(id=user["_id"], username=user["username"]) for user in users]


@router.post(
    "/api/exercise/add",
    response_model=Union[ExerciseResponse, SoftErrorResponse],
    summary="Add exercise",
    description="Record an exercise for a user; failures come back as {error} with HTTP 200",
)
async def post_exercise(request: Request, store: ExerciseStore = Depends(get_store)) -> JSONResponse:
    body = await read_body(request)
    return render(await add_exercise(store, body))


@router.get(
    "/api/exercise/log",
    response_model=Union[ExerciseLogResponse, SoftErrorResponse],
    summary="Get exercise log",
    description="Return a user with their exercises, optionally filtered by date range and limit",
)
async def exercise_log(
    store: ExerciseStore = Depends(get_store),
    user_id: Optional[str] = Query(None, alias="userId"),
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    limit: Optional[str] = Query(None),
) -> JSONResponse:
    return render(await get_log(store, user_id, date_from, date_to, limit))


@router.get("/health", summary="Health check endpoint")
async def health_check() -> dict[str, str]:
    """Health check endpoint for monitoring."""
    return {"status": "healthy", "service": "exercise-tracker"}
