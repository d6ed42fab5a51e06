"""Tests for API endpoints."""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from exercise_tracker.main import create_app
from exercise_tracker.storage import MongoStore

MISSING_USER_ID = "5f1d7f3b2c8e4a0012345678"


def mongo_store():
    return MongoStore(client=AsyncMongoMockClient(), database="exercise-track-test")


@pytest.fixture
def client():
    app = create_app(mongo_store())
    with TestClient(app) as client:
        yield client


def create_user(client, username="alice"):
    response = client.post("/api/exercise/new-user", data={"username": username})
    assert response.status_code == 200
    return response.json()


def add_exercise(client, **fields):
    response = client.post("/api/exercise/add", data=fields)
    assert response.status_code == 200
    return response.json()


def parse_response_date(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "exercise-tracker"


def test_index_page_and_static_assets(client):
    """Test the HTML entry page and stylesheet are served."""
    response = client.get("/")
    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    assert "/api/exercise/new-user" in response.text

    response = client.get("/style.css")
    assert response.status_code == 200


def test_create_user(client):
    """Test creating a user returns the username and a fresh id."""
    first = create_user(client, "alice")
    second = create_user(client, "alice")

    assert set(first) == {"id", "username"}
    assert first["username"] == "alice"
    assert first["id"] != second["id"]


def test_create_user_with_json_body(client):
    """Test JSON bodies are accepted as well as forms."""
    response = client.post("/api/exercise/new-user", json={"username": "bob"})
    assert response.status_code == 200
    assert response.json()["username"] == "bob"


@pytest.mark.parametrize("payload", [{}, {"username": ""}])
def test_create_user_without_username(client, payload):
    """Test a missing or empty username is a hard 400 error."""
    response = client.post("/api/exercise/new-user", data=payload)
    assert response.status_code == 400
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text == "Path `username` is required."


def test_create_user_invalid_json(client):
    """Test a malformed JSON body is rejected."""
    response = client.post(
        "/api/exercise/new-user",
        content="{not json",
        headers={"content-type": "application/json"},
    )
    assert response.status_code == 400


def test_list_users(client):
    """Test listing users returns bare projections."""
    created = [create_user(client, name) for name in ("alice", "bob", "carol")]

    response = client.get("/api/exercise/users")
    assert response.status_code == 200
    users = response.json()
    assert len(users) >= len(created)
    assert all(set(user) == {"id", "username"} for user in users)
    assert {user["id"] for user in created} <= {user["id"] for user in users}

    # Repeated reads with no writes in between are stable
    assert client.get("/api/exercise/users").json() == users


def test_add_exercise_without_date(client):
    """Test an exercise without a date is dated now."""
    user = create_user(client)
    before = datetime.now(timezone.utc)

    data = add_exercise(client, userId=user["id"], description="running", duration="30")

    assert set(data) == {"id", "description", "duration", "date", "username"}
    assert data["description"] == "running"
    assert data["duration"] == 30
    assert data["username"] == "alice"
    delta = abs((parse_response_date(data["date"]) - before).total_seconds())
    assert delta < 5


def test_add_exercise_with_date(client):
    """Test a valid date is returned as given."""
    user = create_user(client)

    data = add_exercise(
        client, userId=user["id"], description="cycling", duration="45.5", date="2024-01-15"
    )

    assert data["date"] == "2024-01-15T00:00:00.000Z"
    assert data["duration"] == 45.5


def test_add_exercise_with_invalid_date(client):
    """Test an unparsable date behaves like no date."""
    user = create_user(client)
    before = datetime.now(timezone.utc)

    data = add_exercise(
        client, userId=user["id"], description="yoga", duration="20", date="not-a-date"
    )

    delta = abs((parse_response_date(data["date"]) - before).total_seconds())
    assert delta < 5


def test_add_exercise_with_json_body(client):
    """Test JSON bodies with numeric durations."""
    user = create_user(client)

    response = client.post(
        "/api/exercise/add",
        json={
            "userId": user["id"],
            "description": "swimming",
            "duration": 25,
            "date": "2024-02-01T07:30:00Z",
        },
    )
    assert response.status_code == 200
    data = response.json()
    assert data["duration"] == 25
    assert data["date"] == "2024-02-01T07:30:00.000Z"


@pytest.mark.parametrize("missing", ["userId", "description", "duration"])
def test_add_exercise_missing_fields(client, missing):
    """Test missing required fields produce a soft error."""
    user = create_user(client)
    fields = {"userId": user["id"], "description": "running", "duration": "30"}
    fields[missing] = ""

    data = add_exercise(client, **fields)
    assert data == {"error": "Some required values were not specified."}


def test_add_exercise_unknown_user(client):
    """Test an unknown user id is a soft error on a 200 response."""
    data = add_exercise(client, userId=MISSING_USER_ID, description="running", duration="30")
    assert data == {"error": "User ID not found."}


def test_add_exercise_non_numeric_duration(client):
    """Test a duration that isn't a number cannot be saved."""
    user = create_user(client)

    data = add_exercise(client, userId=user["id"], description="running", duration="half an hour")
    assert data == {"error": "Exercise could not be saved."}


def test_log(client):
    """Test fetching a full log."""
    user = create_user(client)
    for day in range(1, 4):
        add_exercise(
            client,
            userId=user["id"],
            description=f"run {day}",
            duration="30",
            date=f"2024-01-0{day}",
        )

    response = client.get("/api/exercise/log", params={"userId": user["id"]})
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == user["id"]
    assert data["username"] == "alice"
    assert data["count"] == len(data["log"]) == 3
    assert all(set(entry) == {"id", "description", "duration", "date"} for entry in data["log"])


def test_log_date_range(client):
    """Test from/to bounds are inclusive."""
    user = create_user(client)
    for day in ("01", "05", "10", "15", "20"):
        add_exercise(
            client, userId=user["id"], description=f"day {day}", duration="30", date=f"2024-01-{day}"
        )

    response = client.get(
        "/api/exercise/log",
        params={"userId": user["id"], "from": "2024-01-05", "to": "2024-01-15"},
    )
    data = response.json()
    assert sorted(entry["description"] for entry in data["log"]) == ["day 05", "day 10", "day 15"]
    assert data["count"] == 3
    for entry in data["log"]:
        assert "2024-01-05" <= entry["date"][:10] <= "2024-01-15"


@pytest.mark.parametrize(
    "limit,expected",
    [("2", 2), ("3abc", 3), ("-2", 2), ("0", 5), ("abc", 5), ("", 5)],
)
def test_log_limit(client, limit, expected):
    """Test limit parsing, including zero and non-numeric meaning no limit."""
    user = create_user(client)
    for i in range(5):
        add_exercise(client, userId=user["id"], description=f"set {i}", duration="10")

    response = client.get("/api/exercise/log", params={"userId": user["id"], "limit": limit})
    data = response.json()
    assert len(data["log"]) == expected
    assert data["count"] == expected


def test_log_missing_user_id(client):
    """Test userId is required."""
    response = client.get("/api/exercise/log")
    assert response.status_code == 200
    assert response.json() == {"error": "userId is required."}


def test_log_unknown_user(client):
    """Test fetching a log for a user that doesn't exist."""
    response = client.get("/api/exercise/log", params={"userId": MISSING_USER_ID})
    assert response.status_code == 200
    assert response.json() == {"error": "User not found."}


def test_log_invalid_date_bound(client):
    """Test an unparsable bound makes the query fail softly."""
    user = create_user(client)

    response = client.get("/api/exercise/log", params={"userId": user["id"], "from": "garbage"})
    assert response.status_code == 200
    assert response.json() == {"error": "Could not get exercises."}


@pytest.mark.parametrize(
    "method,path",
    [("get", "/nope"), ("get", "/api/exercise/add"), ("post", "/api/exercise/users")],
)
def test_unmatched_routes(client, method, path):
    """Test unknown routes and verbs return the plain-text 404."""
    response = getattr(client, method)(path)
    assert response.status_code == 404
    assert response.text == "Page not found :("


class BrokenStore(MongoStore):
    """Store whose operations fail with the exceptions given per method."""

    def __init__(self, **failures):
        super().__init__(client=AsyncMongoMockClient(), database="exercise-track-test")
        self.failures = failures

    async def list_users(self):
        if "list_users" in self.failures:
            raise self.failures["list_users"]
        return await super().list_users()

    async def find_user(self, user_id):
        if "find_user" in self.failures:
            raise self.failures["find_user"]
        return await super().find_user(user_id)

    async def find_exercises(self, *args, **kwargs):
        if "find_exercises" in self.failures:
            raise self.failures["find_exercises"]
        return await super().find_exercises(*args, **kwargs)


def test_unexpected_error_returns_500():
    """Test unexpected store failures go through the error handler with their message."""
    app = create_app(BrokenStore(list_users=RuntimeError("disk on fire")))
    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/api/exercise/users")

    assert response.status_code == 500
    assert response.text == "disk on fire"


def test_unexpected_error_without_message():
    """Test errors without a message fall back to the generic text."""
    app = create_app(BrokenStore(list_users=RuntimeError()))
    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/api/exercise/users")

    assert response.status_code == 500
    assert response.text == "Internal Server Error"


def test_add_exercise_user_lookup_failure():
    """Test a failing user lookup on add is reported as an unknown user."""
    app = create_app(BrokenStore(find_user=RuntimeError("connection reset")))
    with TestClient(app) as client:
        data = add_exercise(client, userId=MISSING_USER_ID, description="running", duration="30")

    assert data == {"error": "User ID not found."}


def test_log_query_failure():
    """Test a failing exercise query is a soft error."""
    app = create_app(BrokenStore(find_exercises=RuntimeError("cursor killed")))
    with TestClient(app) as client:
        user = create_user(client)
        response = client.get("/api/exercise/log", params={"userId": user["id"]})

    assert response.status_code == 200
    assert response.json() == {"error": "Could not get exercises."}


def test_cors_headers(client):
    """Test cross-origin requests are allowed from anywhere."""
    response = client.get("/api/exercise/users", headers={"Origin": "https://example.com"})
    assert response.headers["access-control-allow-origin"] == "*"

    response = client.options(
        "/api/exercise/add",
        headers={
            "Origin": "https://example.com",
            "Access-Control-Request-Method": "POST",
        },
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


def test_add_exercise_date_out_of_range(client):
    """Test a date whose UTC equivalent is out of range falls back to now."""
    user = create_user(client)
    before = datetime.now(timezone.utc)

    data = add_exercise(
        client,
        userId=user["id"],
        description="running",
        duration="30",
        date="9999-12-31T23:00:00-05:00",
    )

    delta = abs((parse_response_date(data["date"]) - before).total_seconds())
    assert delta < 5


@pytest.mark.parametrize("bound", ["from", "to"])
def test_log_date_bound_out_of_range(client, bound):
    """Test an out-of-range bound is a soft error, not a server error."""
    user = create_user(client)

    response = client.get(
        "/api/exercise/log",
        params={"userId": user["id"], bound: "0001-01-01T00:00:00+01:00"},
    )
    assert response.status_code == 200
    assert response.json() == {"error": "Could not get exercises."}


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024/01/15", "2024-01-15T00:00:00.000Z"),
        ("Jan 15 2024", "2024-01-15T00:00:00.000Z"),
        ("Mon, 15 Jan 2024 10:00:00 GMT", "2024-01-15T10:00:00.000Z"),
    ],
)
def test_add_exercise_calendar_date_formats(client, value, expected):
    """Test common non-ISO calendar dates are honoured."""
    user = create_user(client)

    data = add_exercise(client, userId=user["id"], description="rowing", duration="15", date=value)
    assert data["date"] == expected


def test_add_exercise_early_year_is_zero_padded(client):
    """Test years below 1000 serialize as four digits and round-trip through the log."""
    user = create_user(client)

    data = add_exercise(client, userId=user["id"], description="rowing", duration="15", date="0099-01-01")
    assert data["date"] == "0099-01-01T00:00:00.000Z"

    response = client.get("/api/exercise/log", params={"userId": user["id"]})
    assert response.json()["log"][0]["date"] == "0099-01-01T00:00:00.000Z"


def test_add_exercise_unknown_user_before_bad_duration(client):
    """Test the owner is checked before the exercise fields."""
    data = add_exercise(client, userId=MISSING_USER_ID, description="running", duration="abc")
    assert data == {"error": "User ID not found."}


def test_create_user_numeric_username(client):
    """Test numeric usernames are stored as strings."""
    response = client.post("/api/exercise/new-user", json={"username": 42})
    assert response.status_code == 200
    assert response.json()["username"] == "42"


def test_create_user_object_username(client):
    """Test a non-scalar username is a 400."""
    response = client.post("/api/exercise/new-user", json={"username": {"first": "a"}})
    assert response.status_code == 400
    assert response.text == "Input should be a valid string"


def test_log_excludes_other_users_and_hides_version_key(client):
    """Test a log only holds the user's own exercises and no storage fields."""
    alice = create_user(client, "alice")
    bob = create_user(client, "bob")
    add_exercise(client, userId=alice["id"], description="alice run", duration="30")
    add_exercise(client, userId=bob["id"], description="bob run", duration="40")

    data = client.get("/api/exercise/log", params={"userId": alice["id"]}).json()
    assert [entry["description"] for entry in data["log"]] == ["alice run"]
    assert set(data) == {"id", "username", "log", "count"}
    assert all("__v" not in entry and "userId" not in entry for entry in data["log"])
