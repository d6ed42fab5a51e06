"""Configuration settings for the exercise tracker service."""

import os
from pathlib import Path

# Server configuration
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Store configuration
# "mongo" talks to MONGO_URI, "parquet" keeps documents under DATA_DIR
STORE_BACKEND = os.getenv("STORE_BACKEND", "mongo").lower()
MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017/exercise-track")
DEFAULT_DATABASE = "exercise-track"
DATA_DIR = os.getenv("DATA_DIR", "data")

USERS_COLLECTION = "users"
EXERCISES_COLLECTION = "exercises"

# Soft error messages (returned with HTTP 200)
MISSING_FIELDS_ERROR = "Some required values were not specified."
USER_ID_NOT_FOUND_ERROR = "User ID not found."
EXERCISE_NOT_SAVED_ERROR = "Exercise could not be saved."
USER_ID_REQUIRED_ERROR = "userId is required."
USER_NOT_FOUND_ERROR = "User not found."
EXERCISES_QUERY_ERROR = "Could not get exercises."

# Hard error messages (plain text bodies)
PAGE_NOT_FOUND = "Page not found :("
INTERNAL_SERVER_ERROR = "Internal Server Error"

# Static assets
PACKAGE_DIR = Path(__file__).resolve().parent
PUBLIC_DIR = PACKAGE_DIR / "public"
INDEX_PAGE = PACKAGE_DIR / "views" / "index.html"
