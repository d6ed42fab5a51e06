"""Data generator script for trying out the exercise tracker API.

Creates a handful of users and a spread of exercises for each of them:
- Exercises sent concurrently
- Dates spread over the last few months
- Some exercises without a date (server defaults them to now)
- Durations as both numbers and numeric strings
"""

import asyncio
import random
import time
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

import httpx

# Configuration
BASE_URL = "http://localhost:3000"
NEW_USER_URL = f"{BASE_URL}/api/exercise/new-user"
ADD_EXERCISE_URL = f"{BASE_URL}/api/exercise/add"
TOTAL_USERS = 5
EXERCISES_PER_USER = 40
DAYS_BACK = 90
UNDATED_RATIO = 0.1  # Share of exercises sent without a date
MAX_CONCURRENT_REQUESTS = 10

ACTIVITIES: Dict[str, Tuple[int, int]] = {
    "running": (20, 60),
    "cycling": (30, 120),
    "swimming": (20, 45),
    "yoga": (15, 60),
    "strength training": (30, 75),
}


async def create_user(client: httpx.AsyncClient, username: str) -> Optional[str]:
    """Create a user and return its id."""
    response = await client.post(NEW_USER_URL, data={"username": username})
    if response.status_code != 200:
        print(f"\n[DEBUG] Status {response.status_code}: {response.text[:200]}")
        return None
    return response.json()["id"]


async def add_exercise(client: httpx.AsyncClient, payload: Dict[str, str]) -> bool:
    """Add one exercise. Soft errors come back as 200 with an ``error`` key."""
    try:
        response = await client.post(ADD_EXERCISE_URL, data=payload)
    except httpx.HTTPError as e:
        print(f"\n[DEBUG] {type(e).__name__}: {str(e)[:200]}")
        return False

    body = response.json() if response.status_code == 200 else {}
    if "error" in body or response.status_code != 200:
        print(f"\n[DEBUG] Status {response.status_code}: {response.text[:200]}")
        return False
    return True


def generate_exercises(user_id: str, count: int) -> List[Dict[str, str]]:
    """Build random exercise payloads for a user."""
    today = date.today()
    payloads = []
    for _ in range(count):
        activity = random.choice(list(ACTIVITIES))
        low, high = ACTIVITIES[activity]
        duration = random.randint(low, high)
        payload = {
            "userId": user_id,
            "description": activity,
            "duration": str(duration) if random.random() < 0.5 else f"{duration}.0",
        }
        if random.random() >= UNDATED_RATIO:
            payload["date"] = (today - timedelta(days=random.randint(0, DAYS_BACK))).isoformat()
        payloads.append(payload)
    return payloads


async def generate_and_send_data() -> None:
    """Main function to generate and send demo data."""
    timeout = httpx.Timeout(10.0, connect=2.0)

    async with httpx.AsyncClient(timeout=timeout) as client:
        # Check API is available
        try:
            health_response = await client.get(f"{BASE_URL}/health", timeout=2.0)
            if health_response.status_code != 200:
                print("ERROR: API health check failed!")
                return
        except httpx.HTTPError:
            print(f"ERROR: Cannot connect to API at {BASE_URL}")
            print("Make sure the server is running: python -m exercise_tracker")
            return

        total_start_time = time.time()

        print(f"1 - Creating {TOTAL_USERS} users...", flush=True)
        user_ids = []
        for i in range(TOTAL_USERS):
            user_id = await create_user(client, f"athlete_{i + 1}")
            if user_id:
                user_ids.append(user_id)
        print(f"1 - Created {len(user_ids)} users")

        payloads = [
            payload
            for user_id in user_ids
            for payload in generate_exercises(user_id, EXERCISES_PER_USER)
        ]

        print(f"2 - Sending {len(payloads)} exercises...", flush=True)
        semaphore = asyncio.Semaphore(MAX_CONCURRENT_REQUESTS)
        accepted = 0
        failed = 0

        async def send_with_semaphore(payload: Dict[str, str]) -> None:
            nonlocal accepted, failed
            async with semaphore:
                if await add_exercise(client, payload):
                    accepted += 1
                else:
                    failed += 1

        await asyncio.gather(*(send_with_semaphore(p) for p in payloads))

        total_time = time.time() - total_start_time

        print("\n" + "=" * 60)
        print("DATA GENERATION COMPLETE")
        print("=" * 60)
        print(f"Users created: {len(user_ids)}")
        print(f"Exercises accepted: {accepted}")
        print(f"Exercises failed: {failed}")
        print(f"Total time: {total_time:.3f}s")
        print("=" * 60)

        if user_ids:
            since = (date.today() - timedelta(days=30)).isoformat()
            print("\nYou can now query the data:")
            print(f'curl "{BASE_URL}/api/exercise/log?userId={user_ids[0]}"')
            print(f'curl "{BASE_URL}/api/exercise/log?userId={user_ids[0]}&from={since}&limit=5"')


if __name__ == "__main__":
    print("Exercise Tracker Data Generator")
    print("=" * 60)
    asyncio.run(generate_and_send_data())
