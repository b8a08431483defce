"""Seed the demo habits for the current month for one user via the API."""

import os
import sys
from datetime import date
from uuid import UUID

import httpx

API_BASE = os.environ.get("AURA_API_BASE", "http://localhost:8000")

DEMO_HABITS = [
    {"name": "Read for 15 minutes", "days": [8, 9, 10, 11, 13, 14, 15, 16, 18, 20, 21, 22, 23, 24, 25, 27]},
    {"name": "Morning walk", "days": [1, 2, 3, 4, 5, 8, 9, 10, 11, 12, 15, 16, 17, 18, 19, 22, 23, 24, 25, 26]},
    {"name": "Drink 8 glasses of water", "days": []},
]


def main():
    user_id_raw = os.environ.get("SEED_USER_ID", "")
    if not user_id_raw:
        print("ERROR: SEED_USER_ID env var is not set")
        sys.exit(1)

    # Token minting reads JWT_SECRET_KEY from the same settings the API uses.
    from aura.auth import issue_access_token
    from aura.services.habit_dates import month_days, month_key

    token = issue_access_token(UUID(user_id_raw))
    headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

    current_month = month_key(date.today())
    valid_days = month_days(current_month)
    success = 0
    errors = 0

    for demo in DEMO_HABITS:
        resp = httpx.post(
            f"{API_BASE}/habits/months/{current_month}/habits",
            json={"name": demo["name"]},
            headers=headers,
        )
        if resp.status_code != 201:
            errors += 1
            print(f"  FAIL ({resp.status_code}): {resp.text}")
            continue

        habit = resp.json()["record"]["habits"][-1]
        print(f"  OK: added '{habit['name']}' (id {habit['id']})")
        success += 1

        for day in demo["days"]:
            if day > len(valid_days):
                continue
            toggle = httpx.post(
                f"{API_BASE}/habits/months/{current_month}/habits/{habit['id']}/toggle",
                json={"date": valid_days[day - 1]},
                headers=headers,
            )
            if toggle.status_code != 200 or not toggle.json()["persisted"]:
                errors += 1
                print(f"  FAIL ({toggle.status_code}): {toggle.text}")

    print(f"\nDone! {success} habits created in {current_month}, {errors} errors.")


if __name__ == "__main__":
    main()
