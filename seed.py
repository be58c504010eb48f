"""
Seed script: populates demo data for the demo@example.com account.

- Safe to run on a server where the account already exists.
- Clears the demo account's medications (their logs cascade), then inserts
  four medications with four weeks of "taken" marks ending this week.
- Does NOT touch other user accounts.

Usage:
    python3 seed.py
"""

import random
from datetime import date, timedelta

from db import init_db
from security import _create_user, _find_user_by_email
from store import AttendanceStore
from week import to_iso_date, week_start

EMAIL = "demo@example.com"
PASSWORD = "demo1234"
TODAY = date.today()

MEDICATIONS = [
    # (name, adherence_rate)
    ("Lisinopril 10mg",   0.90),
    ("Metformin 500mg",   0.75),
    ("Atorvastatin 20mg", 0.85),
    ("Vitamin D",         0.60),
]
WEEKS_OF_HISTORY = 4


init_db()

row = _find_user_by_email(EMAIL)
if row:
    uid = row["id"]
    print(f"Found existing account: {EMAIL} (id={uid})")
else:
    uid = _create_user(EMAIL, PASSWORD)["id"]
    print(f"Created account: {EMAIL} (id={uid})")

store = AttendanceStore(uid)
for med in store.list_medications():
    store.delete_medication(med["id"])
print("Cleared existing medications for the demo account.")

rng = random.Random(42)  # fixed seed for reproducibility

first_day = week_start(TODAY) - timedelta(weeks=WEEKS_OF_HISTORY - 1)
marks = 0
for name, rate in MEDICATIONS:
    med_id = store.create_medication(name)
    d = first_day
    while d <= TODAY:
        if rng.random() < rate:
            store.upsert_toggle(med_id, d)
            marks += 1
        d += timedelta(days=1)

print(f"Inserted {len(MEDICATIONS)} medications and {marks} taken marks "
      f"from {to_iso_date(first_day)} to {to_iso_date(TODAY)}.")
print(f"\nDone. Sign in with email={EMAIL} password={PASSWORD}")
