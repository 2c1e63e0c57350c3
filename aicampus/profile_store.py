"""
AICAMPUS Backend - User Profile Store.
Reads `profiles` (account) and `user_data` (nama, universitas, jurusan, minat)
from the hosted database. Privacy: only update when the user explicitly saves.
"""

from datetime import datetime, timezone

USER_DATA_FIELDS = ["nama", "universitas", "jurusan", "minat"]

DEFAULT_USER_DATA = {
    "nama": "",
    "universitas": "",
    "jurusan": "",
    "minat": "",
}


async def get_user_data(db, user_id: str) -> dict | None:
    """Load the user's profile row. Returns None if the user never filled it in."""
    row = await db.select_one("user_data", filters={"user_id": user_id})
    if row is None:
        return None
    # Ensure all default keys exist
    for key, default_val in DEFAULT_USER_DATA.items():
        if row.get(key) is None:
            row[key] = default_val
    return row


async def upsert_user_data(db, user_id: str, updates: dict) -> dict:
    """
    Merge updates into the user's row, inserting it on first save.
    Unknown keys are ignored. Returns the stored row.
    """
    fields = {k: v for k, v in updates.items() if k in USER_DATA_FIELDS}

    existing = await db.select_one("user_data", filters={"user_id": user_id})
    if existing:
        fields["updated_at"] = datetime.now(timezone.utc).isoformat()
        rows = await db.update("user_data", fields, filters={"user_id": user_id})
    else:
        row = dict(DEFAULT_USER_DATA)
        row.update(fields)
        row["user_id"] = user_id
        rows = await db.insert("user_data", row)

    return rows[0] if rows else {"user_id": user_id, **fields}


async def get_profile(db, user_id: str) -> dict | None:
    return await db.select_one(
        "profiles", filters={"id": user_id}, columns="id,username,avatar_url,email",
    )


async def get_profiles(db, user_ids: list[str]) -> dict[str, dict]:
    """Batch profile lookup keyed by user id."""
    if not user_ids:
        return {}
    rows = await db.select(
        "profiles",
        filters={"id": sorted(set(user_ids))},
        columns="id,username,avatar_url,email",
    )
    return {row["id"]: row for row in rows}


def display_name(profile: dict | None, fallback: str = "Anonymous") -> str:
    """username, else the local part of the email, else the fallback."""
    if not profile:
        return fallback
    if profile.get("username"):
        return profile["username"]
    email = profile.get("email") or ""
    if email:
        return email.split("@")[0]
    return fallback
