"""
AICAMPUS Backend - Group Membership Resolver.
Enrolls a user in every interest group matching their classified tags.
Safe to call on every login: existing memberships are left alone and
memberships are never removed when interests change.
"""

from aicampus import group_chat, profile_store
from aicampus.errors import NotFoundError, UpstreamError, ValidationError
from aicampus.interests import classify_interests, group_categories

PROFILE_INCOMPLETE_MSG = (
    "Silakan lengkapi profil kamu terlebih dahulu (khususnya minat) "
    "untuk menggunakan Peer Connect!"
)
INTERESTS_EMPTY_MSG = "Silakan isi minat kamu di profil untuk menggunakan Peer Connect!"
NO_GROUPS_MSG = "Tidak ada grup yang sesuai dengan minat kamu. Silakan update minat di profil."


async def ensure_memberships(db, user_id: str, interest_text: str) -> dict:
    """
    Join the user to each group whose tag the classifier derives.
    Returns: {tags: [...], joined: [group_id...], existing: [group_id...]}
    The join is an upsert on (group_id, user_id), so concurrent logins of
    the same user never create duplicate rows. Store errors propagate.
    """
    tags = classify_interests(interest_text)

    groups = await db.select(
        "interest_groups",
        filters={"interest_category": group_categories(tags)},
        columns="id,name,interest_category",
    )
    memberships = await db.select(
        "group_members", filters={"user_id": user_id}, columns="group_id",
    )
    member_of = {row["group_id"] for row in memberships}

    candidates = []
    for group in groups:
        if group["id"] not in member_of and group["id"] not in candidates:
            candidates.append(group["id"])

    inserted = set()
    if candidates:
        rows = await db.upsert(
            "group_members",
            [{"group_id": gid, "user_id": user_id} for gid in candidates],
            on_conflict="group_id,user_id",
        )
        inserted = {row["group_id"] for row in rows}
        if inserted:
            print(f"[GROUPS] User {user_id} joined {len(inserted)} group(s) for tags {tags}")

    joined = [gid for gid in candidates if gid in inserted]
    existing = [g["id"] for g in groups if g["id"] not in inserted]
    return {"tags": tags, "joined": joined, "existing": list(dict.fromkeys(existing))}


async def initialize_member(db, user_id: str, message_limit: int | None = None) -> dict:
    """
    Peer Connect start-up: read interests, resolve memberships, load groups.
    Raises ValidationError when the profile or interests are missing and
    NotFoundError when no group matches; callers send the user back with
    the message instead of retrying.
    """
    user_data = await profile_store.get_user_data(db, user_id)
    if user_data is None:
        raise ValidationError(PROFILE_INCOMPLETE_MSG)

    interest_text = (user_data.get("minat") or "").strip()
    if not interest_text:
        raise ValidationError(INTERESTS_EMPTY_MSG)

    resolved = await ensure_memberships(db, user_id, interest_text)

    kwargs = {}
    if message_limit is not None:
        kwargs["message_limit"] = message_limit
    try:
        groups = await group_chat.list_groups_for_user(db, user_id, **kwargs)
    except UpstreamError as e:
        # Load failures degrade to "no groups" so the user gets the explanation
        print(f"[GROUPS] Failed to load groups for {user_id}: {e}")
        groups = []
    if not groups:
        raise NotFoundError(NO_GROUPS_MSG)

    return {"tags": resolved["tags"], "joined": resolved["joined"], "groups": groups}
