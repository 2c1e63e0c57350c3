"""
AICAMPUS Backend - Peer Connect Group Chat.
Loads the user's interest groups with members and recent messages,
persists new messages, and drives one client's open-group view.
"""

import asyncio

from aicampus import profile_store
from aicampus.constants import GROUP_MESSAGE_LIMIT, GROUP_VIEW_STATES
from aicampus.errors import NotFoundError, UpstreamError, ValidationError
from aicampus.interests import classify_interests, interest_label, tag_for_category
from aicampus.live_updates import RESYNC

MESSAGE_COLUMNS = "id,group_id,user_id,content,created_at"
GROUP_COLUMNS = "id,name,interest_category,description,avatar_url"

UNSELECTED, LOADING, ACTIVE = GROUP_VIEW_STATES

NOT_A_MEMBER_MSG = "Grup tidak ditemukan atau kamu bukan anggota grup ini."


def _to_message(row: dict, profile: dict | None) -> dict:
    return {
        "id": row["id"],
        "group_id": row.get("group_id"),
        "sender_id": row.get("user_id"),
        "sender_name": profile_store.display_name(profile),
        "sender_avatar": (profile or {}).get("avatar_url"),
        "text": row.get("content", ""),
        "created_at": row.get("created_at"),
    }


# ── Access ──────────────────────────────────────────────────────────

async def require_membership(db, group_id: str, user_id: str) -> None:
    """
    Raise NotFoundError unless the user belongs to the group.
    The same error covers unknown groups so group ids can't be probed.
    """
    row = await db.select_one(
        "group_members", filters={"group_id": group_id, "user_id": user_id}, columns="group_id",
    )
    if row is None:
        raise NotFoundError(NOT_A_MEMBER_MSG)


# ── Reads ───────────────────────────────────────────────────────────

async def fetch_group_messages(db, group_id: str, limit: int = GROUP_MESSAGE_LIMIT) -> list[dict]:
    """The most recent `limit` messages of a group, oldest first."""
    rows = await db.select(
        "group_messages",
        filters={"group_id": group_id},
        columns=MESSAGE_COLUMNS,
        order="created_at.desc",
        limit=limit,
    )
    rows.reverse()
    profiles = await profile_store.get_profiles(db, [r["user_id"] for r in rows])
    return [_to_message(row, profiles.get(row["user_id"])) for row in rows]


async def fetch_group_members(db, group_id: str) -> list[dict]:
    """Group members with their classified interests."""
    rows = await db.select("group_members", filters={"group_id": group_id}, columns="user_id")
    user_ids = [row["user_id"] for row in rows]
    if not user_ids:
        return []

    profiles = await profile_store.get_profiles(db, user_ids)
    user_data = await db.select("user_data", filters={"user_id": user_ids}, columns="user_id,minat")
    minat_by_user = {row["user_id"]: row.get("minat") or "" for row in user_data}

    members = []
    for user_id in user_ids:
        profile = profiles.get(user_id)
        members.append({
            "id": user_id,
            "name": profile_store.display_name(profile),
            "avatar": (profile or {}).get("avatar_url"),
            "interests": classify_interests(minat_by_user.get(user_id, "")),
        })
    return members


async def _load_group(db, group: dict, message_limit: int) -> dict:
    tag = tag_for_category(group.get("interest_category", ""))
    member_count, members, messages = await asyncio.gather(
        db.count("group_members", filters={"group_id": group["id"]}),
        fetch_group_members(db, group["id"]),
        fetch_group_messages(db, group["id"], limit=message_limit),
    )
    last = messages[-1] if messages else None
    return {
        "id": group["id"],
        "name": group.get("name", ""),
        "interest": tag,
        "interest_label": interest_label(tag),
        "description": group.get("description") or "",
        "avatar_url": group.get("avatar_url"),
        "member_count": member_count,
        "members": members,
        "messages": messages,
        "last_message": last["text"] if last else None,
        "last_message_time": last["created_at"] if last else None,
    }


async def list_groups_for_user(db, user_id: str, message_limit: int = GROUP_MESSAGE_LIMIT) -> list[dict]:
    """
    Every group the user belongs to, enriched with members, member count
    and the latest messages. Store errors propagate.
    """
    memberships = await db.select("group_members", filters={"user_id": user_id}, columns="group_id")
    group_ids = [row["group_id"] for row in memberships]
    if not group_ids:
        print(f"[GROUPS] User {user_id} has no groups")
        return []

    groups = await db.select("interest_groups", filters={"id": group_ids}, columns=GROUP_COLUMNS)
    by_id = {group["id"]: group for group in groups}
    # Keep membership order; memberships pointing at deleted groups are skipped
    ordered = [by_id[gid] for gid in dict.fromkeys(group_ids) if gid in by_id]

    return list(await asyncio.gather(*(_load_group(db, g, message_limit) for g in ordered)))


# ── Writes ──────────────────────────────────────────────────────────

async def send_message(db, group_id: str, sender_id: str, text: str) -> dict:
    """
    Persist a message and return the stored record (server id + timestamp).
    Blank text is rejected before the store is touched. Only members of
    the group may post.
    """
    body = (text or "").strip()
    if not body:
        raise ValidationError("Message text is required")
    if not group_id or not sender_id:
        raise ValidationError("group_id and user_id are required")
    await require_membership(db, group_id, sender_id)

    rows = await db.insert(
        "group_messages",
        {"group_id": group_id, "user_id": sender_id, "content": body},
    )
    if not rows:
        raise UpstreamError("Message was not stored")

    profile = await profile_store.get_profile(db, sender_id)
    return _to_message(rows[0], profile)


async def post_message(db, channel, group_id: str, sender_id: str, text: str) -> dict:
    """send_message, then notify the group's live subscribers."""
    message = await send_message(db, group_id, sender_id, text)
    delivered = channel.publish(message)
    print(f"[GROUPS] Message {message['id']} -> group {group_id} ({delivered} live subscriber(s))")
    return message


# ── Open-group view ─────────────────────────────────────────────────

class GroupChatView:
    """
    One client's view of one open group.
    States: unselected -> loading -> active. Leaving (explicitly, by
    selecting another group, or on close) always releases the subscription.
    """

    def __init__(self, db, channel, user_id: str, message_limit: int = GROUP_MESSAGE_LIMIT):
        self.db = db
        self.channel = channel
        self.user_id = user_id
        self.message_limit = message_limit
        self.state = UNSELECTED
        self.group_id: str | None = None
        self.messages: list[dict] = []
        self._subscription = None

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None

    async def select_group(self, group_id: str) -> list[dict]:
        """Open a group the user belongs to: subscribe, load history, become active."""
        if self.state != UNSELECTED:
            self.leave()

        self.state = LOADING
        self.group_id = group_id
        try:
            await require_membership(self.db, group_id, self.user_id)
            # Subscribe before loading so nothing inserted in between is missed
            self._subscription = self.channel.subscribe(group_id)
            self.messages = await fetch_group_messages(self.db, group_id, limit=self.message_limit)
        except BaseException:
            self.leave()
            raise

        self.state = ACTIVE
        return list(self.messages)

    async def resync(self) -> list[dict]:
        """Reload history after the live stream lost messages."""
        self.messages = await fetch_group_messages(self.db, self.group_id, limit=self.message_limit)
        print(f"[GROUPS] View of {self.user_id} resynced group {self.group_id}")
        return list(self.messages)

    async def send(self, text: str) -> dict:
        """
        Persist and broadcast a message. The local list only grows after
        the store accepted it, so a failed send leaves the view untouched.
        """
        if self.state != ACTIVE:
            raise ValidationError("No group selected")
        message = await post_message(self.db, self.channel, self.group_id, self.user_id, text)
        self._append(message)
        return message

    def apply_incoming(self, message: dict) -> bool:
        """
        Add a live message unless it's our own echo (already added by send)
        or one we already hold. Returns True when the view changed.
        """
        if self.state != ACTIVE or message.get("group_id") != self.group_id:
            return False
        if message.get("sender_id") == self.user_id:
            return False
        return self._append(message)

    async def next_update(self):
        """
        Wait for the next live message worth showing. None once unsubscribed.
        Returns RESYNC after the subscription overflowed; self.messages has
        been reloaded from the store by then.
        """
        while self._subscription is not None:
            subscription = self._subscription
            message = await subscription.get()
            if message is None:
                return None
            if message is RESYNC:
                if self.state != ACTIVE:
                    continue
                await self.resync()
                return RESYNC
            if self.apply_incoming(message):
                return message
        return None

    def leave(self) -> None:
        if self._subscription is not None:
            self.channel.unsubscribe(self._subscription)
            self._subscription = None
        self.state = UNSELECTED
        self.group_id = None
        self.messages = []

    async def close(self) -> None:
        self.leave()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.leave()

    def _append(self, message: dict) -> bool:
        if any(m["id"] == message["id"] for m in self.messages):
            return False
        self.messages.append(message)
        return True
