"""Outbound delivery: subscriber fan-out, safe replies and temporary mutes."""

from __future__ import annotations

import html
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from telegram import ChatPermissions

from .config import logger
from .state import Participant
from .storage import Storage


def render_mentions(roster: List[Participant]) -> str:
    """``@username`` when known, otherwise an HTML user link with the display name."""
    mentions = []
    for participant in roster:
        if participant.username:
            mentions.append(f"@{participant.username}")
        else:
            name = html.escape(participant.display_name or str(participant.user_id))
            mentions.append(f'<a href="tg://user?id={participant.user_id}">{name}</a>')
    return " ".join(mentions)


class BroadcastGateway:
    """Best-effort delivery on top of a telegram ``Bot``.

    Failures are logged and absorbed per recipient; there is no retry.
    """

    def __init__(self, bot, storage: Storage):
        self.bot = bot
        self.storage = storage

    async def mention_prefix(self, chat_id: int) -> str:
        return render_mentions(await self.storage.get_roster(chat_id))

    async def broadcast(self, text: str, with_mentions: bool = False) -> int:
        delivered = 0
        subscribers = await self.storage.get_subscribers()
        for chat_id in subscribers:
            message = text
            try:
                if with_mentions:
                    mentions = await self.mention_prefix(chat_id)
                    if mentions:
                        message = f"{mentions}\n\n{text}"
                await self.bot.send_message(chat_id, message, parse_mode="HTML")
                delivered += 1
            except Exception as e:
                logger.warning(f"Broadcast to chat {chat_id} failed: {e}")
        logger.info(f"Broadcast delivered to {delivered}/{len(subscribers)} chats")
        return delivered

    async def send_safe(self, chat_id: int, text: str, **kwargs) -> Optional[object]:
        kwargs.setdefault("parse_mode", "HTML")
        try:
            return await self.bot.send_message(chat_id, text, **kwargs)
        except Exception as e:
            logger.warning(f"Could not send message to chat {chat_id}: {e}")
            return None

    async def restrict(self, chat_id: int, user_id: int, seconds: int) -> bool:
        until = datetime.now(timezone.utc) + timedelta(seconds=seconds)
        try:
            await self.bot.restrict_chat_member(
                chat_id=chat_id,
                user_id=user_id,
                permissions=ChatPermissions(can_send_messages=False),
                until_date=until,
            )
            logger.info(f"Muted user {user_id} in chat {chat_id} for {seconds}s")
            return True
        except Exception as e:
            logger.warning(f"Failed to mute user {user_id} in chat {chat_id}: {e}")
            return False
