"""Family member matching for names found in free text.

Policy, in order:
1. exact case-insensitive match of a name token against member names;
2. case-insensitive substring search of the surrounding text for any member
   name, iterating members by id ascending (first hit wins).

No fuzzy matching. A miss returns None and the caller flags the record for
review instead of guessing.
"""
from __future__ import annotations

import logging
import re
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hub import models

logger = logging.getLogger(__name__)


async def load_members(session: AsyncSession) -> list[models.FamilyMember]:
    """Fresh member list for one ingestion run, in matching order (id ascending)."""
    result = await session.execute(select(models.FamilyMember).order_by(models.FamilyMember.id))
    return list(result.scalars().all())


def _ordered(members: Sequence[models.FamilyMember]) -> list[models.FamilyMember]:
    return sorted(members, key=lambda m: m.id)


def match_exact(token: str | None, members: Sequence[models.FamilyMember]) -> models.FamilyMember | None:
    """Member whose name equals ``token`` ignoring case and surrounding space."""
    if not token or not token.strip():
        return None

    wanted = token.strip().lower()
    for member in _ordered(members):
        if member.name.lower() == wanted:
            return member
    return None


def match_in_text(text: str | None, members: Sequence[models.FamilyMember]) -> models.FamilyMember | None:
    """First member (by id) whose name occurs anywhere in ``text``."""
    if not text:
        return None

    haystack = text.lower()
    for member in _ordered(members):
        if member.name and member.name.lower() in haystack:
            return member
    return None


def match_member(
    token: str | None,
    members: Sequence[models.FamilyMember],
    *,
    text: str | None = None,
) -> models.FamilyMember | None:
    """Exact match on ``token`` first, then substring search of ``text``.

    ``text`` defaults to the token itself, so "John Smith" still finds a
    member named "John".
    """
    member = match_exact(token, members)
    if member is not None:
        return member

    member = match_in_text(text if text is not None else token, members)
    if member is None:
        logger.debug(f"No member match for {token!r}")
    return member


def strip_member_name(text: str, name: str, *, default: str = "Travel") -> str:
    """Remove the first case-insensitive occurrence of ``name`` from ``text``.

    Leading separators left behind ("Ivan - Paris") are dropped; an empty
    remainder becomes ``default``.
    """
    stripped = re.sub(re.escape(name), "", text, count=1, flags=re.IGNORECASE)
    stripped = re.sub(r"^[\s\-:]+", "", stripped)
    stripped = re.sub(r"\s{2,}", " ", stripped).strip()
    return stripped or default
