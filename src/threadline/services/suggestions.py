"""People, connection and community suggestions built from the social graph."""
from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, joinedload

from threadline.models import (
    Community,
    CommunityMember,
    CommunityVisibility,
    Connection,
    ConnectionStatus,
    Follow,
    User,
)
from threadline.services.social import accepted_partner_ids, linked_user_ids

logger = logging.getLogger(__name__)

# How many example users or communities accompany one suggestion.
PREVIEW_SIZE = 3


@dataclass
class PersonSuggestion:
    user: User
    reason: str
    mutual_count: int = 0
    mutual_connections: list[User] = field(default_factory=list)


@dataclass
class PeopleSuggestions:
    suggestions: list[PersonSuggestion]
    has_more: bool
    message: str | None = None


@dataclass
class ConnectionSuggestion:
    user: User
    suggested_because: str
    mutual_connections_count: int = 0
    mutual_communities: list[Community] = field(default_factory=list)


@dataclass
class CommunitySuggestion:
    community: Community
    reason: str
    member_count: int = 0
    users: list[User] = field(default_factory=list)
    total_count: int = 0


@dataclass
class CommunitySuggestions:
    communities: list[CommunitySuggestion]
    has_more: bool
    message: str | None = None


def _excluded_user_ids(db: Session, user_id: int) -> set[int]:
    """The user plus everyone they already share a connection row with."""
    return {user_id, *db.scalars(linked_user_ids(user_id))}


def _second_degree(db: Session, partners: set[int], excluded: set[int]) -> dict[int, set[int]]:
    """Map each friend-of-a-friend to the partners they are connected through."""
    if not partners:
        return {}
    rows = db.execute(
        select(Connection.requester_id, Connection.target_id).where(
            Connection.status == ConnectionStatus.ACCEPTED.value,
            or_(Connection.requester_id.in_(partners), Connection.target_id.in_(partners)),
        )
    ).all()
    through: dict[int, set[int]] = defaultdict(set)
    for requester_id, target_id in rows:
        for via, candidate in ((requester_id, target_id), (target_id, requester_id)):
            if via in partners and candidate not in excluded:
                through[candidate].add(via)
    return through


def _users_by_id(db: Session, ids: Iterable[int]) -> dict[int, User]:
    ids = set(ids)
    if not ids:
        return {}
    return {user.id: user for user in db.scalars(select(User).where(User.id.in_(ids)))}


def _newest_users(db: Session, excluded: set[int], limit: int) -> list[User]:
    if limit <= 0:
        return []
    stmt = select(User).where(User.id.notin_(excluded)).order_by(User.id.desc()).limit(limit)
    return list(db.scalars(stmt))


def suggest_people(db: Session, user_id: int, *, limit: int) -> PeopleSuggestions:
    """People the user may know, ranked by mutual connections.

    Anyone already sharing a connection row with the user (in any status)
    is left out. When friends-of-friends run short the newest members fill
    the remaining slots with reason ``new_member``.
    """
    partners = set(db.scalars(accepted_partner_ids(user_id)))
    excluded = _excluded_user_ids(db, user_id)
    through = _second_degree(db, partners, excluded)

    ranked = sorted(through, key=lambda candidate: (-len(through[candidate]), -candidate))
    chosen = ranked[:limit]
    previews = {candidate: sorted(through[candidate])[:PREVIEW_SIZE] for candidate in chosen}
    users = _users_by_id(db, [*chosen, *(uid for ids in previews.values() for uid in ids)])

    suggestions = [
        PersonSuggestion(
            user=users[candidate],
            reason="mutual_connections",
            mutual_count=len(through[candidate]),
            mutual_connections=[users[uid] for uid in previews[candidate]],
        )
        for candidate in chosen
    ]
    has_more = len(ranked) > limit
    remaining = limit - len(suggestions)
    if remaining > 0:
        fallback = _newest_users(db, excluded | set(chosen), remaining + 1)
        has_more = has_more or len(fallback) > remaining
        suggestions.extend(
            PersonSuggestion(user=user, reason="new_member") for user in fallback[:remaining]
        )

    message = None
    if not partners:
        message = (
            "Connect with others to find people you may know!"
            if suggestions
            else "Make more connections to see people you may know!"
        )
    return PeopleSuggestions(suggestions=suggestions, has_more=has_more, message=message)


def suggest_connections(db: Session, user_id: int, *, limit: int) -> list[ConnectionSuggestion]:
    """Users to send a connection request to.

    Candidates come from friends-of-friends, people in the same
    communities and the newest members. They are ranked by mutual
    connections, then mutual communities, then newest first.
    """
    partners = set(db.scalars(accepted_partner_ids(user_id)))
    excluded = _excluded_user_ids(db, user_id)
    through = _second_degree(db, partners, excluded)

    mine = select(CommunityMember.community_id).where(CommunityMember.user_id == user_id)
    shared: dict[int, list[Community]] = defaultdict(list)
    rows = db.execute(
        select(CommunityMember.user_id, Community)
        .join(Community, Community.id == CommunityMember.community_id)
        .where(CommunityMember.community_id.in_(mine), CommunityMember.user_id.notin_(excluded))
        .order_by(Community.id)
    ).all()
    for member_id, community in rows:
        shared[member_id].append(community)

    candidates = set(through) | set(shared)
    candidates.update(user.id for user in _newest_users(db, excluded | candidates, limit))
    ranked = sorted(
        candidates,
        key=lambda candidate: (
            -len(through.get(candidate, ())),
            -len(shared.get(candidate, ())),
            -candidate,
        ),
    )[:limit]
    users = _users_by_id(db, ranked)

    suggestions = []
    for candidate in ranked:
        mutual_count = len(through.get(candidate, ()))
        communities = shared.get(candidate, [])
        if mutual_count:
            because = "mutual_connections"
        elif communities:
            because = "mutual_communities"
        else:
            because = "new_member"
        suggestions.append(
            ConnectionSuggestion(
                user=users[candidate],
                suggested_because=because,
                mutual_connections_count=mutual_count,
                mutual_communities=communities[:PREVIEW_SIZE],
            )
        )
    return suggestions


def _public_communities_by_size(
    db: Session,
    *,
    exclude: set[int] | None = None,
    only: set[int] | None = None,
    limit: int | None = None,
) -> list[tuple[Community, int]]:
    """PUBLIC communities with their member totals, largest first."""
    member_totals = (
        select(CommunityMember.community_id, func.count(CommunityMember.id).label("total"))
        .group_by(CommunityMember.community_id)
        .subquery()
    )
    total = func.coalesce(member_totals.c.total, 0)
    stmt = (
        select(Community, total)
        .options(joinedload(Community.creator))
        .outerjoin(member_totals, member_totals.c.community_id == Community.id)
        .where(Community.visibility == CommunityVisibility.PUBLIC.value)
        .order_by(total.desc(), Community.id.desc())
    )
    if exclude:
        stmt = stmt.where(Community.id.notin_(exclude))
    if only is not None:
        stmt = stmt.where(Community.id.in_(only))
    if limit is not None:
        stmt = stmt.limit(limit)
    return [(community, count) for community, count in db.execute(stmt)]


def suggest_communities(db: Session, user_id: int, *, limit: int) -> CommunitySuggestions:
    """PUBLIC communities the user has not joined.

    Communities where connections are members come first (reason
    ``connections``), then those with followed users (``following``), the
    largest first. Popular communities fill any remaining slots.
    """
    joined = set(
        db.scalars(select(CommunityMember.community_id).where(CommunityMember.user_id == user_id))
    )
    partners = set(db.scalars(accepted_partner_ids(user_id)))
    followed = set(db.scalars(select(Follow.following_id).where(Follow.follower_id == user_id)))
    relevant = partners | followed

    members_by_community: dict[int, list[int]] = defaultdict(list)
    if relevant:
        rows = db.execute(
            select(CommunityMember.community_id, CommunityMember.user_id)
            .where(CommunityMember.user_id.in_(relevant))
            .order_by(CommunityMember.id)
        ).all()
        for community_id, member_id in rows:
            if community_id not in joined:
                members_by_community[community_id].append(member_id)

    ranked: list[tuple[Community, int, str, list[int]]] = []
    if members_by_community:
        for community, total in _public_communities_by_size(db, only=set(members_by_community)):
            member_ids = members_by_community[community.id]
            via_connections = [uid for uid in member_ids if uid in partners]
            if via_connections:
                ranked.append((community, total, "connections", via_connections))
            else:
                via_following = [uid for uid in member_ids if uid in followed]
                ranked.append((community, total, "following", via_following))
        # Stable sort keeps the size order within each reason.
        ranked.sort(key=lambda entry: entry[2] != "connections")

    has_more = len(ranked) > limit
    ranked = ranked[:limit]
    preview_users = _users_by_id(db, (uid for *_, ids in ranked for uid in ids[:PREVIEW_SIZE]))
    suggestions = [
        CommunitySuggestion(
            community=community,
            reason=reason,
            member_count=total,
            users=[preview_users[uid] for uid in ids[:PREVIEW_SIZE]],
            total_count=len(ids),
        )
        for community, total, reason, ids in ranked
    ]

    remaining = limit - len(suggestions)
    if remaining > 0:
        taken = joined | {suggestion.community.id for suggestion in suggestions}
        popular = _public_communities_by_size(db, exclude=taken, limit=remaining + 1)
        has_more = has_more or len(popular) > remaining
        suggestions.extend(
            CommunitySuggestion(community=community, reason="popular", member_count=total)
            for community, total in popular[:remaining]
        )

    message = None
    if not relevant:
        message = (
            "Connect with others to get personalized community suggestions!"
            if suggestions
            else "Expand your connections and follows for better suggestions!"
        )
    logger.debug("Suggested %d communities to user %s", len(suggestions), user_id)
    return CommunitySuggestions(communities=suggestions, has_more=has_more, message=message)
