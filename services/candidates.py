"""Eligible-reviewer selection.

The query is always the same: active members of one team minus an exclusion
set. What differs between operations is which team is searched and what is
excluded, and the two reassignment paths deliberately keep different
policies:

* a single reassignment searches the *replaced reviewer's* team;
* a deactivation cascade searches the *pull request author's* team, since
  the replaced reviewer's own team may be the one being switched off.
"""
from typing import AbstractSet, Iterable, List, Set

from repositories.base import UnitOfWork


async def find_candidates(uow: UnitOfWork, team_name: str, exclude_user_ids: AbstractSet[str]) -> List[str]:
    """Active members of ``team_name`` not in ``exclude_user_ids``, ordered by id.

    An empty result is a normal outcome; callers decide whether it is an error.
    """
    members = await uow.active_team_members(team_name, exclude_user_ids)
    return [member.user_id for member in members if member.user_id not in exclude_user_ids]


def creation_exclusions(author_id: str) -> Set[str]:
    return {author_id}


def reassign_exclusions(old_reviewer_id: str, author_id: str, current_reviewers: Iterable[str]) -> Set[str]:
    return {old_reviewer_id, author_id, *current_reviewers}


def cascade_exclusions(author_id: str, current_reviewers: Iterable[str], targets: Iterable[str]) -> Set[str]:
    # Every target of the cascade is excluded, not only the ones on this pull request
    return {author_id, *current_reviewers, *targets}
