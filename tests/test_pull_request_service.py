import random
from datetime import datetime, timedelta

import pytest

from services import pull_request as pr_service
from services import users as user_service
from services.errors import AlreadyExistsError, ConflictError, InvalidInputError, NotFoundError


class FakeClock:
    def __init__(self):
        self.now = datetime(2025, 11, 1, 12, 0, 0)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


async def reviewers_of(store, pr_id):
    async with store.begin() as uow:
        return await uow.reviewers_of(pr_id)


async def open_pr_with_u2_u3(store, make_team, rng):
    """pr-1 by u1 in team T, reviewed by exactly u2 and u3; u4 active but free."""
    await make_team("T", ["u1", "u2", "u3"], inactive=["u4"])
    pr = await pr_service.create_pull_request("pr-1", "Add feature", "u1", store=store, rng=rng)
    await user_service.set_is_active("u4", True, store=store)
    return pr


@pytest.mark.asyncio
async def test_create_picks_two_distinct_teammates(store, make_team, rng):
    await make_team("T", ["u1", "u2", "u3", "u4"])

    pr = await pr_service.create_pull_request("pr-1", "Add feature", "u1", store=store, rng=rng)

    assert pr["status"] == "OPEN"
    assert pr["mergedAt"] is None
    assert len(pr["assigned_reviewers"]) == 2
    assert len(set(pr["assigned_reviewers"])) == 2
    assert set(pr["assigned_reviewers"]) <= {"u2", "u3", "u4"}
    assert await reviewers_of(store, "pr-1") == pr["assigned_reviewers"]


@pytest.mark.asyncio
async def test_create_with_small_or_empty_team(store, make_team, rng):
    await make_team("solo", ["s1"])
    await make_team("pair", ["p1", "p2"], inactive=["p3"])

    alone = await pr_service.create_pull_request("pr-solo", "Solo", "s1", store=store, rng=rng)
    pair = await pr_service.create_pull_request("pr-pair", "Pair", "p1", store=store, rng=rng)

    assert alone["assigned_reviewers"] == []
    assert pair["assigned_reviewers"] == ["p2"]


@pytest.mark.asyncio
async def test_create_never_assigns_other_teams(store, make_team, rng):
    await make_team("T", ["u1"])
    await make_team("other", ["o1", "o2"])

    pr = await pr_service.create_pull_request("pr-1", "Lonely", "u1", store=store, rng=rng)

    assert pr["assigned_reviewers"] == []


@pytest.mark.asyncio
async def test_create_duplicate_id_is_rejected_without_side_effects(store, make_team, rng):
    await make_team("T", ["u1", "u2", "u3"])
    await make_team("X", ["x1", "x2"])
    first = await pr_service.create_pull_request("pr-1", "First", "u1", store=store, rng=rng)

    with pytest.raises(AlreadyExistsError) as exc:
        await pr_service.create_pull_request("pr-1", "Second", "x1", store=store, rng=rng)

    assert str(exc.value) == "PR_EXISTS"
    async with store.begin() as uow:
        pr = await uow.get_pull_request("pr-1")
        assert pr.name == "First"
        assert pr.author_id == "u1"
        assert await uow.reviewers_of("pr-1") == first["assigned_reviewers"]


@pytest.mark.asyncio
async def test_create_unknown_author(store, rng):
    with pytest.raises(NotFoundError):
        await pr_service.create_pull_request("pr-1", "Ghost", "nobody", store=store, rng=rng)

    async with store.begin() as uow:
        assert await uow.get_pull_request("pr-1") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("args", [
    ("", "name", "u1"),
    ("pr-1", "", "u1"),
    ("pr-1", "name", ""),
    ("pr-1", "name", "   "),
])
async def test_create_rejects_empty_ids(store, args):
    with pytest.raises(InvalidInputError) as exc:
        await pr_service.create_pull_request(*args, store=store)
    assert exc.value.code == "BAD_REQUEST"


@pytest.mark.asyncio
async def test_merge_is_idempotent(store, make_team, rng):
    await make_team("T", ["u1", "u2", "u3"])
    await pr_service.create_pull_request("pr-1", "Add feature", "u1", store=store, rng=rng)
    clock = FakeClock()

    first = await pr_service.merge_pull_request("pr-1", store=store, clock=clock)
    second = await pr_service.merge_pull_request("pr-1", store=store, clock=clock)

    assert first["status"] == "MERGED"
    assert first["mergedAt"] is not None
    assert second["mergedAt"] == first["mergedAt"]
    assert second["assigned_reviewers"] == first["assigned_reviewers"]


@pytest.mark.asyncio
async def test_merge_unknown_pr(store):
    with pytest.raises(NotFoundError):
        await pr_service.merge_pull_request("pr-9999", store=store)


@pytest.mark.asyncio
async def test_reassign_replaces_only_the_old_reviewer(store, make_team, rng):
    await open_pr_with_u2_u3(store, make_team, rng)

    result = await pr_service.reassign_reviewer("pr-1", "u2", store=store, rng=rng)

    assert result["replaced_by"] == "u4"
    assert sorted(result["pr"]["assigned_reviewers"]) == ["u3", "u4"]
    assert sorted(await reviewers_of(store, "pr-1")) == ["u3", "u4"]


@pytest.mark.asyncio
async def test_reassign_picks_from_old_reviewers_team(store, make_team, rng):
    await make_team("T", ["u1", "u2", "u3", "u4", "u5"])
    await make_team("ops", ["o1"])

    for i in range(10):
        pr = await pr_service.create_pull_request(f"pr-{i}", "Change", "u1", store=store, rng=rng)
        old = pr["assigned_reviewers"][0]
        result = await pr_service.reassign_reviewer(f"pr-{i}", old, store=store, rng=rng)

        new = result["replaced_by"]
        assert new not in pr["assigned_reviewers"]
        assert new in {"u2", "u3", "u4", "u5"}
        reviewers = result["pr"]["assigned_reviewers"]
        assert old not in reviewers
        assert "u1" not in reviewers
        assert sorted(reviewers) == sorted([new] + pr["assigned_reviewers"][1:])


@pytest.mark.asyncio
async def test_reassign_no_candidate_keeps_reviewers(store, make_team, rng):
    await make_team("T", ["u1", "u2", "u3"])
    await pr_service.create_pull_request("pr-1", "Add feature", "u1", store=store, rng=rng)
    before = await reviewers_of(store, "pr-1")

    with pytest.raises(ConflictError) as exc:
        await pr_service.reassign_reviewer("pr-1", "u2", store=store, rng=rng)

    assert exc.value.code == "NO_CANDIDATE"
    assert exc.value.reason == "noCandidate"
    assert await reviewers_of(store, "pr-1") == before


@pytest.mark.asyncio
async def test_reassign_on_merged_pr_conflicts(store, make_team, rng):
    await open_pr_with_u2_u3(store, make_team, rng)
    await pr_service.merge_pull_request("pr-1", store=store)

    with pytest.raises(ConflictError) as exc:
        await pr_service.reassign_reviewer("pr-1", "u2", store=store, rng=rng)

    assert exc.value.code == "PR_MERGED"
    assert exc.value.reason == "merged"
    assert sorted(await reviewers_of(store, "pr-1")) == ["u2", "u3"]


@pytest.mark.asyncio
async def test_reassign_not_assigned_reviewer(store, make_team, rng):
    await open_pr_with_u2_u3(store, make_team, rng)

    with pytest.raises(ConflictError) as exc:
        await pr_service.reassign_reviewer("pr-1", "u4", store=store, rng=rng)

    assert exc.value.code == "NOT_ASSIGNED"
    assert sorted(await reviewers_of(store, "pr-1")) == ["u2", "u3"]


@pytest.mark.asyncio
async def test_reassign_unknown_pr(store):
    with pytest.raises(NotFoundError):
        await pr_service.reassign_reviewer("pr-404", "u2", store=store)


@pytest.mark.asyncio
async def test_reassign_rejects_empty_ids(store):
    with pytest.raises(InvalidInputError):
        await pr_service.reassign_reviewer("pr-1", "", store=store)


@pytest.mark.asyncio
async def test_reassign_is_deterministic_with_seed(make_team, store):
    await make_team("T", ["u1", "u2", "u3", "u4", "u5", "u6"])
    await pr_service.create_pull_request("pr-a", "A", "u1", store=store, rng=random.Random(5))
    await pr_service.create_pull_request("pr-b", "B", "u1", store=store, rng=random.Random(5))

    assert await reviewers_of(store, "pr-a") == await reviewers_of(store, "pr-b")
