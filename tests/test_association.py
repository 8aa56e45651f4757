from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

import pytest

from batchloader.loader import Loader
from batchloader.models import NOT_LOADED, Association, Preloaded, freeze_params
from batchloader.sources import AssociationSource


@dataclass
class User:
    id: int
    username: str
    posts: Any = NOT_LOADED


@dataclass
class Post:
    id: int
    user_id: int
    title: str = ""
    user: Any = NOT_LOADED


@dataclass
class InMemoryRepo:
    users: list[User] = field(default_factory=list)
    posts: list[Post] = field(default_factory=list)
    calls: list[tuple[Association, frozenset, Any]] = field(default_factory=list)

    def fetch(
        self,
        association: Association,
        owner_ids: frozenset,
        query: Callable[[Post], bool] | None,
    ) -> dict[int, Any]:
        self.calls.append((association, owner_ids, query))
        if association.name == "posts":
            matches = query or (lambda post: True)
            return {
                owner_id: [p for p in self.posts if p.user_id == owner_id and matches(p)]
                for owner_id in owner_ids
            }
        if association.name == "user":
            users = {user.id: user for user in self.users}
            return {
                post.id: users.get(post.user_id)
                for post in self.posts
                if post.id in owner_ids
            }
        raise ValueError(f"unknown association {association.name}")


def _title_filter(name: str, params: dict[str, Any]) -> Callable[[Post], bool] | None:
    if "title" not in params:
        return None
    return lambda post: post.title == params["title"]


def _setup() -> tuple[Loader, InMemoryRepo]:
    repo = InMemoryRepo()
    source = AssociationSource(fetch=repo.fetch, query=_title_filter)
    return Loader().add_source("db", source), repo


def test_successive_loads_query_only_for_new_info() -> None:
    loader, repo = _setup()
    user1 = User(1, "Ben Wilson")
    user2 = User(2, "Andy McVitty")
    post1 = Post(10, user_id=1)
    post2 = Post(11, user_id=2)
    repo.users.extend([user1, user2])
    repo.posts.extend([post1, post2])

    loader = loader.load("db", "user", post1).run()
    assert loader.get("db", "user", post1) == user1
    assert len(repo.calls) == 1

    loader = loader.load("db", "user", post1).load("db", "user", post2).run()

    assert len(repo.calls) == 2
    assert repo.calls[-1][1] == frozenset({11})
    assert loader.get("db", "user", post1) == user1
    assert loader.get("db", "user", post2) == user2


def test_association_loading_groups_owners() -> None:
    loader, repo = _setup()
    ben = User(1, "Ben Wilson")
    andy = User(2, "Andy McVitty")
    posts = [Post(10, user_id=1), Post(11, user_id=1), Post(12, user_id=2)]
    repo.users.extend([ben, andy])
    repo.posts.extend(posts)

    loader = loader.load_many("db", "posts", [ben, andy]).run()

    assert len(repo.calls) == 1
    association, owner_ids, query = repo.calls[0]
    assert association == Association("User", "posts")
    assert owner_ids == frozenset({1, 2})
    assert query is None
    assert loader.get("db", "posts", ben) == posts[:2]
    assert loader.get_many("db", "posts", [andy]) == [posts[2:]]

    assert loader.load("db", "posts", ben).run() is loader
    assert len(repo.calls) == 1


def test_cache_can_be_warmed() -> None:
    loader, repo = _setup()
    user = User(1, "Ben Wilson")
    posts = [Post(10, user_id=1), Post(11, user_id=1)]
    repo.posts.extend(posts)

    loader = loader.put("db", "posts", user, posts)
    loader = loader.load("db", "posts", user).run()

    assert repo.calls == []
    assert loader.get("db", "posts", user) == posts


def test_not_loaded_value_does_not_warm_cache() -> None:
    loader, repo = _setup()
    user = User(1, "Ben Wilson")
    posts = [Post(10, user_id=1), Post(11, user_id=1)]
    repo.posts.extend(posts)

    warmed = loader.put("db", "posts", user, user.posts)
    assert warmed is loader

    loader = warmed.load("db", "posts", user).run()

    assert len(repo.calls) == 1
    assert loader.get("db", "posts", user) == posts


def test_preloaded_owner_seeds_cache() -> None:
    loader, repo = _setup()
    post = Post(10, user_id=1)
    user = User(1, "Ben Wilson", posts=Preloaded([post]))

    loader = loader.load("db", "posts", user)

    assert not loader.pending_batches()
    assert loader.run() is loader
    assert loader.get("db", "posts", user) == [post]
    assert repo.calls == []


def test_unmarked_embedded_value_is_fetched() -> None:
    loader, repo = _setup()
    post = Post(10, user_id=1)
    repo.posts.append(post)
    user = User(1, "Ben Wilson", posts=[])

    loader = loader.load("db", "posts", user).run()

    assert len(repo.calls) == 1
    assert loader.get("db", "posts", user) == [post]


def test_put_unwraps_preloaded() -> None:
    loader, _ = _setup()
    user = User(1, "Ben Wilson")
    loader = loader.put("db", "posts", user, Preloaded(["cached"]))
    assert loader.get("db", "posts", user) == ["cached"]


def test_params_form_a_separate_group_and_reach_query_hook() -> None:
    loader, repo = _setup()
    user = User(1, "Ben Wilson", posts=Preloaded([]))
    hello = Post(10, user_id=1, title="hello")
    other = Post(11, user_id=1, title="other")
    repo.posts.extend([hello, other])

    loader = loader.load("db", ("posts", {"title": "hello"}), user).run()

    assert len(repo.calls) == 1
    association, owner_ids, query = repo.calls[0]
    assert association.params_dict == {"title": "hello"}
    assert query is not None
    assert loader.get("db", ("posts", {"title": "hello"}), user) == [hello]
    # the preloaded (unfiltered) value still answers the plain association
    assert loader.load("db", "posts", user).get("db", "posts", user) == []


def test_query_hook_receives_params_as_passed() -> None:
    seen: list[dict[str, Any]] = []

    def by_status_and_id(name: str, params: dict[str, Any]) -> Callable[[Post], bool]:
        seen.append(params)
        status = params["filter"]["status"]
        wanted = set(params["ids"])
        return lambda post: post.title == status and post.id in wanted

    repo = InMemoryRepo()
    loader = Loader().add_source("db", AssociationSource(fetch=repo.fetch, query=by_status_and_id))
    user = User(1, "Ben Wilson")
    draft = Post(10, user_id=1, title="draft")
    repo.posts.extend([draft, Post(11, user_id=1, title="draft"), Post(12, user_id=1)])
    params = {"filter": {"status": "draft"}, "ids": [10, 12]}

    loader = loader.load("db", ("posts", params), user).run()

    assert seen == [params]
    assert isinstance(seen[0]["ids"], list)
    assert isinstance(seen[0]["filter"], dict)
    assert loader.get("db", ("posts", {"ids": [10, 12], "filter": {"status": "draft"}}), user) == [draft]


def test_params_with_mixed_key_types_group_together() -> None:
    assert freeze_params({1: "a", "b": 2}) == freeze_params({"b": 2, 1: "a"})

    loader, repo = _setup()
    user = User(1, "Ben Wilson")
    repo.posts.append(Post(10, user_id=1, title="hello"))

    loader = loader.load("db", ("posts", {1: "a", "title": "hello"}), user).run()
    loader = loader.load("db", ("posts", {"title": "hello", 1: "a"}), user).run()

    assert len(repo.calls) == 1
    assert loader.get("db", ("posts", {"title": "hello", 1: "a"}), user) == [repo.posts[0]]


def test_mapping_owners_and_custom_key() -> None:
    calls: list[frozenset] = []

    def fetch(association, owner_keys, query):
        calls.append(owner_keys)
        return {key: f"{association.owner_type}:{key}" for key in owner_keys}

    source = AssociationSource(
        fetch=fetch,
        key_fn=lambda owner: owner["slug"],
        type_fn=lambda owner: owner["kind"],
    )
    loader = Loader().add_source("api", source)
    owner = {"slug": "acme", "kind": "Org"}

    loader = loader.load("api", "members", owner).run()

    assert calls == [frozenset({"acme"})]
    assert loader.get("api", "members", owner) == "Org:acme"


def test_owner_without_id_is_rejected() -> None:
    loader, _ = _setup()
    with pytest.raises(ValueError, match="no 'id'"):
        loader.load("db", "posts", {"name": "nobody"})


def test_invalid_association_key() -> None:
    loader, _ = _setup()
    with pytest.raises(TypeError, match="Association key"):
        loader.load("db", 42, User(1, "Ben Wilson"))
