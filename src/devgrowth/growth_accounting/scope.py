"""
Repository/collection membership for the signed-in profile.

The dashboard updates membership optimistically before the backend confirms
it. State is an immutable snapshot and every action goes through
:func:`profile_reducer`, which returns a new snapshot instead of editing the
nested mapping in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple, Union


def _freeze(repo_collections: Mapping[Any, Any]) -> Mapping[int, Tuple[int, ...]]:
    return MappingProxyType(
        {int(repo_id): tuple(int(collection_id) for collection_id in ids) for repo_id, ids in repo_collections.items()}
    )


@dataclass(frozen=True)
class ProfileSnapshot:
    login: str
    name: Optional[str] = None
    repo_collections: Mapping[int, Tuple[int, ...]] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        object.__setattr__(self, "repo_collections", _freeze(self.repo_collections))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ProfileSnapshot":
        """Build from the account profile body; JSON object keys arrive as strings."""
        return cls(
            login=str(payload["login"]),
            name=payload.get("name"),
            repo_collections=payload.get("repo_collections") or {},
        )


@dataclass(frozen=True)
class SetProfileData:
    payload: ProfileSnapshot


@dataclass(frozen=True)
class AddRepositoryToCollection:
    repo_id: int
    collection_id: int


@dataclass(frozen=True)
class RemoveRepositoryFromCollection:
    repo_id: int
    collection_id: int


ProfileAction = Union[SetProfileData, AddRepositoryToCollection, RemoveRepositoryFromCollection]


def _with_memberships(state: ProfileSnapshot, repo_id: int, collection_ids: Tuple[int, ...]) -> ProfileSnapshot:
    updated = dict(state.repo_collections)
    updated[repo_id] = collection_ids
    return replace(state, repo_collections=updated)


def profile_reducer(state: Optional[ProfileSnapshot], action: ProfileAction) -> Optional[ProfileSnapshot]:
    if isinstance(action, SetProfileData):
        return action.payload
    if state is None:
        return None

    if isinstance(action, AddRepositoryToCollection):
        current = state.repo_collections.get(action.repo_id, ())
        if action.collection_id in current:
            return state
        return _with_memberships(state, action.repo_id, current + (action.collection_id,))

    if isinstance(action, RemoveRepositoryFromCollection):
        current = state.repo_collections.get(action.repo_id, ())
        if action.collection_id not in current:
            return state
        remaining = tuple(collection_id for collection_id in current if collection_id != action.collection_id)
        return _with_memberships(state, action.repo_id, remaining)

    return state


def collection_repositories(state: Optional[ProfileSnapshot], collection_id: int) -> Tuple[int, ...]:
    """Repository ids that make up a collection's analysis scope, ascending."""
    if state is None:
        return ()
    return tuple(sorted(repo_id for repo_id, ids in state.repo_collections.items() if collection_id in ids))
