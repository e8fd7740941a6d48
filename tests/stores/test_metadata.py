"""Tests for the MongoDB metadata adapter."""

from __future__ import annotations

import asyncio
import logging
import re

import pytest

from ao_coverage.errors import BranchNotFound, is_error
from ao_coverage.models import HeadContext, HeadIdentity
from ao_coverage.stores import Metadata
from ao_coverage.stores.metadata import REPOSITORY_COLLECTION, TOKEN_COLLECTION, branch_key
from tests._fixtures.fake_mongo import FakeClient, FakeDatabase

ORG = "kjhoerr"
REPO = "ao-coverage"


def _identity(branch: str = "main", commit: str = "abc123", fmt: str = "cobertura") -> HeadIdentity:
    return HeadIdentity(
        organization=ORG,
        repository=REPO,
        branch=branch,
        head=HeadContext(commit=commit, format=fmt),
    )


def _seed(db: FakeDatabase, branches: dict) -> None:
    db[REPOSITORY_COLLECTION].documents.append(
        {"organization": ORG, "name": REPO, "branches": branches}
    )


def test_get_head_commit_decodes_legacy_string_head(fake_db: FakeDatabase) -> None:
    _seed(fake_db, {"aaaaa": {"head": "yay"}})
    metadata = Metadata(fake_db)

    result = asyncio.run(metadata.get_head_commit(ORG, REPO, "aaaaa"))

    assert result == HeadContext(commit="yay", format="tarpaulin")


def test_get_head_commit_returns_structured_head(fake_db: FakeDatabase) -> None:
    _seed(fake_db, {"aaaaa": {"head": {"commit": "yay", "format": "big-stick"}}})
    metadata = Metadata(fake_db)

    result = asyncio.run(metadata.get_head_commit(ORG, REPO, "aaaaa"))

    assert not is_error(result)
    assert result == HeadContext(commit="yay", format="big-stick")
    assert len(fake_db[REPOSITORY_COLLECTION].calls) == 1


def test_get_head_commit_missing_branch_is_not_found(fake_db: FakeDatabase) -> None:
    _seed(fake_db, {"main": {"head": "yep"}})
    metadata = Metadata(fake_db)

    result = asyncio.run(metadata.get_head_commit(ORG, REPO, "aaaaa"))

    assert isinstance(result, BranchNotFound)
    assert result.message == "Branch not found"


def test_get_head_commit_null_head_is_not_found(fake_db: FakeDatabase) -> None:
    _seed(fake_db, {"aaaaa": {"head": None}})
    metadata = Metadata(fake_db)

    result = asyncio.run(metadata.get_head_commit(ORG, REPO, "aaaaa"))

    assert isinstance(result, BranchNotFound)


def test_get_head_commit_missing_repository_is_not_found(fake_db: FakeDatabase) -> None:
    metadata = Metadata(fake_db)

    result = asyncio.run(metadata.get_head_commit(ORG, REPO, "aaaaa"))

    assert isinstance(result, BranchNotFound)


def test_get_head_commit_propagates_store_errors(fake_db: FakeDatabase) -> None:
    fake_db[REPOSITORY_COLLECTION].error = ConnectionError("fooey")
    metadata = Metadata(fake_db)

    with pytest.raises(ConnectionError, match="fooey"):
        asyncio.run(metadata.get_head_commit(ORG, REPO, "aaaaa"))


def test_update_branch_updates_existing_repository(fake_db: FakeDatabase) -> None:
    _seed(fake_db, {"main": {"head": "old"}, "dev": {"head": "other"}})
    metadata = Metadata(fake_db)

    result = asyncio.run(metadata.update_branch(_identity()))

    collection = fake_db[REPOSITORY_COLLECTION]
    assert result is True
    assert [name for name, _ in collection.calls] == ["find_one_and_update"]
    assert len(collection.documents) == 1
    branches = collection.documents[0]["branches"]
    assert branches["main"]["head"] == {"commit": "abc123", "format": "cobertura"}
    assert branches["dev"]["head"] == "other"


def test_update_branch_creates_unknown_repository(fake_db: FakeDatabase) -> None:
    metadata = Metadata(fake_db)

    result = asyncio.run(metadata.update_branch(_identity(branch="feature")))

    collection = fake_db[REPOSITORY_COLLECTION]
    assert result is True
    assert [name for name, _ in collection.calls] == ["find_one_and_update", "insert_one"]
    assert collection.documents == [
        {
            "organization": ORG,
            "name": REPO,
            "branches": {"feature": {"head": {"commit": "abc123", "format": "cobertura"}}},
        }
    ]


def test_update_branch_then_lookup_round_trips(fake_db: FakeDatabase) -> None:
    metadata = Metadata(fake_db)

    asyncio.run(metadata.update_branch(_identity(commit="first")))
    asyncio.run(metadata.update_branch(_identity(commit="second")))
    result = asyncio.run(metadata.get_head_commit(ORG, REPO, "main"))

    assert result == HeadContext(commit="second", format="cobertura")
    assert len(fake_db[REPOSITORY_COLLECTION].documents) == 1


def test_update_branch_propagates_store_errors(fake_db: FakeDatabase) -> None:
    fake_db[REPOSITORY_COLLECTION].error = ConnectionError("fooey")
    metadata = Metadata(fake_db)

    with pytest.raises(ConnectionError):
        asyncio.run(metadata.update_branch(_identity()))


def test_create_repository_reports_acknowledgement(fake_db: FakeDatabase) -> None:
    fake_db[REPOSITORY_COLLECTION].acknowledge = False
    metadata = Metadata(fake_db)

    assert asyncio.run(metadata.create_repository(_identity())) is False
    assert asyncio.run(metadata.update_branch(_identity())) is False


def test_initialize_token_persists_configured_token(fake_db: FakeDatabase) -> None:
    metadata = Metadata(fake_db)

    token = asyncio.run(metadata.initialize_token("configured"))

    assert token == "configured"
    assert fake_db[TOKEN_COLLECTION].documents == [{"token": "configured"}]


def test_initialize_token_reuses_stored_token(fake_db: FakeDatabase) -> None:
    fake_db[TOKEN_COLLECTION].documents.append({"token": "stored"})
    metadata = Metadata(fake_db)

    assert asyncio.run(metadata.initialize_token()) == "stored"


def test_initialize_token_generates_uuid(fake_db: FakeDatabase, caplog) -> None:
    metadata = Metadata(fake_db)

    with caplog.at_level(logging.WARNING, logger="ao_coverage.metadata"):
        token = asyncio.run(metadata.initialize_token())

    assert re.fullmatch(r"[a-f0-9]{8}(-[a-f0-9]{4}){3}-[a-f0-9]{12}", token)
    assert token in caplog.text
    assert fake_db[TOKEN_COLLECTION].documents == [{"token": token}]


def test_close_closes_owned_client(fake_db: FakeDatabase) -> None:
    client = FakeClient()
    metadata = Metadata(fake_db, client=client)

    asyncio.run(metadata.close())

    assert client.closed is True


def test_branch_key_escapes_path_characters() -> None:
    assert branch_key("main") == "main"
    assert branch_key("release-1.2") == "release-1%2E2"
    assert branch_key("$where") == "%24where"
    assert branch_key("a$b") == "a$b"
    assert branch_key("100%.x") == "100%25%2Ex"


@pytest.mark.parametrize("branch", ["release-1.2", "$set", "v1.0%2E0"])
def test_unusual_branch_names_round_trip(fake_db: FakeDatabase, branch: str) -> None:
    metadata = Metadata(fake_db)

    asyncio.run(metadata.update_branch(_identity(branch=branch, commit="first")))
    assert asyncio.run(metadata.get_head_commit(ORG, REPO, branch)) == HeadContext(
        commit="first", format="cobertura"
    )

    asyncio.run(metadata.update_branch(_identity(branch=branch, commit="second")))
    result = asyncio.run(metadata.get_head_commit(ORG, REPO, branch))

    assert result == HeadContext(commit="second", format="cobertura")
    branches = fake_db[REPOSITORY_COLLECTION].documents[0]["branches"]
    assert list(branches) == [branch_key(branch)]


def test_escaped_branch_does_not_collide_with_literal_name(fake_db: FakeDatabase) -> None:
    metadata = Metadata(fake_db)

    asyncio.run(metadata.update_branch(_identity(branch="v1.0", commit="dotted")))
    asyncio.run(metadata.update_branch(_identity(branch="v1%2E0", commit="literal")))

    assert asyncio.run(metadata.get_head_commit(ORG, REPO, "v1.0")).commit == "dotted"
    assert asyncio.run(metadata.get_head_commit(ORG, REPO, "v1%2E0")).commit == "literal"
