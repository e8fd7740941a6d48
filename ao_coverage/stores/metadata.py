"""MongoDB-backed store for branch heads and the upload token."""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional, Union

from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from ..errors import BranchNotFound, StartupError
from ..logging import get_logger
from ..models import HeadContext, HeadIdentity

REPOSITORY_COLLECTION = "repository"
TOKEN_COLLECTION = "token"

HeadLookup = Union[HeadContext, BranchNotFound]


def branch_key(branch: str) -> str:
    """Field name for ``branch`` inside a repository document.

    MongoDB reads "." as a path separator and a leading "$" as an operator,
    so both are percent-escaped (along with "%" itself).
    """
    key = branch.replace("%", "%25").replace(".", "%2E")
    if key.startswith("$"):
        key = "%24" + key[1:]
    return key


def _head_path(branch: str) -> str:
    return f"branches.{branch_key(branch)}.head"


class Metadata:
    """Reads and writes repository documents, one per (organization, name) pair.

    Documents have the shape::

        {"organization": ..., "name": ...,
         "branches": {<branch>: {"head": {"commit": ..., "format": ...}}}}

    Older documents may store ``head`` as a bare commit string; those are
    decoded as tarpaulin reports.
    """

    def __init__(self, database: Any, *, client: Any | None = None) -> None:
        self._database = database
        self._client = client
        self.logger = get_logger("metadata")

    async def get_head_commit(
        self, organization: str, repository: str, branch: str
    ) -> HeadLookup:
        """Return the head of ``branch`` or ``BranchNotFound``; store errors propagate."""
        path = _head_path(branch)
        document = await self._database[REPOSITORY_COLLECTION].find_one(
            {
                "organization": organization,
                "name": repository,
                path: {"$exists": True, "$ne": None},
            }
        )
        if document is None:
            return BranchNotFound()

        raw = document.get("branches", {}).get(branch_key(branch), {}).get("head")
        if raw is None:
            return BranchNotFound()
        return HeadContext.from_document(raw)

    async def update_branch(self, identity: HeadIdentity) -> bool:
        """Point the branch at a new head, creating the repository on first write."""
        result = await self._database[REPOSITORY_COLLECTION].find_one_and_update(
            {"organization": identity.organization, "name": identity.repository},
            {"$set": {_head_path(identity.branch): identity.head.to_document()}},
        )
        if result is None:
            # not atomic with the lookup above: concurrent first writes may race
            self.logger.debug(
                "Repository %s/%s not found; creating it",
                identity.organization,
                identity.repository,
            )
            return await self.create_repository(identity)
        return True

    async def create_repository(self, identity: HeadIdentity) -> bool:
        document: Dict[str, Any] = {
            "organization": identity.organization,
            "name": identity.repository,
            "branches": {branch_key(identity.branch): {"head": identity.head.to_document()}},
        }
        result = await self._database[REPOSITORY_COLLECTION].insert_one(document)
        return bool(result.acknowledged)

    async def initialize_token(self, token: Optional[str] = None) -> str:
        """Persist the upload token, generating one when none is configured or stored."""
        collection = self._database[TOKEN_COLLECTION]
        if token:
            await collection.find_one_and_replace({}, {"token": token}, upsert=True)
            return token

        if await collection.count_documents({}) > 0:
            stored = await collection.find_one({})
            if stored is not None and isinstance(stored.get("token"), str):
                self.logger.info("Using upload token stored in metadata")
                return stored["token"]

        generated = str(uuid.uuid4())
        await collection.find_one_and_replace({}, {"token": generated}, upsert=True)
        self.logger.warning("TOKEN not set; generated upload token: %s", generated)
        return generated

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self.logger.info("MongoDB client connection closed.")


async def connect(uri: str, database: str) -> Metadata:
    """Open a client, check the server answers, and wrap the named database."""
    client: AsyncMongoClient = AsyncMongoClient(uri)
    try:
        await client.admin.command("ping")
    except PyMongoError as exc:
        await client.close()
        raise StartupError(f"Unable to connect to database: {exc}") from exc
    return Metadata(client[database], client=client)


__all__ = [
    "HeadLookup",
    "Metadata",
    "branch_key",
    "connect",
    "REPOSITORY_COLLECTION",
    "TOKEN_COLLECTION",
]
