"""Existence check for backends before they are trusted in the service model."""

from __future__ import annotations

import logging

from . import MembershipClient

logger = logging.getLogger(__name__)


class MembershipGate:
    """Answers whether a named pod is still a live cluster member.

    A single blocking read with no retries. MembershipQueryError from the
    client propagates so callers can tell "gone" from "could not ask".
    """

    def __init__(self, client: MembershipClient):
        self._client = client

    def exists(self, name: str, namespace: str) -> bool:
        member = self._client.get_member(name, namespace)
        if member is None:
            logger.debug("Pod %s/%s does not exist", namespace, name)
            return False
        return True

    def for_namespace(self, namespace: str):
        """Bind the namespace, giving the single-argument check the config parser expects."""

        def check(name: str) -> bool:
            return self.exists(name, namespace)

        return check
