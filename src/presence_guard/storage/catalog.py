"""Target catalog - read-only resolution of tag identifiers to targets.

The catalog is owned by an external collaborator (admin tooling manages
it); PresenceGuard only reads from it.
"""

import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from presence_guard.common.exceptions import StoreUnavailableError
from presence_guard.data.schemas.target import Target
from presence_guard.storage.dynamodb import from_dynamo

logger = logging.getLogger(__name__)


class TargetCatalog(ABC):
    """Resolves a tag identifier to its target."""

    @abstractmethod
    def resolve(self, tag_id: str) -> Optional[Target]:
        """Return the target bound to ``tag_id``, or None if unknown."""


class InMemoryTargetCatalog(TargetCatalog):
    """Dictionary-backed catalog."""

    def __init__(self, targets: Optional[Iterable[Target]] = None):
        self._lock = threading.Lock()
        self._targets: Dict[str, Target] = {}
        for target in targets or []:
            self.add(target)

    def add(self, target: Target) -> None:
        with self._lock:
            self._targets[target.tag_id] = target

    def resolve(self, tag_id: str) -> Optional[Target]:
        with self._lock:
            return self._targets.get(tag_id)


class DynamoDBTargetCatalog(TargetCatalog):
    """Catalog stored as TARGET#<tag> items."""

    DEFAULT_REGION = "us-east-1"

    def __init__(self, table_name: Optional[str] = None, region: Optional[str] = None):
        self.table_name = table_name or os.environ.get("PRESENCE_TARGETS_TABLE")
        if not self.table_name:
            raise ValueError("PRESENCE_TARGETS_TABLE required")
        self.region = region or os.environ.get("AWS_REGION", self.DEFAULT_REGION)
        self.table = boto3.resource("dynamodb", region_name=self.region).Table(self.table_name)

    def resolve(self, tag_id: str) -> Optional[Target]:
        try:
            resp = self.table.get_item(Key={"pk": f"TARGET#{tag_id}", "sk": "TARGET"})
        except (ClientError, BotoCoreError) as e:
            logger.error(f"resolve_target failed: {e}")
            raise StoreUnavailableError(
                "Target catalog unavailable", operation="resolve_target",
                details={"tag_id": tag_id},
            ) from e

        item = resp.get("Item")
        if not item:
            return None
        data = {k: v for k, v in from_dynamo(item).items() if k in Target.model_fields}
        return Target.model_validate(data)
