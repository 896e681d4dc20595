"""DynamoDB presence store - single-table design.

Key layout (pk / sk):
    CHALLENGE#<id>               / CHALLENGE
    AUDIT#<user>                 / TS#<ts>#<audit_id>
    VISIT#USER#<user>            / TS#<ts>#<visit_id>
    VISIT#TAG#<tag>              / TS#<ts>#<visit_id>
    COOLDOWN#<user>#<tag>        / LOCK
    RATE#USER#<user>             / HOUR#<bucket>
    RATE#TAG#<tag>               / HOUR#<bucket>
    RATE#IP#<ip>                 / WINDOW#<window>
    BAN#<user:id or ip:addr>     / BAN
    USER#<user>                  / REWARDS
    SESSION#<id>                 / SESSION          (gsi1: USER#<user>#SESSIONS)
    SESSIONLOG#<session>         / TS#<ts>#<log_id> (gsi1: SESSIONLOG#USER#<user>)

Challenge consumption is one conditional UpdateItem. The accepted-claim
commit is one TransactWriteItems call. Timestamps in sort keys are
zero-padded epoch milliseconds so lexical order is time order.
"""

import logging
import os
from decimal import Decimal
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from presence_guard.common.clock import hour_bucket
from presence_guard.common.constants import Reasons, StorageConstants
from presence_guard.common.exceptions import CommitConflictError, StoreUnavailableError
from presence_guard.data.schemas.challenge import Challenge, ConsumeOutcome
from presence_guard.data.schemas.records import AuditRecord, BanRecord, RewardTotals, VisitRecord
from presence_guard.data.schemas.session import SessionActivity, SessionRecord
from presence_guard.storage.base import CommitLimits, PresenceStore, challenge_rejection

logger = logging.getLogger(__name__)

CONDITIONAL_FAILURES = {"ConditionalCheckFailedException", "TransactionCanceledException"}
GSI1_INDEX = "gsi1_pk-gsi1_sk-index"


def to_dynamo(value: Any) -> Any:
    """Convert floats to Decimal recursively (DynamoDB rejects floats)."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamo(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dynamo(v) for v in value]
    return value


def from_dynamo(value: Any) -> Any:
    """Convert Decimals back to int or float recursively."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_dynamo(v) for v in value]
    return value


def ts_key(timestamp_ms: int, suffix: str) -> str:
    return f"TS#{timestamp_ms:013d}#{suffix}"


class DynamoDBPresenceStore(PresenceStore):
    """PresenceStore backed by one DynamoDB table."""

    DEFAULT_REGION = "us-east-1"
    DEFAULT_TTL_DAYS = StorageConstants.DEFAULT_TTL_DAYS

    def __init__(
        self,
        table_name: Optional[str] = None,
        region: Optional[str] = None,
        aws_profile: Optional[str] = None,
        ttl_days: int = DEFAULT_TTL_DAYS,
    ):
        self.table_name = table_name or os.environ.get("PRESENCE_DYNAMODB_TABLE")
        if not self.table_name:
            raise ValueError("PRESENCE_DYNAMODB_TABLE required")

        self.region = region or os.environ.get("AWS_REGION", self.DEFAULT_REGION)
        self.ttl_days = ttl_days
        self._serializer = TypeSerializer()

        if aws_profile:
            session = boto3.Session(profile_name=aws_profile)
            self.dynamodb = session.resource("dynamodb", region_name=self.region)
            self.client = session.client("dynamodb", region_name=self.region)
        else:
            self.dynamodb = boto3.resource("dynamodb", region_name=self.region)
            self.client = boto3.client("dynamodb", region_name=self.region)

        self.table = self.dynamodb.Table(self.table_name)
        logger.info(f"DynamoDB presence store initialized: {self.table_name} ({self.region})")

    def _ttl_seconds(self, expires_at_ms: int) -> int:
        return expires_at_ms // 1000

    def _retention_ttl(self, now_ms: int) -> int:
        return self._ttl_seconds(now_ms + self.ttl_days * 86_400_000)

    def _unavailable(self, operation: str, error: Exception) -> StoreUnavailableError:
        logger.error(f"{operation} failed: {error}")
        return StoreUnavailableError(f"DynamoDB {operation} failed", operation=operation,
                                     details={"error": str(error)})

    def _serialize(self, item: Dict[str, Any]) -> Dict[str, Any]:
        return {k: self._serializer.serialize(v) for k, v in to_dynamo(item).items()}

    def _query_all(self, **kwargs) -> List[Dict[str, Any]]:
        """Query following pagination to the end."""
        items: List[Dict[str, Any]] = []
        while True:
            response = self.table.query(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    def _count(self, **kwargs) -> int:
        total = 0
        while True:
            response = self.table.query(Select="COUNT", **kwargs)
            total += response.get("Count", 0)
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return total
            kwargs["ExclusiveStartKey"] = last_key

    # ========== CHALLENGES ==========

    def put_challenge(self, challenge: Challenge) -> None:
        item = {
            "pk": f"CHALLENGE#{challenge.challenge_id}",
            "sk": "CHALLENGE",
            "entity_type": "CHALLENGE",
            **challenge.model_dump(),
            "ttl_timestamp": self._ttl_seconds(
                challenge.expires_at_ms + StorageConstants.CHALLENGE_TTL_GRACE_SECONDS * 1000
            ),
        }
        try:
            self.table.put_item(Item=item)
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("put_challenge", e) from e

    def get_challenge(self, challenge_id: str) -> Optional[Challenge]:
        try:
            resp = self.table.get_item(
                Key={"pk": f"CHALLENGE#{challenge_id}", "sk": "CHALLENGE"},
                ConsistentRead=True,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("get_challenge", e) from e
        if item := resp.get("Item"):
            return Challenge.model_validate(from_dynamo(item))
        return None

    def consume_challenge(
        self, challenge_id: str, user_id: str, nonce: str, now_ms: int
    ) -> ConsumeOutcome:
        try:
            resp = self.table.update_item(
                Key={"pk": f"CHALLENGE#{challenge_id}", "sk": "CHALLENGE"},
                UpdateExpression="SET used = :true",
                ConditionExpression=(
                    "attribute_exists(pk) AND used = :false AND user_id = :uid "
                    "AND nonce = :nonce AND expires_at_ms >= :now"
                ),
                ExpressionAttributeValues={
                    ":true": True,
                    ":false": False,
                    ":uid": user_id,
                    ":nonce": nonce,
                    ":now": now_ms,
                },
                ReturnValues="ALL_NEW",
            )
            challenge = Challenge.model_validate(from_dynamo(resp["Attributes"]))
            return ConsumeOutcome(success=True, challenge=challenge)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") not in CONDITIONAL_FAILURES:
                raise self._unavailable("consume_challenge", e) from e
        except BotoCoreError as e:
            raise self._unavailable("consume_challenge", e) from e

        # Condition failed: read back to classify why
        challenge = self.get_challenge(challenge_id)
        reason = challenge_rejection(challenge, user_id, nonce, now_ms)
        # A concurrent consumer won between our update and the read
        return ConsumeOutcome(success=False, reason=reason or Reasons.REPLAY, challenge=challenge)

    # ========== AUDIT TRAIL ==========

    def _audit_item(self, record: AuditRecord) -> Dict[str, Any]:
        return {
            "pk": f"AUDIT#{record.user_id}",
            "sk": ts_key(record.timestamp_ms, record.audit_id),
            "entity_type": "AUDIT",
            **record.model_dump(mode="json"),
        }

    @staticmethod
    def _to_audit(item: Dict[str, Any]) -> AuditRecord:
        data = {k: v for k, v in from_dynamo(item).items()
                if k not in ("pk", "sk", "entity_type")}
        return AuditRecord.model_validate(data)

    def append_audit(self, record: AuditRecord) -> None:
        try:
            self.table.put_item(
                Item=to_dynamo(self._audit_item(record)),
                ConditionExpression="attribute_not_exists(pk)",
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("append_audit", e) from e

    def recent_audits(self, user_id: str, limit: int) -> List[AuditRecord]:
        try:
            resp = self.table.query(
                KeyConditionExpression=Key("pk").eq(f"AUDIT#{user_id}"),
                ScanIndexForward=False,
                Limit=limit,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("recent_audits", e) from e
        return [self._to_audit(item) for item in resp.get("Items", [])]

    def recent_accepted_audits(self, user_id: str, limit: int) -> List[AuditRecord]:
        # Limit applies before FilterExpression, so page until enough matches
        kwargs = {
            "KeyConditionExpression": Key("pk").eq(f"AUDIT#{user_id}"),
            "FilterExpression": Attr("accepted").eq(True),
            "ScanIndexForward": False,
        }
        records: List[AuditRecord] = []
        try:
            while len(records) < limit:
                resp = self.table.query(**kwargs)
                records.extend(self._to_audit(item) for item in resp.get("Items", []))
                last_key = resp.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("recent_accepted_audits", e) from e
        return records[:limit]

    def count_audit_flags_since(self, user_id: str, flag: str, since_ms: int) -> int:
        try:
            return self._count(
                KeyConditionExpression=(
                    Key("pk").eq(f"AUDIT#{user_id}") & Key("sk").gte(f"TS#{since_ms:013d}")
                ),
                FilterExpression=Attr("flags").contains(flag),
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("count_audit_flags_since", e) from e

    # ========== VISITS, LIMITS AND REWARDS ==========

    def last_visit_at(self, user_id: str, tag_id: str) -> Optional[int]:
        try:
            resp = self.table.get_item(
                Key={"pk": f"COOLDOWN#{user_id}#{tag_id}", "sk": "LOCK"},
                ConsistentRead=True,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("last_visit_at", e) from e
        if item := resp.get("Item"):
            return int(item["last_visit_at_ms"])
        return None

    def count_user_visits_since(self, user_id: str, since_ms: int) -> int:
        try:
            return self._count(
                KeyConditionExpression=(
                    Key("pk").eq(f"VISIT#USER#{user_id}") & Key("sk").gte(f"TS#{since_ms:013d}")
                ),
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("count_user_visits_since", e) from e

    def count_tag_visits_since(self, tag_id: str, since_ms: int) -> int:
        try:
            return self._count(
                KeyConditionExpression=(
                    Key("pk").eq(f"VISIT#TAG#{tag_id}") & Key("sk").gte(f"TS#{since_ms:013d}")
                ),
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("count_tag_visits_since", e) from e

    def _commit_items(
        self,
        visit: VisitRecord,
        audit: AuditRecord,
        limits: CommitLimits,
        now_ms: int,
    ) -> List[Dict[str, Any]]:
        """TransactWriteItems entries. Order matters: conflicts map by index."""
        table = self.table_name
        bucket = hour_bucket(now_ms)
        bucket_ttl = self._ttl_seconds(now_ms + 2 * 3_600_000)
        cooldown_ms = limits.cooldown_seconds * 1000
        visit_data = visit.model_dump(mode="json")
        visit_sk = ts_key(visit.visited_at_ms, visit.visit_id)

        def rate_update(pk: str, cap: int) -> Dict[str, Any]:
            return {
                "Update": {
                    "TableName": table,
                    "Key": self._serialize({"pk": pk, "sk": f"HOUR#{bucket}"}),
                    "UpdateExpression": "ADD hits :one SET ttl_timestamp = :ttl",
                    "ConditionExpression": "attribute_not_exists(hits) OR hits < :cap",
                    "ExpressionAttributeValues": self._serialize(
                        {":one": 1, ":cap": cap, ":ttl": bucket_ttl}
                    ),
                }
            }

        return [
            {
                "Put": {
                    "TableName": table,
                    "Item": self._serialize({
                        "pk": f"COOLDOWN#{visit.user_id}#{visit.tag_id}",
                        "sk": "LOCK",
                        "entity_type": "COOLDOWN",
                        "last_visit_at_ms": visit.visited_at_ms,
                        "visit_id": visit.visit_id,
                        "ttl_timestamp": self._ttl_seconds(now_ms + cooldown_ms) + 86_400,
                    }),
                    "ConditionExpression": "attribute_not_exists(pk) OR last_visit_at_ms <= :threshold",
                    "ExpressionAttributeValues": self._serialize(
                        {":threshold": now_ms - cooldown_ms}
                    ),
                }
            },
            rate_update(f"RATE#USER#{visit.user_id}", limits.user_hourly_cap),
            rate_update(f"RATE#TAG#{visit.tag_id}", limits.tag_hourly_cap),
            {
                "Put": {
                    "TableName": table,
                    "Item": self._serialize({
                        "pk": f"VISIT#USER#{visit.user_id}", "sk": visit_sk,
                        "entity_type": "VISIT", **visit_data,
                    }),
                    "ConditionExpression": "attribute_not_exists(pk)",
                }
            },
            {
                "Put": {
                    "TableName": table,
                    "Item": self._serialize({
                        "pk": f"VISIT#TAG#{visit.tag_id}", "sk": visit_sk,
                        "entity_type": "VISIT", **visit_data,
                    }),
                    "ConditionExpression": "attribute_not_exists(pk)",
                }
            },
            {
                "Update": {
                    "TableName": table,
                    "Key": self._serialize({"pk": f"USER#{visit.user_id}", "sk": "REWARDS"}),
                    "UpdateExpression": "ADD points :points, xp :xp SET user_id = :uid",
                    "ExpressionAttributeValues": self._serialize(
                        {":points": visit.points, ":xp": visit.xp, ":uid": visit.user_id}
                    ),
                }
            },
            {
                "Put": {
                    "TableName": table,
                    "Item": self._serialize(self._audit_item(audit)),
                    "ConditionExpression": "attribute_not_exists(pk)",
                }
            },
        ]

    # Index of the transaction entry -> rejection reason
    CONFLICT_REASONS = {
        0: Reasons.COOLDOWN_ACTIVE,
        1: Reasons.HOURLY_LIMIT_REACHED,
        2: Reasons.TAG_HOURLY_LIMIT_REACHED,
    }

    # Transport errors leave the outcome unknown. Replaying with the same
    # ClientRequestToken is idempotent on DynamoDB's side.
    COMMIT_ATTEMPTS = 2

    def commit_accepted_claim(
        self,
        visit: VisitRecord,
        audit: AuditRecord,
        limits: CommitLimits,
        now_ms: int,
    ) -> RewardTotals:
        items = self._commit_items(visit, audit, limits, now_ms)
        for attempt in range(1, self.COMMIT_ATTEMPTS + 1):
            try:
                self.client.transact_write_items(
                    TransactItems=items,
                    ClientRequestToken=visit.visit_id,
                )
                break
            except ClientError as e:
                code = e.response.get("Error", {}).get("Code")
                if code != "TransactionCanceledException":
                    raise self._unavailable("commit_accepted_claim", e) from e
                raise self._conflict(e, visit) from e
            except BotoCoreError as e:
                if attempt == self.COMMIT_ATTEMPTS:
                    raise self._unavailable("commit_accepted_claim", e) from e
                logger.warning(
                    f"commit_accepted_claim transport error, retrying with same token: {e}"
                )

        logger.info(
            "Committed accepted claim",
            extra={"user_id": visit.user_id, "tag_id": visit.tag_id, "visit_id": visit.visit_id},
        )
        return self.get_reward_totals(visit.user_id)

    def _conflict(self, error: ClientError, visit: VisitRecord) -> CommitConflictError:
        reasons = error.response.get("CancellationReasons", [])
        reason = Reasons.COOLDOWN_ACTIVE
        for index, cancellation in enumerate(reasons):
            if cancellation.get("Code") == "ConditionalCheckFailed":
                reason = self.CONFLICT_REASONS.get(index, Reasons.COOLDOWN_ACTIVE)
                break
        return CommitConflictError(
            "Reward commit cancelled",
            reason=reason,
            details={"user_id": visit.user_id, "tag_id": visit.tag_id},
        )

    def recent_visits(self, user_id: str, limit: int) -> List[VisitRecord]:
        try:
            resp = self.table.query(
                KeyConditionExpression=Key("pk").eq(f"VISIT#USER#{user_id}"),
                ScanIndexForward=False,
                Limit=limit,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("recent_visits", e) from e
        visits = []
        for item in resp.get("Items", []):
            data = {k: v for k, v in from_dynamo(item).items()
                    if k not in ("pk", "sk", "entity_type")}
            visits.append(VisitRecord.model_validate(data))
        return visits

    def get_reward_totals(self, user_id: str) -> RewardTotals:
        try:
            resp = self.table.get_item(
                Key={"pk": f"USER#{user_id}", "sk": "REWARDS"},
                ConsistentRead=True,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("get_reward_totals", e) from e
        item = from_dynamo(resp.get("Item") or {})
        return RewardTotals(
            user_id=user_id,
            points=item.get("points", 0),
            xp=item.get("xp", 0),
        )

    # ========== BANS AND IP WINDOWS ==========

    def put_ban(self, ban: BanRecord) -> None:
        item = {
            "pk": f"BAN#{ban.identifier}",
            "sk": "BAN",
            "entity_type": "BAN",
            **ban.model_dump(),
            "ttl_timestamp": self._ttl_seconds(ban.expires_at_ms) + 86_400,
        }
        try:
            self.table.put_item(Item=item)
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("put_ban", e) from e

    def get_ban(self, identifier: str) -> Optional[BanRecord]:
        try:
            resp = self.table.get_item(
                Key={"pk": f"BAN#{identifier}", "sk": "BAN"},
                ConsistentRead=True,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("get_ban", e) from e
        if item := resp.get("Item"):
            data = {k: v for k, v in from_dynamo(item).items() if k in BanRecord.model_fields}
            return BanRecord.model_validate(data)
        return None

    def delete_ban(self, identifier: str) -> bool:
        try:
            resp = self.table.delete_item(
                Key={"pk": f"BAN#{identifier}", "sk": "BAN"},
                ReturnValues="ALL_OLD",
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("delete_ban", e) from e
        return bool(resp.get("Attributes"))

    def hit_ip_window(self, ip_address: str, window: int, expires_at_ms: int) -> int:
        try:
            resp = self.table.update_item(
                Key={"pk": f"RATE#IP#{ip_address}", "sk": f"WINDOW#{window}"},
                UpdateExpression="ADD hits :one SET ttl_timestamp = :ttl",
                ExpressionAttributeValues={
                    ":one": 1,
                    ":ttl": self._ttl_seconds(expires_at_ms) + 60,
                },
                ReturnValues="UPDATED_NEW",
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("hit_ip_window", e) from e
        return int(resp["Attributes"]["hits"])

    # ========== SESSIONS ==========

    def put_session(self, session: SessionRecord) -> None:
        item = {
            "pk": f"SESSION#{session.session_id}",
            "sk": "SESSION",
            "entity_type": "SESSION",
            **session.model_dump(),
            "gsi1_pk": f"USER#{session.user_id}#SESSIONS",
            "gsi1_sk": f"{session.created_at_ms:013d}",
            "ttl_timestamp": self._ttl_seconds(session.expires_at_ms) + 86_400,
        }
        try:
            self.table.put_item(Item=to_dynamo(item))
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("put_session", e) from e

    @staticmethod
    def _to_session(item: Dict[str, Any]) -> SessionRecord:
        data = {k: v for k, v in from_dynamo(item).items()
                if k in SessionRecord.model_fields}
        return SessionRecord.model_validate(data)

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        try:
            resp = self.table.get_item(Key={"pk": f"SESSION#{session_id}", "sk": "SESSION"})
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("get_session", e) from e
        if item := resp.get("Item"):
            return self._to_session(item)
        return None

    def revoke_session(self, session_id: str, now_ms: int) -> bool:
        try:
            self.table.update_item(
                Key={"pk": f"SESSION#{session_id}", "sk": "SESSION"},
                UpdateExpression="SET revoked = :true, revoked_at_ms = :now",
                ConditionExpression="attribute_exists(pk)",
                ExpressionAttributeValues={":true": True, ":now": now_ms},
            )
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                return False
            raise self._unavailable("revoke_session", e) from e
        except BotoCoreError as e:
            raise self._unavailable("revoke_session", e) from e

    def list_user_sessions(self, user_id: str) -> List[SessionRecord]:
        try:
            items = self._query_all(
                IndexName=GSI1_INDEX,
                KeyConditionExpression=Key("gsi1_pk").eq(f"USER#{user_id}#SESSIONS"),
                ScanIndexForward=False,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("list_user_sessions", e) from e
        return [self._to_session(item) for item in items]

    def append_session_activity(self, activity: SessionActivity) -> None:
        item = {
            "pk": f"SESSIONLOG#{activity.session_id}",
            "sk": ts_key(activity.timestamp_ms, activity.log_id),
            "entity_type": "SESSION_ACTIVITY",
            **activity.model_dump(mode="json"),
            "gsi1_pk": f"SESSIONLOG#USER#{activity.user_id}",
            "gsi1_sk": ts_key(activity.timestamp_ms, activity.log_id),
        }
        try:
            self.table.put_item(Item=to_dynamo(item))
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("append_session_activity", e) from e

    @staticmethod
    def _to_activity(item: Dict[str, Any]) -> SessionActivity:
        data = {k: v for k, v in from_dynamo(item).items()
                if k in SessionActivity.model_fields}
        return SessionActivity.model_validate(data)

    def session_activity(self, session_id: str, limit: int) -> List[SessionActivity]:
        try:
            resp = self.table.query(
                KeyConditionExpression=Key("pk").eq(f"SESSIONLOG#{session_id}"),
                ScanIndexForward=False,
                Limit=limit,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("session_activity", e) from e
        return [self._to_activity(item) for item in resp.get("Items", [])]

    def user_session_activity_since(self, user_id: str, since_ms: int) -> List[SessionActivity]:
        try:
            items = self._query_all(
                IndexName=GSI1_INDEX,
                KeyConditionExpression=(
                    Key("gsi1_pk").eq(f"SESSIONLOG#USER#{user_id}")
                    & Key("gsi1_sk").gte(f"TS#{since_ms:013d}")
                ),
                ScanIndexForward=False,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._unavailable("user_session_activity_since", e) from e
        return [self._to_activity(item) for item in items]

    def health_check(self) -> bool:
        try:
            self.client.describe_table(TableName=self.table_name)
            return True
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"DynamoDB health check failed: {e}")
            return False
