"""Laboratory directory lookups.

Laboratories live in a DynamoDB table keyed by OrganizationId (hash) and
LaboratoryId (range), with a global secondary index on LaboratoryId so a
laboratory can be resolved without knowing its organization.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from eglib.exceptions import LaboratoryNotFoundError

LOGGER = logging.getLogger("easygenomics.laboratory")


@dataclass
class Laboratory:
    """Laboratory record."""

    OrganizationId: str
    LaboratoryId: str
    Name: str = ""
    Status: str = "Active"
    S3Bucket: Optional[str] = None
    Description: Optional[str] = None

    @property
    def default_prefix(self) -> str:
        """Root prefix of the laboratory's files inside its bucket."""
        return f"{self.OrganizationId}/{self.LaboratoryId}/"

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "Laboratory":
        return cls(
            OrganizationId=item["OrganizationId"],
            LaboratoryId=item["LaboratoryId"],
            Name=item.get("Name", ""),
            Status=item.get("Status", "Active"),
            S3Bucket=item.get("S3Bucket") or None,
            Description=item.get("Description"),
        )


class LaboratoryService:
    """Resolve laboratory ids against the laboratory table."""

    def __init__(
        self,
        table_name: str = "easy-genomics-laboratory-table",
        region: str = "us-east-1",
        profile: Optional[str] = None,
        laboratory_id_index: str = "LaboratoryId_Index",
    ):
        """Initialize the laboratory service.

        Args:
            table_name: DynamoDB table holding laboratory records
            region: AWS region
            profile: AWS profile name
            laboratory_id_index: GSI keyed by LaboratoryId
        """
        session_kwargs = {"region_name": region}
        if profile:
            session_kwargs["profile_name"] = profile

        session = boto3.Session(**session_kwargs)
        self.dynamodb = session.resource("dynamodb")
        self.table_name = table_name
        self.laboratory_id_index = laboratory_id_index
        self.table = self.dynamodb.Table(table_name)

        LOGGER.info("LaboratoryService bound to table: %s (region=%s)", table_name, region)

    def query_by_laboratory_id(self, laboratory_id: str) -> Laboratory:
        """Return the laboratory with the given id.

        Raises:
            LaboratoryNotFoundError: when no record matches.
            ClientError: on DynamoDB failures.
        """
        try:
            response = self.table.query(
                IndexName=self.laboratory_id_index,
                KeyConditionExpression=Key("LaboratoryId").eq(laboratory_id),
            )
        except ClientError as e:
            LOGGER.error("Failed to query laboratory %s: %s", laboratory_id, str(e))
            raise

        items = response.get("Items", [])
        if not items:
            raise LaboratoryNotFoundError(
                message=f"Laboratory '{laboratory_id}' not found",
                details={"laboratory_id": laboratory_id},
            )
        if len(items) > 1:
            LOGGER.warning(
                "LaboratoryId %s matched %d records; using the first", laboratory_id, len(items)
            )
        return Laboratory.from_item(items[0])
