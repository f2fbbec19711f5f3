from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError
from fastapi import HTTPException


class StoreError(HTTPException):
    """A DynamoDB call failed for a reason other than a conditional check.

    The provider's error code and message travel with the exception so the
    envelope handler can attach them to the 500 response.
    """

    def __init__(self, message: str, error: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(status_code=500, detail=message)
        self.error = error or {}


class ConditionFailed(HTTPException):
    def __init__(self, message: str = "Conflict / conditional check failed") -> None:
        super().__init__(status_code=409, detail=message)


def _wrap(exc: ClientError, message: str) -> HTTPException:
    err = exc.response.get("Error", {})
    if err.get("Code") == "ConditionalCheckFailedException":
        return ConditionFailed()
    return StoreError(message, {"code": err.get("Code", "unknown"), "message": err.get("Message", "unknown")})


def plain(value: Any) -> Any:
    """Convert the Decimals the boto3 resource API returns into ints/floats."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [plain(v) for v in value]
    return value


def get_item(table, key: Dict[str, Any], *, consistent: bool = False) -> Optional[Dict[str, Any]]:
    try:
        resp = table.get_item(Key=key, ConsistentRead=consistent)
    except ClientError as exc:
        raise _wrap(exc, "DynamoDB get_item failed") from exc
    item = resp.get("Item")
    return plain(item) if item else None


def put_item(table, item: Dict[str, Any], *, condition=None) -> None:
    kwargs: Dict[str, Any] = {"Item": item}
    if condition is not None:
        kwargs["ConditionExpression"] = condition
    try:
        table.put_item(**kwargs)
    except ClientError as exc:
        raise _wrap(exc, "DynamoDB put_item failed") from exc


def update_fields(table, key: Dict[str, Any], fields: Dict[str, Any], *, condition=None) -> Dict[str, Any]:
    if not fields:
        raise HTTPException(400, "Nothing to update")
    names: Dict[str, str] = {}
    values: Dict[str, Any] = {}
    sets: List[str] = []
    for i, (name, value) in enumerate(fields.items()):
        names[f"#f{i}"] = name
        values[f":v{i}"] = value
        sets.append(f"#f{i} = :v{i}")
    kwargs: Dict[str, Any] = dict(
        Key=key,
        UpdateExpression="SET " + ", ".join(sets),
        ExpressionAttributeNames=names,
        ExpressionAttributeValues=values,
        ReturnValues="ALL_NEW",
    )
    if condition is not None:
        kwargs["ConditionExpression"] = condition
    try:
        resp = table.update_item(**kwargs)
    except ClientError as exc:
        raise _wrap(exc, "DynamoDB update_item failed") from exc
    return plain(resp.get("Attributes", {}))


def delete_item(table, key: Dict[str, Any], *, condition=None) -> Optional[Dict[str, Any]]:
    kwargs: Dict[str, Any] = {"Key": key, "ReturnValues": "ALL_OLD"}
    if condition is not None:
        kwargs["ConditionExpression"] = condition
    try:
        resp = table.delete_item(**kwargs)
    except ClientError as exc:
        raise _wrap(exc, "DynamoDB delete_item failed") from exc
    old = resp.get("Attributes")
    return plain(old) if old else None


def query_page(
    table, *, offset: int = 0, limit: Optional[int] = None, consistent: bool = False, **kwargs
) -> List[Dict[str, Any]]:
    """Run a query and return items[offset:offset + limit] in index order.

    DynamoDB has no offset, so pages are read until enough items are collected.
    ``consistent`` is only valid on the base table, never on a GSI.
    """
    if consistent:
        kwargs["ConsistentRead"] = True
    wanted = None if limit is None else offset + limit
    out: List[Dict[str, Any]] = []
    eks = None
    while True:
        if eks:
            kwargs["ExclusiveStartKey"] = eks
        if wanted is not None:
            kwargs["Limit"] = max(wanted - len(out), 1)
        try:
            resp = table.query(**kwargs)
        except ClientError as exc:
            raise _wrap(exc, "DynamoDB query failed") from exc
        out.extend(resp.get("Items", []))
        eks = resp.get("LastEvaluatedKey")
        if not eks or (wanted is not None and len(out) >= wanted):
            break
    end = None if limit is None else offset + limit
    return plain(out[offset:end])


def query_all(table, **kwargs) -> List[Dict[str, Any]]:
    return query_page(table, **kwargs)


def scan_all(table, **kwargs) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    eks = None
    while True:
        if eks:
            kwargs["ExclusiveStartKey"] = eks
        try:
            resp = table.scan(**kwargs)
        except ClientError as exc:
            raise _wrap(exc, "DynamoDB scan failed") from exc
        out.extend(resp.get("Items", []))
        eks = resp.get("LastEvaluatedKey")
        if not eks:
            break
    return plain(out)


def count(table, *, scan: bool = False, consistent: bool = False, **kwargs) -> int:
    """Exact row count via Select=COUNT, summed across pages.

    Pass ``consistent`` when the count must include a write made just before.
    """
    if consistent:
        kwargs["ConsistentRead"] = True
    total = 0
    eks = None
    op = table.scan if scan else table.query
    while True:
        if eks:
            kwargs["ExclusiveStartKey"] = eks
        try:
            resp = op(Select="COUNT", **kwargs)
        except ClientError as exc:
            raise _wrap(exc, "DynamoDB count failed") from exc
        total += int(resp.get("Count", 0))
        eks = resp.get("LastEvaluatedKey")
        if not eks:
            break
    return total


def next_id(counters_table, name: str) -> int:
    """Allocate the next integer id of a sequence with an atomic ADD."""
    try:
        resp = counters_table.update_item(
            Key={"name": name},
            UpdateExpression="ADD #v :one",
            ExpressionAttributeNames={"#v": "value"},
            ExpressionAttributeValues={":one": 1},
            ReturnValues="UPDATED_NEW",
        )
    except ClientError as exc:
        raise _wrap(exc, f"Could not allocate {name} id") from exc
    return int(resp["Attributes"]["value"])
