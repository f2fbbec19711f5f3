from __future__ import annotations

from decimal import Decimal
from unittest.mock import Mock

import pytest
from fastapi import HTTPException

from socialfeed.core import dynamo
from socialfeed.core.dynamo import ConditionFailed, StoreError

from fakes import client_error


def test_plain_converts_decimals():
    raw = {"id": Decimal("3"), "score": Decimal("1.5"), "tags": [Decimal("2")], "name": "x"}
    assert dynamo.plain(raw) == {"id": 3, "score": 1.5, "tags": [2], "name": "x"}
    assert isinstance(dynamo.plain(Decimal("3")), int)


def test_get_item_wraps_client_error():
    table = Mock()
    table.get_item.side_effect = client_error("ProvisionedThroughputExceededException", "GetItem", "slow down")
    with pytest.raises(StoreError) as exc:
        dynamo.get_item(table, {"id": 1})
    assert exc.value.status_code == 500
    assert exc.value.error == {"code": "ProvisionedThroughputExceededException", "message": "slow down"}


def test_conditional_failure_is_409():
    table = Mock()
    table.put_item.side_effect = client_error("ConditionalCheckFailedException", "PutItem")
    with pytest.raises(ConditionFailed) as exc:
        dynamo.put_item(table, {"id": 1}, condition="cond")
    assert exc.value.status_code == 409
    assert table.put_item.call_args.kwargs["ConditionExpression"] == "cond"


def test_update_fields_builds_set_expression():
    table = Mock()
    table.update_item.return_value = {"Attributes": {"id": Decimal(1), "likes": Decimal(4)}}
    out = dynamo.update_fields(table, {"id": 1}, {"likes": 4, "description": "x"})

    kwargs = table.update_item.call_args.kwargs
    assert kwargs["UpdateExpression"] == "SET #f0 = :v0, #f1 = :v1"
    assert kwargs["ExpressionAttributeNames"] == {"#f0": "likes", "#f1": "description"}
    assert kwargs["ExpressionAttributeValues"] == {":v0": 4, ":v1": "x"}
    assert "ConditionExpression" not in kwargs
    assert out == {"id": 1, "likes": 4}


def test_update_fields_requires_fields():
    with pytest.raises(HTTPException) as exc:
        dynamo.update_fields(Mock(), {"id": 1}, {})
    assert exc.value.status_code == 400


def test_query_page_follows_last_evaluated_key_and_slices():
    table = Mock()
    table.query.side_effect = [
        {"Items": [{"n": 1}, {"n": 2}], "LastEvaluatedKey": {"k": 2}},
        {"Items": [{"n": 3}, {"n": 4}], "LastEvaluatedKey": {"k": 4}},
    ]
    out = dynamo.query_page(table, offset=1, limit=3, KeyConditionExpression="kc")

    assert out == [{"n": 2}, {"n": 3}, {"n": 4}]
    assert table.query.call_count == 2
    first, second = table.query.call_args_list
    assert first.kwargs["Limit"] == 4
    assert second.kwargs["ExclusiveStartKey"] == {"k": 2}


def test_count_sums_pages():
    table = Mock()
    table.query.side_effect = [{"Count": 3, "LastEvaluatedKey": {"k": 1}}, {"Count": 2}]
    assert dynamo.count(table, KeyConditionExpression="kc") == 5
    assert table.query.call_args.kwargs["Select"] == "COUNT"
    assert "ConsistentRead" not in table.query.call_args.kwargs


def test_consistent_reads_are_requested_on_every_page():
    table = Mock()
    table.query.side_effect = [{"Count": 1, "LastEvaluatedKey": {"k": 1}}, {"Count": 1}]
    assert dynamo.count(table, consistent=True, KeyConditionExpression="kc") == 2
    assert all(c.kwargs["ConsistentRead"] is True for c in table.query.call_args_list)

    table.query.side_effect = None
    table.query.return_value = {"Items": [{"n": 1}]}
    dynamo.query_page(table, consistent=True, KeyConditionExpression="kc")
    assert table.query.call_args.kwargs["ConsistentRead"] is True


def test_next_id_uses_atomic_add():
    table = Mock()
    table.update_item.return_value = {"Attributes": {"value": Decimal(7)}}
    assert dynamo.next_id(table, "posts") == 7
    kwargs = table.update_item.call_args.kwargs
    assert kwargs["Key"] == {"name": "posts"}
    assert kwargs["UpdateExpression"] == "ADD #v :one"
