"""In-memory stand-ins for the DynamoDB tables the services talk to.

FakeTable understands the subset of the boto3 resource API the service layer
uses: point reads/writes, SET/ADD update expressions, Key/Attr conditions,
GSI queries ordered by their sort key, scans with filters and Select=COUNT.
Setting ``lag`` hides the latest write from reads that are not strongly
consistent, the way a freshly written item can be missing from a GSI or an
eventually consistent read.
"""
from __future__ import annotations

import copy
import re
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from botocore.exceptions import ClientError

from socialfeed.core.tables import Tables


def _to_store(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, dict):
        return {k: _to_store(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_store(v) for v in value]
    return value


def client_error(code: str, operation: str, message: str = "") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message or code}}, operation)


def _matches(cond, item: Dict[str, Any]) -> bool:
    expr = cond.get_expression()
    op = expr["operator"]
    values = expr["values"]
    if op == "AND":
        return all(_matches(v, item) for v in values)
    if op == "OR":
        return any(_matches(v, item) for v in values)
    if op == "NOT":
        return not _matches(values[0], item)

    name = values[0].name
    present = name in item
    if op == "attribute_exists":
        return present
    if op == "attribute_not_exists":
        return not present
    if not present:
        return False
    actual = item[name]
    operand = _to_store(values[1]) if len(values) > 1 else None
    if op == "=":
        return actual == operand
    if op == "<>":
        return actual != operand
    if op == "<":
        return actual < operand
    if op == "<=":
        return actual <= operand
    if op == ">":
        return actual > operand
    if op == ">=":
        return actual >= operand
    if op == "BETWEEN":
        return operand <= actual <= _to_store(values[2])
    if op == "begins_with":
        return isinstance(actual, str) and actual.startswith(operand)
    if op == "contains":
        return operand in actual if isinstance(actual, (str, list, set)) else False
    raise NotImplementedError(f"condition operator {op}")


class FakeTable:
    def __init__(self, name: str, key: Sequence[str], indexes: Optional[Dict[str, Tuple[str, Optional[str]]]] = None):
        self.name = name
        self.key = tuple(key)
        self.indexes = indexes or {}
        self.items: Dict[Tuple, Dict[str, Any]] = {}
        self.calls: List[str] = []
        # When set, reads that are not strongly consistent miss the most recent write.
        self.lag = False
        self._last_write: Optional[Tuple[Tuple, Optional[Dict[str, Any]]]] = None
        self._failures: List[Tuple[str, Callable[[Dict[str, Any]], bool], str]] = []

    # -----------------------------
    # Test helpers
    # -----------------------------
    def fail(self, operation: str, code: str = "InternalServerError", when: Optional[Callable[[Dict[str, Any]], bool]] = None):
        """Make ``operation`` raise a ClientError (for calls where ``when(kwargs)`` holds)."""
        self._failures.append((operation, when or (lambda kwargs: True), code))

    def rows(self) -> List[Dict[str, Any]]:
        return [copy.deepcopy(i) for i in self.items.values()]

    def _enter(self, operation: str, kwargs: Dict[str, Any]) -> None:
        self.calls.append(operation)
        for op, when, code in self._failures:
            if op == operation and when(kwargs):
                raise client_error(code, operation)

    def _pk(self, key: Dict[str, Any]) -> Tuple:
        return tuple(_to_store(key[k]) for k in self.key)

    def _check(self, condition, item: Optional[Dict[str, Any]], operation: str) -> None:
        if condition is not None and not _matches(condition, item or {}):
            raise client_error("ConditionalCheckFailedException", operation, "The conditional request failed")

    def _record(self, pk: Tuple) -> None:
        self._last_write = (pk, copy.deepcopy(self.items.get(pk)))

    def _visible(self, consistent: bool) -> Dict[Tuple, Dict[str, Any]]:
        if consistent or not self.lag or self._last_write is None:
            return self.items
        pk, before = self._last_write
        view = dict(self.items)
        if before is None:
            view.pop(pk, None)
        else:
            view[pk] = before
        return view

    # -----------------------------
    # boto3 Table API
    # -----------------------------
    def get_item(self, Key, ConsistentRead=False, **kwargs):
        self._enter("get_item", dict(Key=Key, **kwargs))
        item = self._visible(ConsistentRead).get(self._pk(Key))
        return {"Item": copy.deepcopy(item)} if item is not None else {}

    def put_item(self, Item, ConditionExpression=None, **kwargs):
        self._enter("put_item", dict(Item=Item, **kwargs))
        pk = self._pk(Item)
        self._check(ConditionExpression, self.items.get(pk), "PutItem")
        self._record(pk)
        self.items[pk] = _to_store(copy.deepcopy(Item))
        return {}

    def update_item(
        self,
        Key,
        UpdateExpression,
        ExpressionAttributeNames=None,
        ExpressionAttributeValues=None,
        ConditionExpression=None,
        ReturnValues="NONE",
        **kwargs,
    ):
        self._enter("update_item", dict(Key=Key, UpdateExpression=UpdateExpression, **kwargs))
        names = ExpressionAttributeNames or {}
        values = ExpressionAttributeValues or {}
        pk = self._pk(Key)
        existing = self.items.get(pk)
        self._check(ConditionExpression, existing, "UpdateItem")
        self._record(pk)

        item = copy.deepcopy(existing) if existing is not None else _to_store(dict(Key))
        updated: Dict[str, Any] = {}
        for action, body in re.findall(r"(SET|ADD|REMOVE)\s+(.*?)(?=\s+(?:SET|ADD|REMOVE)\s|$)", UpdateExpression):
            for clause in (c.strip() for c in body.split(",")):
                if action == "SET":
                    lhs, rhs = (p.strip() for p in clause.split("="))
                    attr = names.get(lhs, lhs)
                    item[attr] = _to_store(values[rhs])
                elif action == "ADD":
                    lhs, rhs = clause.split()
                    attr = names.get(lhs, lhs)
                    item[attr] = item.get(attr, Decimal(0)) + _to_store(values[rhs])
                else:
                    attr = names.get(clause, clause)
                    item.pop(attr, None)
                    continue
                updated[attr] = item[attr]
        self.items[pk] = item

        if ReturnValues == "ALL_NEW":
            return {"Attributes": copy.deepcopy(item)}
        if ReturnValues == "UPDATED_NEW":
            return {"Attributes": copy.deepcopy(updated)}
        return {}

    def delete_item(self, Key, ConditionExpression=None, ReturnValues="NONE", **kwargs):
        self._enter("delete_item", dict(Key=Key, **kwargs))
        pk = self._pk(Key)
        existing = self.items.get(pk)
        self._check(ConditionExpression, existing, "DeleteItem")
        self._record(pk)
        old = self.items.pop(pk, None)
        if ReturnValues == "ALL_OLD" and old is not None:
            return {"Attributes": old}
        return {}

    def query(
        self,
        KeyConditionExpression,
        IndexName=None,
        ScanIndexForward=True,
        Select=None,
        FilterExpression=None,
        ConsistentRead=False,
        **kwargs,
    ):
        self._enter("query", dict(IndexName=IndexName, KeyConditionExpression=KeyConditionExpression, **kwargs))
        if IndexName and ConsistentRead:
            raise client_error(
                "ValidationException", "Query", "Consistent reads are not supported on global secondary indexes"
            )
        if IndexName:
            hash_key, range_key = self.indexes[IndexName]
        else:
            hash_key = self.key[0]
            range_key = self.key[1] if len(self.key) > 1 else None

        found = [
            i for i in self._visible(ConsistentRead).values()
            if hash_key in i and (range_key is None or range_key in i) and _matches(KeyConditionExpression, i)
        ]
        if range_key:
            found.sort(key=lambda i: i[range_key], reverse=not ScanIndexForward)
        if FilterExpression is not None:
            found = [i for i in found if _matches(FilterExpression, i)]
        if Select == "COUNT":
            return {"Count": len(found)}
        return {"Items": copy.deepcopy(found)}

    def scan(self, FilterExpression=None, Select=None, ConsistentRead=False, **kwargs):
        self._enter("scan", dict(FilterExpression=FilterExpression, **kwargs))
        found = [i for i in self._visible(ConsistentRead).values() if FilterExpression is None or _matches(FilterExpression, i)]
        if Select == "COUNT":
            return {"Count": len(found)}
        return {"Items": copy.deepcopy(found)}


def make_tables() -> Tables:
    return Tables(
        users=FakeTable("users", ["user_id_reg"], {"id-index": ("id", None)}),
        posts=FakeTable(
            "posts",
            ["id"],
            {"feed-index": ("feed_partition", "created_at"), "author-index": ("post_id_user", "created_at")},
        ),
        likes=FakeTable("likes", ["post_id", "user_id"], {"post-created-index": ("post_id", "created_at")}),
        comments=FakeTable(
            "comments",
            ["post_id", "id"],
            {"id-index": ("id", None), "author-index": ("user_id", "created_at")},
        ),
        counters=FakeTable("counters", ["name"]),
    )


class InlineExecutor:
    """Runs submitted work immediately so notification side effects are observable."""

    def __init__(self):
        self.submitted = []

    def submit(self, fn, *args, **kwargs):
        self.submitted.append((fn, args, kwargs))
        fn(*args, **kwargs)


def make_services(tables: Optional[Tables] = None, *, notifier=None, notify_on_like: bool = False):
    from types import SimpleNamespace

    from socialfeed.services.comments import CommentLedger
    from socialfeed.services.identity import IdentityResolver
    from socialfeed.services.likes import LikeLedger
    from socialfeed.services.posts import PostStore
    from socialfeed.services.users import UserDirectory

    tables = tables or make_tables()
    users = UserDirectory(tables)
    posts = PostStore(tables, users)
    return SimpleNamespace(
        tables=tables,
        users=users,
        identity=IdentityResolver(users),
        posts=posts,
        likes=LikeLedger(tables, posts, users, notifier, notify_on_like=notify_on_like),
        comments=CommentLedger(tables, posts, users, notifier),
    )
