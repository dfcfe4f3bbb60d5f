"""Query argument builders for the AWS query APIs (Action/Version + indexed filters)."""

from __future__ import annotations

from typing import Iterable, Mapping
from urllib.parse import quote

AUTOSCALING_API_VERSION = "2011-01-01"
EC2_API_VERSION = "2015-10-01"

QueryArgs = list[tuple[str, str]]

# RFC 3986 unreserved characters, as required by SigV4 canonical queries
_UNRESERVED = "-_.~"


def instance_id_filters(instance_ids: Iterable[str]) -> QueryArgs:
    """InstanceId.1 .. InstanceId.N, one per id."""
    return [(f"InstanceId.{n}", instance_id) for n, instance_id in enumerate(instance_ids, start=1)]


def tag_filters(tags: Mapping[str, str], start: int = 1) -> QueryArgs:
    """Filter.<n>.Name=tag:<key> and Filter.<n>.Value.1=<value>, one n per tag.

    Tags are numbered in key order so the same tag set always renders the same query.
    """
    args: QueryArgs = []
    for n, (key, value) in enumerate(sorted(tags.items()), start=start):
        args.append((f"Filter.{n}.Name", f"tag:{key}"))
        args.append((f"Filter.{n}.Value.1", value))
    return args


def describe_autoscaling_instances_args(next_token: str | None = None) -> QueryArgs:
    args: QueryArgs = [("Action", "DescribeAutoScalingInstances"), ("Version", AUTOSCALING_API_VERSION)]
    if next_token is not None:
        args.append(("NextToken", next_token))
    return args


def describe_instances_args(
    instance_ids: Iterable[str] = (),
    tags: Mapping[str, str] | None = None,
) -> QueryArgs:
    """DescribeInstances arguments restricted to the given instances and/or tags, sorted by name."""
    args: QueryArgs = [("Action", "DescribeInstances"), ("Version", EC2_API_VERSION)]
    args.extend(instance_id_filters(instance_ids))
    args.extend(tag_filters(tags or {}))
    return sorted(args, key=lambda arg: arg[0])


def build_query_string(args: QueryArgs) -> str:
    return "&".join(f"{quote(key, safe=_UNRESERVED)}={quote(value, safe=_UNRESERVED)}" for key, value in args)


def build_path(args: QueryArgs) -> str:
    """Request path for a GET against a query API endpoint, e.g. '/?Action=...&Version=...'."""
    return "/?" + build_query_string(args)
