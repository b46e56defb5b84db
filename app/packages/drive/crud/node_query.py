"""节点检索查询编译：把 :class:`CompiledMatcher` 翻译为跨两张节点表的 UNION 查询。

每张表各生成一个分支，分支内依次叠加：

1. 可见性约束：请求者是所有者，或出现在节点权限表中（任何级别）；
2. 游标：``id < after``；
3. 所有匹配条件；``OrOfRanges`` 作为额外的一组 OR 条件。

两个分支只投影 ``(id, type)``，合并后按 ``id`` 倒序并截取一页，由调用方回表加载完整节点。
某张表不存在的字段按“文档缺少该字段”处理：与 ``None`` 等值时命中，其余条件一律不命中。
"""

from __future__ import annotations

import operator
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from sqlalchemy import Select, false, or_, select, true, union_all

from app.packages.drive.core.constants import REGEX_INLINE_FLAGS
from app.packages.drive.core.enums import PermissionLevelEnum
from app.packages.drive.core.matchers import (
    CompiledMatcher,
    FieldEquals,
    FieldInSet,
    FieldRange,
    FieldRegex,
    GrantEquals,
    GrantRegex,
)
from app.packages.drive.models.node import (
    FileNode,
    FileNodePermission,
    FileNodeTag,
    MetaNode,
    MetaNodePermission,
)


@dataclass(frozen=True)
class NodeTable:
    """一张节点主表及其附属的权限表、标签表。"""

    model: Any
    permission_model: Any
    tag_model: Optional[Any] = None


FILE_NODE_TABLE = NodeTable(FileNode, FileNodePermission, FileNodeTag)
META_NODE_TABLE = NodeTable(MetaNode, MetaNodePermission)
NODE_TABLES = (FILE_NODE_TABLE, META_NODE_TABLE)

_FIELD_ATTRIBUTES = {
    "type": "type",
    "owner": "owner",
    "createdAt": "created_at",
    "modifiedAt": "modified_at",
    "name-lowercase": "name_lowercase",
    "size": "size",
    "text": "text",
}
_NUMERIC_FIELDS = frozenset({"createdAt", "modifiedAt", "size"})

_RANGE_OPERATORS = {
    "$gt": operator.gt,
    "$lt": operator.lt,
    "$gte": operator.ge,
    "$lte": operator.le,
}


def _column(table: NodeTable, field: str):
    attribute = _FIELD_ATTRIBUTES.get(field)
    return getattr(table.model, attribute, None) if attribute else None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _regex(column, pattern: str):
    return column.regexp_match(REGEX_INLINE_FLAGS + pattern)


def visibility_clause(table: NodeTable, username: str):
    """所有者或任意级别的被授权者可见。"""
    permission = table.permission_model
    return or_(
        table.model.owner == username,
        table.model.id.in_(select(permission.node_id).where(permission.grantee == username)),
    )


def edit_clause(table: NodeTable, username: str):
    """所有者或持有 ``edit`` 授权者可编辑。"""
    permission = table.permission_model
    return or_(
        table.model.owner == username,
        table.model.id.in_(
            select(permission.node_id).where(
                permission.grantee == username,
                permission.level == PermissionLevelEnum.EDIT.value,
            )
        ),
    )


def _field_equals(table: NodeTable, term: FieldEquals):
    column = _column(table, term.field)
    if column is None:
        return true() if term.value is None else false()
    if term.value is None:
        return column.is_(None)
    if term.field in _NUMERIC_FIELDS:
        return column == term.value if _is_number(term.value) else false()
    return column == term.value if isinstance(term.value, str) else false()


def _field_range(table: NodeTable, term: FieldRange):
    column = _column(table, term.field)
    if column is None or term.field not in _NUMERIC_FIELDS:
        return false()
    return _RANGE_OPERATORS[term.operator](column, term.value)


def _field_in_set(table: NodeTable, term: FieldInSet):
    tag_model = table.tag_model
    if tag_model is None or not term.values:
        return false()
    return table.model.id.in_(select(tag_model.node_id).where(tag_model.tag.in_(term.values)))


def _field_regex(table: NodeTable, term: FieldRegex):
    column = _column(table, term.field)
    if column is None:
        return false()
    return _regex(column, term.pattern)


def _grant(table: NodeTable, grantee: str, level_condition):
    permission = table.permission_model
    return table.model.id.in_(
        select(permission.node_id).where(
            permission.grantee == grantee,
            level_condition(permission.level),
        )
    )


def compile_term(table: NodeTable, term):
    """把单个条件节点编译为针对 ``table`` 的 SQL 表达式。"""
    if isinstance(term, FieldEquals):
        return _field_equals(table, term)
    if isinstance(term, FieldRange):
        return _field_range(table, term)
    if isinstance(term, FieldInSet):
        return _field_in_set(table, term)
    if isinstance(term, FieldRegex):
        return _field_regex(table, term)
    if isinstance(term, GrantEquals):
        return _grant(table, term.grantee, lambda level: level == term.level)
    if isinstance(term, GrantRegex):
        return _grant(table, term.grantee, lambda level: _regex(level, term.pattern))
    raise TypeError(f"unsupported matcher term: {term!r}")


def _branch(table: NodeTable, clauses: Iterable) -> Select:
    model = table.model
    return select(model.id.label("id"), model.type.label("type")).where(*clauses)


def _page(branches: list[Select], limit: int) -> Select:
    nodes = union_all(*branches).subquery("nodes")
    return select(nodes.c.id, nodes.c.type).order_by(nodes.c.id.desc()).limit(limit)


def compile_search(
    matcher: CompiledMatcher,
    *,
    username: str,
    limit: int,
    after: Optional[str] = None,
) -> Select:
    """检索一页可见节点，结果行为 ``(id, type)``，最新优先。"""
    branches = []
    for table in NODE_TABLES:
        clauses = [visibility_clause(table, username)]
        if after is not None:
            clauses.append(table.model.id < after)
        clauses.extend(compile_term(table, term) for term in matcher.terms)
        if matcher.any_of is not None:
            clauses.append(or_(*(compile_term(table, operand) for operand in matcher.any_of.operands)))
        branches.append(_branch(table, clauses))
    return _page(branches, limit)


def compile_id_lookup(node_ids: list[str], *, username: str) -> Select:
    """按标识符批量读取请求者可见的节点。"""
    branches = [
        _branch(table, [table.model.id.in_(node_ids), visibility_clause(table, username)])
        for table in NODE_TABLES
    ]
    return _page(branches, max(len(node_ids), 1))


def compile_edit_lookup(node_id: str, *, username: str) -> Select:
    """定位请求者有权编辑的单个节点。"""
    branches = [
        _branch(table, [table.model.id == node_id, edit_clause(table, username)])
        for table in NODE_TABLES
    ]
    return _page(branches, 1)
