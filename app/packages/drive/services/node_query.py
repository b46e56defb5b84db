"""检索匹配器校验：把不可信的 ``match`` / ``regexMatch`` 转换为 :class:`CompiledMatcher`。

规则摘要：

- 等值匹配允许的字段：``type``、``owner``、``createdAt``、``modifiedAt``、``name``、``size``、``text``；
  正则匹配允许的字段：``type``、``owner``、``name``、``text``；
- ``name`` 被代理到内部字段 ``name-lowercase``，等值匹配的字符串值与正则表达式都统一转小写；
- ``tags`` 只能出现在等值匹配中，取值为字符串数组，表示“命中任意一个标签”；
- ``permissions.<用户名>`` 在两个匹配器中合计最多出现一次；
- 等值匹配的取值可以是标量、``$gt/$lt/$gte/$lte`` 子匹配对象，或带两个元素的 ``$or``。

本模块不访问数据库，也不修改传入的对象。
"""

from __future__ import annotations

import math
import re
from typing import Any, Optional

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.constants import (
    NAME_LOWERCASE_FIELD,
    PERMISSIONS_FIELD,
    PERMISSIONS_PREFIX,
    PUBLIC_GRANTEE,
    REGEX_INLINE_FLAGS,
    TAGS_FIELD,
    USERNAME_PATTERN,
)
from app.packages.drive.core.enums import PERMISSION_LEVELS
from app.packages.drive.core.exceptions import ValidationError
from app.packages.drive.core.matchers import (
    RANGE_OPERATORS,
    CompiledMatcher,
    FieldEquals,
    FieldInSet,
    FieldRange,
    FieldRegex,
    GrantEquals,
    GrantRegex,
    MatcherTerm,
    OrOfRanges,
)

MATCHABLE_FIELDS = ("type", "owner", "createdAt", "modifiedAt", "name", "size", "text")
REGEX_MATCHABLE_FIELDS = ("type", "owner", "name", "text")

OR_OPERATOR = "$or"


def _is_number(value: Any) -> bool:
    if isinstance(value, float):
        return math.isfinite(value)
    return isinstance(value, int) and not isinstance(value, bool)


def _is_scalar(value: Any) -> bool:
    if isinstance(value, float):
        return math.isfinite(value)
    return value is None or isinstance(value, (str, int, bool))


def _internal_field(field: str) -> str:
    return NAME_LOWERCASE_FIELD if field == "name" else field


def normalize_tags(tags: list[str]) -> tuple[str, ...]:
    """标签统一转小写并去重，保持首次出现的顺序。"""
    return tuple(dict.fromkeys(tag.lower() for tag in tags))


class _PermissionsSpecifierCounter:
    """两个匹配器合计只允许一个 ``permissions.<grantee>`` 条件。"""

    def __init__(self) -> None:
        self.seen = False

    def claim(self, key: str) -> str:
        if self.seen:
            raise ValidationError.too_many_items("permissions specifiers")
        self.seen = True
        grantee = key[len(PERMISSIONS_PREFIX):]
        if grantee != PUBLIC_GRANTEE and not _is_username_shaped(grantee):
            raise ValidationError.unknown_specifier(key)
        return grantee


def _is_username_shaped(value: str) -> bool:
    settings = get_settings()
    return (
        settings.min_user_name_length <= len(value) <= settings.max_user_name_length
        and USERNAME_PATTERN.fullmatch(value) is not None
    )


def _compile_range_object(field: str, value: dict) -> tuple[list[FieldRange], list[FieldRange]]:
    """解析子匹配对象，返回 ``(区间条件, $or 操作数)``。"""
    ranges: list[FieldRange] = []
    alternatives: list[FieldRange] = []

    for sub_key, sub_value in value.items():
        if sub_key == OR_OPERATOR:
            if not isinstance(sub_value, list) or len(sub_value) != 2:
                raise ValidationError.invalid_or_specifier("必须是恰好包含两个元素的数组")
            for index, operand in enumerate(sub_value):
                if not isinstance(operand, dict):
                    raise ValidationError.invalid_or_specifier("必须是对象", index)
                if len(operand) != 1:
                    raise ValidationError.invalid_or_specifier("必须恰好包含一个子匹配符", index)
                ((operator, operand_value),) = operand.items()
                if operator not in RANGE_OPERATORS:
                    raise ValidationError.invalid_or_specifier(f"含有非法的子匹配符 `{operator}`", index)
                if not _is_number(operand_value):
                    raise ValidationError.invalid_or_specifier(f"中 `{operator}` 的值必须是数字", index)
                alternatives.append(FieldRange(field, operator, operand_value))
            continue

        if sub_key not in RANGE_OPERATORS:
            raise ValidationError.unknown_specifier(sub_key, sub=True)
        if not _is_number(sub_value):
            raise ValidationError.invalid_specifier_value(sub_key, "数字")
        ranges.append(FieldRange(field, sub_key, sub_value))

    return ranges, alternatives


def _compile_match(
    match: dict,
    counter: _PermissionsSpecifierCounter,
) -> tuple[list[MatcherTerm], list[FieldRange]]:
    settings = get_settings()
    terms: list[MatcherTerm] = []
    alternatives: list[FieldRange] = []

    for key, value in match.items():
        if key == TAGS_FIELD:
            if not isinstance(value, list):
                raise ValidationError.invalid_specifier_value(key, "数组")
            if len(value) > settings.max_searchable_tags:
                raise ValidationError.too_many_items("searchable tags")
            if not all(isinstance(tag, str) for tag in value):
                raise ValidationError.invalid_specifier_value(key, "字符串数组")
            terms.append(FieldInSet(TAGS_FIELD, normalize_tags(value)))
        elif key == PERMISSIONS_FIELD:
            raise ValidationError.unknown_permissions_specifier()
        elif key.startswith(PERMISSIONS_PREFIX):
            grantee = counter.claim(key)
            if not isinstance(value, str) or value not in PERMISSION_LEVELS:
                raise ValidationError.invalid_specifier_value(key, "`view` 或 `edit`")
            terms.append(GrantEquals(grantee, value))
        else:
            if key not in MATCHABLE_FIELDS:
                raise ValidationError.unknown_specifier(key)
            field = _internal_field(key)

            if isinstance(value, dict):
                ranges, field_alternatives = _compile_range_object(field, value)
                if not ranges and not field_alternatives:
                    raise ValidationError.invalid_specifier_value(key, "非空对象")
                terms.extend(ranges)
                alternatives.extend(field_alternatives)
            elif _is_scalar(value):
                if field == NAME_LOWERCASE_FIELD and isinstance(value, str):
                    value = value.lower()
                terms.append(FieldEquals(field, value))
            else:
                raise ValidationError.invalid_specifier_value(key, "数字、字符串、布尔值或子匹配对象")

    return terms, alternatives


def _compile_regex_match(
    regex_match: dict,
    counter: _PermissionsSpecifierCounter,
) -> list[MatcherTerm]:
    terms: list[MatcherTerm] = []

    for key, value in regex_match.items():
        if key == PERMISSIONS_FIELD:
            raise ValidationError.unknown_permissions_specifier()
        if key.startswith(PERMISSIONS_PREFIX):
            grantee = counter.claim(key)
            _check_pattern(key, value)
            terms.append(GrantRegex(grantee, value))
            continue
        if key not in REGEX_MATCHABLE_FIELDS:
            raise ValidationError.unknown_specifier(key)
        field = _internal_field(key)
        if field == NAME_LOWERCASE_FIELD and isinstance(value, str):
            value = value.lower()
        _check_pattern(key, value)
        terms.append(FieldRegex(field, value))

    return terms


def _check_pattern(key: str, value: Any) -> None:
    if not isinstance(value, str) or not value:
        raise ValidationError.invalid_regex(key)
    try:
        re.compile(REGEX_INLINE_FLAGS + value)
    except re.error as exc:
        raise ValidationError.invalid_regex(key) from exc


def compile_matchers(match: Optional[dict], regex_match: Optional[dict]) -> CompiledMatcher:
    """校验两个匹配器并返回编译结果；``None`` 视为空匹配器。"""
    match = {} if match is None else match
    regex_match = {} if regex_match is None else regex_match

    if not isinstance(match, dict):
        raise ValidationError.invalid_matcher("match")
    if not isinstance(regex_match, dict):
        raise ValidationError.invalid_matcher("regexMatch")

    counter = _PermissionsSpecifierCounter()
    terms, alternatives = _compile_match(match, counter)
    terms.extend(_compile_regex_match(regex_match, counter))

    return CompiledMatcher(
        terms=tuple(terms),
        any_of=OrOfRanges(tuple(alternatives)) if alternatives else None,
    )
