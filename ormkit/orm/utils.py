"""ORM 工具函数

提供通用的字符串处理和命名转换工具。
"""
import re


def to_snake_case(name: str) -> str:
    """驼峰命名转下划线命名（支持连续大写缩写如 E2E、API、URL）

    Examples:
        >>> to_snake_case("OrderItem")
        'order_item'
        >>> to_snake_case("APIClient")
        'api_client'
    """
    result = re.sub(r'([A-Z\d]+)([A-Z][a-z])', r'\1_\2', name)
    result = re.sub(r'([a-z])([A-Z])', r'\1_\2', result)
    return result.lower()


def normalize_fields(value) -> list:
    """将 None / 字符串 / 序列统一为字段名列表

    Examples:
        >>> normalize_fields(None)
        []
        >>> normalize_fields("category_id")
        ['category_id']
        >>> normalize_fields(("a", "b"))
        ['a', 'b']
    """
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)
