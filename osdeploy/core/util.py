# osdeploy/core/util.py

"""
요청 바디/쿼리 구성에 쓰이는 작은 순수 함수들.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

# encodeURIComponent 와 같은 문자 집합 ("-_.~" 는 quote 기본 safe)
_QUERY_SAFE = "!*'()"


def to_query_string(options: Optional[Mapping[str, Any]]) -> str:
    """
    dict 를 URL 쿼리 스트링으로 변환한다.

    빈 dict / None 이면 "" 를, 아니면 "?k1=v1&k2=v2" 를 반환한다.
    키 순서는 dict 의 순서를 그대로 따른다.

    >>> to_query_string({})
    ''
    >>> to_query_string({"a": "1", "b": "2"})
    '?a=1&b=2'
    """
    if not options:
        return ""
    encoded = "&".join(
        f"{quote(str(key), safe=_QUERY_SAFE)}={quote(str(value), safe=_QUERY_SAFE)}"
        for key, value in options.items()
    )
    return "?" + encoded


def is_mapping(item: Any) -> bool:
    return isinstance(item, Mapping)


def deep_merge(base: Mapping[str, Any], override: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    override 를 base 에 깊게 병합한 새 dict 를 반환한다. (입력은 변경하지 않음)

    - 양쪽 모두 dict 인 키는 재귀 병합
    - base 에 없는 키는 override 값을 그대로 삽입
    - 그 외 (스칼라, list 등) 는 override 값으로 통째로 교체
    """
    output: Dict[str, Any] = dict(base)
    if not override:
        return output

    for key, value in override.items():
        if is_mapping(value) and is_mapping(output.get(key)):
            output[key] = deep_merge(output[key], value)
        else:
            output[key] = value
    return output
