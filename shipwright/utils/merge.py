"""配置合并工具"""

import copy
from typing import Any, Dict, Mapping


def deep_assign(target: Dict[str, Any], *sources: Mapping[str, Any]) -> Dict[str, Any]:
    """把 sources 按顺序递归合并到 target 中并返回 target

    - 两边都是映射时递归合并
    - 列表整体替换（不拼接）
    - 值为 None 的键被忽略，不会覆盖已有值
    """
    for source in sources:
        if source is None:
            continue
        for key, value in source.items():
            if value is None:
                continue
            existing = target.get(key)
            if isinstance(value, Mapping) and isinstance(existing, dict):
                deep_assign(existing, value)
            elif isinstance(value, Mapping):
                target[key] = deep_assign({}, value)
            else:
                target[key] = copy.deepcopy(value)
    return target
