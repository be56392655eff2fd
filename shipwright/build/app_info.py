"""
应用信息

从 package.json 元数据和打包配置中推导出一次，整个打包过程只读。
"""

import re
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

from ..config.schema import Configuration
from ..errors import ConfigurationError
from ..utils.paths import sanitize_file_name
from ..utils.versions import version_key

_CHANNEL_RE = re.compile(r'^[A-Za-z]+')


@dataclass(frozen=True)
class AppInfo:
    """应用信息"""
    name: str
    product_name: str
    product_filename: str
    version: str
    build_version: str
    build_number: Optional[str] = None
    channel: Optional[str] = None
    description: Optional[str] = None
    id: Optional[str] = None
    copyright: Optional[str] = None
    company_name: Optional[str] = None

    @classmethod
    def from_metadata(
        cls,
        metadata: Dict[str, Any],
        config: Optional[Configuration] = None,
        build_number: Optional[str] = None,
    ) -> "AppInfo":
        """从 package.json 元数据创建

        Raises:
            ConfigurationError: 缺少 name/version 或版本号格式不正确
        """
        config = config or Configuration()

        name = metadata.get("name")
        if not name:
            raise ConfigurationError("package.json 中缺少 name 字段")

        version = metadata.get("version")
        if not version:
            raise ConfigurationError("package.json 中缺少 version 字段")
        if version_key(str(version)) is None:
            raise ConfigurationError(f"版本号格式不正确: {version}")
        version = str(version)

        product_name = config.product_name or metadata.get("productName") or name
        author = metadata.get("author")
        company_name = author.get("name") if isinstance(author, dict) else author

        return cls(
            name=name,
            product_name=product_name,
            product_filename=sanitize_file_name(product_name),
            version=version,
            build_version=version if build_number is None else f"{version}.{build_number}",
            build_number=build_number,
            channel=get_channel(version),
            description=metadata.get("description"),
            id=config.app_id or f"com.electron.{name}",
            copyright=config.copyright or f"Copyright © {company_name or 'author'}",
            company_name=company_name,
        )

    def get_version_in_windows_form(self) -> str:
        """Windows 资源要求的 4 段版本号：major.minor.patch.build"""
        major, minor, patch, _, _ = version_key(self.version)
        return f"{major}.{minor}.{patch}.{self.build_number or '0'}"

    def with_changes(self, **changes: Any) -> "AppInfo":
        """返回修改了部分字段的副本"""
        return replace(self, **changes)

    def get_field(self, camel_name: str) -> Optional[str]:
        """按 camelCase 名称读取字段（宏展开使用），不存在时返回 None"""
        snake_name = re.sub(r'(?<!^)([A-Z])', r'_\1', camel_name).lower()
        if snake_name not in _FIELD_NAMES:
            return None
        value = getattr(self, snake_name)
        return None if value is None else str(value)


_FIELD_NAMES = frozenset(f.name for f in fields(AppInfo))


def get_channel(version: str) -> Optional[str]:
    """预发布版本的渠道名，例如 1.0.0-beta.2 -> beta，正式版返回 None"""
    key = version_key(version)
    if key is None or key[3]:
        return None
    match = _CHANNEL_RE.match(key[4])
    return match.group(0).lower() if match else None
