"""
配置加载器

负责从 YAML 文件或 package.json 的 build 字段加载配置并进行验证。
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .schema import Configuration

DEFAULT_CONFIG_FILES = ("electron-builder.yml", "electron-builder.yaml")


class ConfigError(Exception):
    """配置错误基类"""
    pass


class ConfigValidationError(ConfigError):
    """配置验证错误"""

    def __init__(self, message: str, errors: List[Dict[str, Any]]):
        super().__init__(message)
        self.errors = errors

    def format_errors(self) -> str:
        """格式化错误信息为人类可读的格式"""
        formatted = []
        for error in self.errors:
            loc = " -> ".join(str(item) for item in error.get('loc', []))
            msg = error.get('msg', '未知错误')
            input_val = error.get('input', '')

            if loc:
                formatted.append(f"字段 '{loc}': {msg}")
                if input_val:
                    formatted.append(f"  输入值: {input_val}")
            else:
                formatted.append(f"根级别: {msg}")

        return "\n".join(formatted)


class ConfigLoader:
    """配置加载器"""

    def __init__(self):
        self.yaml = YAML(typ="safe")

    def load_from_file(self, config_path: Union[str, Path]) -> Configuration:
        """从 YAML 文件加载配置

        Args:
            config_path: 配置文件路径

        Returns:
            Configuration: 验证后的配置实例

        Raises:
            ConfigError: 配置加载或验证错误
        """
        config_path = Path(config_path)

        if not config_path.exists():
            raise ConfigError(f"配置文件不存在: {config_path}")

        if not config_path.is_file():
            raise ConfigError(f"配置路径不是文件: {config_path}")

        if config_path.suffix.lower() not in ['.yaml', '.yml']:
            raise ConfigError(f"配置文件必须是 .yaml 或 .yml 格式: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                raw_data = self.yaml.load(f)
        except YAMLError as e:
            raise ConfigError(f"YAML 解析错误: {e}") from e
        except OSError as e:
            raise ConfigError(f"文件读取错误: {e}") from e

        if raw_data is None:
            raise ConfigError("配置文件为空")

        if not isinstance(raw_data, dict):
            raise ConfigError("配置文件根级别必须是对象/字典格式")

        return self.load_from_dict(raw_data)

    def load_from_dict(self, data: Dict[str, Any]) -> Configuration:
        """从字典加载配置

        Raises:
            ConfigValidationError: 配置验证错误
        """
        try:
            return Configuration.from_dict(data)
        except ValidationError as e:
            raise ConfigValidationError("配置验证失败", list(e.errors())) from e

    def load_project_config(self, project_dir: Union[str, Path], config_path: Optional[Union[str, Path]] = None) -> Configuration:
        """加载项目配置

        查找顺序：显式指定的文件 -> electron-builder.yml/.yaml -> package.json 的 build 字段。
        都不存在时返回默认配置。
        """
        project_dir = Path(project_dir)
        if config_path is not None:
            path = Path(config_path)
            return self.load_from_file(path if path.is_absolute() else project_dir / path)

        for name in DEFAULT_CONFIG_FILES:
            candidate = project_dir / name
            if candidate.is_file():
                return self.load_from_file(candidate)

        package_json = project_dir / "package.json"
        if package_json.is_file():
            metadata = read_package_json(package_json)
            build = metadata.get("build")
            if build is not None:
                if not isinstance(build, dict):
                    raise ConfigError(f"package.json 中的 build 字段必须是对象: {package_json}")
                return self.load_from_dict(build)

        return Configuration()

    def validate_file(self, config_path: Union[str, Path]) -> List[Dict[str, Any]]:
        """验证配置文件并返回错误列表（空列表表示验证通过）"""
        try:
            self.load_from_file(config_path)
            return []
        except ConfigValidationError as e:
            return e.errors
        except ConfigError as e:
            return [{
                'loc': [],
                'msg': str(e),
                'type': 'config_error'
            }]


def read_package_json(path: Union[str, Path]) -> Dict[str, Any]:
    """读取 package.json

    Raises:
        ConfigError: 文件不存在或不是合法的 JSON 对象
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"找不到 package.json: {path}") from e
    except (OSError, ValueError) as e:
        raise ConfigError(f"无法读取 {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"package.json 根级别必须是对象: {path}")
    return data


# 全局加载器实例
config_loader = ConfigLoader()


def load_config(config_path: Union[str, Path]) -> Configuration:
    """便捷函数：加载配置文件"""
    return config_loader.load_from_file(config_path)


def load_project_config(project_dir: Union[str, Path], config_path: Optional[Union[str, Path]] = None) -> Configuration:
    """便捷函数：加载项目配置"""
    return config_loader.load_project_config(project_dir, config_path)


def validate_config(config_path: Union[str, Path]) -> List[Dict[str, Any]]:
    """便捷函数：验证配置文件"""
    return config_loader.validate_file(config_path)
