"""
文件匹配器

把 files / extraResources / extraFiles / asarUnpack 中的 glob 模式编译为过滤器。

模式语法：*、?、[...]、**、{a,b}，前缀 ! 表示排除，点文件同样参与匹配。
按顺序求值，最后一个命中的模式决定结果；目录允许部分匹配，以便继续向下遍历。
"""

import os
import posixpath
import re
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union, TYPE_CHECKING

from ..errors import ConfigurationError
from ..utils.logging import debug, LogStage

if TYPE_CHECKING:
    from ..config.schema import PlatformSpecificBuildOptions
    from .platform_packager import PlatformPackager

MacroExpander = Callable[[str], str]
# (绝对路径, 是否目录) -> 是否保留
FileFilter = Callable[[Path, bool], bool]

_GLOBSTAR = object()
_MAGIC_CHARS = set("*?[{")

DEFAULT_EXCLUDED_EXTS = "iml,hprof,orig,pyc,pyo,rbc,swp,csproj,sln,suo,xproj,cc,d.ts,pdb"

DEFAULT_IGNORES = [
    f"!**/*.{{{DEFAULT_EXCLUDED_EXTS}}}",
    "!**/._*",
    "!**/electron-builder.{yaml,yml,json,json5,toml}",
    "!**/{.git,.hg,.svn,CVS,RCS,SCCS,__pycache__,.DS_Store,thumbs.db,.gitignore,.gitkeep,.gitattributes,"
    ".npmignore,.idea,.vs,.flowconfig,.jshintrc,.eslintrc,.circleci,.yarn-integrity,.yarn-metadata.json,"
    "yarn-error.log,yarn.lock,package-lock.json,npm-debug.log,appveyor.yml,.travis.yml,circle.yml,.nyc_output}",
    "!**/node_modules/.bin{,/**/*}",
    "!**/node_modules/*/{test,__tests__,tests,powered-test,example,examples}{,/**/*}",
    "!**/node_modules/**/{CHANGELOG.md,README.md,README,readme.md,readme}",
]


def expand_braces(pattern: str) -> List[str]:
    """展开花括号：a{b,c}d -> [abd, acd]，不含逗号的花括号按字面处理"""
    depth = 0
    start = -1
    for index, char in enumerate(pattern):
        if char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                alternatives = _split_alternatives(pattern[start + 1:index])
                if len(alternatives) < 2:
                    continue
                prefix, suffix = pattern[:start], pattern[index + 1:]
                result = []
                for alternative in alternatives:
                    result.extend(expand_braces(prefix + alternative + suffix))
                return result
    return [pattern]


def _split_alternatives(body: str) -> List[str]:
    parts = []
    depth = 0
    current = []
    for char in body:
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        current.append(char)
    parts.append("".join(current))
    return parts


def _translate_segment(segment: str) -> "re.Pattern[str]":
    """把单个路径段的 glob 转换为正则"""
    result = []
    index = 0
    while index < len(segment):
        char = segment[index]
        if char == "*":
            while index + 1 < len(segment) and segment[index + 1] == "*":
                index += 1
            result.append("[^/]*")
        elif char == "?":
            result.append("[^/]")
        elif char == "[":
            end = segment.find("]", index + 2)
            if end == -1:
                result.append(re.escape(char))
            else:
                body = segment[index + 1:end]
                if body[0] in "!^":
                    body = "^" + body[1:]
                result.append(f"[{body.replace(chr(92), chr(92) * 2)}]")
                index = end
        else:
            result.append(re.escape(char))
        index += 1
    return re.compile("".join(result), re.DOTALL)


def has_magic(pattern: str) -> bool:
    return any(char in _MAGIC_CHARS for char in pattern)


class GlobPattern:
    """编译后的 glob 模式"""

    def __init__(self, pattern: str):
        self.pattern = pattern
        self.negate = pattern.startswith("!")
        body = pattern[1:] if self.negate else pattern
        self._alternatives = [self._compile(item) for item in expand_braces(body)]

    @staticmethod
    def _compile(pattern: str) -> list:
        parts = []
        for segment in pattern.strip("/").split("/"):
            if segment == "**":
                if not parts or parts[-1] is not _GLOBSTAR:
                    parts.append(_GLOBSTAR)
            elif segment and segment != ".":
                parts.append(_translate_segment(segment))
        return parts

    def matches(self, relative_path: str, partial: bool = False) -> bool:
        """不考虑取反的匹配结果

        partial 为真时，只要路径可能是某个匹配结果的前缀就返回 True。
        """
        file_parts = [part for part in relative_path.split("/") if part]
        return any(_match_parts(parts, file_parts, partial) for parts in self._alternatives)

    def match(self, relative_path: str, partial: bool = False) -> bool:
        """考虑取反的匹配结果"""
        result = self.matches(relative_path, partial)
        return not result if self.negate else result

    def __repr__(self) -> str:
        return f"GlobPattern({self.pattern!r})"


def _match_parts(pattern_parts: list, file_parts: List[str], partial: bool) -> bool:
    if not pattern_parts:
        return not file_parts
    if not file_parts:
        return partial or all(part is _GLOBSTAR for part in pattern_parts)

    head = pattern_parts[0]
    if head is _GLOBSTAR:
        if partial:
            return True
        rest = pattern_parts[1:]
        return any(_match_parts(rest, file_parts[index:], partial) for index in range(len(file_parts) + 1))

    if not head.fullmatch(file_parts[0]):
        return False
    return _match_parts(pattern_parts[1:], file_parts[1:], partial)


def match_all(relative_path: str, patterns: Sequence[GlobPattern], is_directory: bool) -> bool:
    """按顺序求值，最后一个命中的模式决定结果"""
    matched = False
    for pattern in patterns:
        # 已匹配时只看排除模式，未匹配时只看包含模式
        if matched != pattern.negate:
            continue
        matched = pattern.match(relative_path, is_directory and not pattern.negate)
    return matched


def create_filter(
    src: Path,
    patterns: Sequence[GlobPattern],
    exclude_patterns: Optional[Sequence[GlobPattern]] = None,
) -> FileFilter:
    """创建文件过滤器

    继承来的排除模式不作用于目录，避免提前剪掉需要遍历的子树。
    """
    src = Path(src)

    def filter_file(file: Path, is_directory: bool) -> bool:
        file = Path(file)
        if file == src:
            return True
        relative = file.relative_to(src).as_posix()
        if not match_all(relative, patterns, is_directory):
            return False
        return not exclude_patterns or is_directory or not match_all(relative, exclude_patterns, is_directory)

    return filter_file


class FileMatcher:
    """一组文件：源目录、目标目录和 glob 模式"""

    def __init__(
        self,
        from_dir: Union[str, Path],
        to_dir: Union[str, Path],
        macro_expander: MacroExpander,
        patterns: Optional[Union[str, Sequence[str]]] = None,
    ):
        self.macro_expander = macro_expander
        self.from_dir = Path(macro_expander(str(from_dir)))
        self.to_dir = Path(macro_expander(str(to_dir)))

        if patterns is None:
            raw_patterns: List[str] = []
        elif isinstance(patterns, str):
            raw_patterns = [patterns]
        else:
            raw_patterns = list(patterns)
        self.patterns: List[str] = [self.normalize_pattern(item) for item in raw_patterns]
        self.is_specified_as_empty_array = not isinstance(patterns, str) and patterns is not None and len(raw_patterns) == 0
        self.exclude_patterns: Optional[List[GlobPattern]] = None

    def normalize_pattern(self, pattern: str) -> str:
        """统一分隔符、展开宏，并把 ./foo 规范为 foo"""
        negate = pattern.startswith("!")
        if negate:
            pattern = pattern[1:]
        pattern = pattern.replace("\\", "/")
        if pattern.startswith("./"):
            pattern = pattern[2:]
        normalized = posixpath.normpath(self.macro_expander(pattern))
        return f"!{normalized}" if negate else normalized

    def add_pattern(self, pattern: str) -> None:
        self.patterns.append(self.normalize_pattern(pattern))

    def prepend_pattern(self, pattern: str) -> None:
        self.patterns.insert(0, self.normalize_pattern(pattern))

    def is_empty(self) -> bool:
        return not self.patterns

    def contains_only_ignore(self) -> bool:
        return not self.is_empty() and all(item.startswith("!") for item in self.patterns)

    def compute_parsed_patterns(self, result: List[GlobPattern], from_dir: Optional[Union[str, Path]] = None) -> None:
        """把模式编译后追加到 result

        指定 from_dir 时，模式会改写为相对于 from_dir 的路径（用于生成全局排除列表）。
        """
        relative_from = None
        if from_dir is not None:
            relative_from = Path(os.path.relpath(self.from_dir, from_dir)).as_posix()

        if not self.patterns and relative_from is not None:
            # 没有模式时 from 本身就是要复制的文件或目录
            result.append(GlobPattern(relative_from))
            if not has_magic(relative_from):
                result.append(GlobPattern(f"{relative_from}/**/*"))
            return

        for pattern in self.patterns:
            negate = pattern.startswith("!")
            body = pattern[1:] if negate else pattern
            if relative_from is not None:
                body = posixpath.normpath(posixpath.join(relative_from, body))

            result.append(GlobPattern(f"!{body}" if negate else body))

            # 没有扩展名也没有通配符，可能是目录
            if "." not in body and not has_magic(body):
                result.append(GlobPattern(f"!{body}/**/*" if negate else f"{body}/**/*"))

    def create_filter(self) -> FileFilter:
        parsed: List[GlobPattern] = []
        self.compute_parsed_patterns(parsed)
        return create_filter(self.from_dir, parsed, self.exclude_patterns)

    def __repr__(self) -> str:
        return f"FileMatcher(from={self.from_dir}, to={self.to_dir}, patterns={self.patterns})"


def _as_pattern_list(value) -> list:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def get_file_matchers(
    config,
    name: str,
    default_src: Union[str, Path],
    default_dest: Union[str, Path],
    macro_expander: MacroExpander,
    platform_options: Optional["PlatformSpecificBuildOptions"] = None,
) -> Optional[List[FileMatcher]]:
    """根据配置项创建匹配器列表

    字符串模式合并到默认匹配器（default_src -> default_dest），
    对象形式 {from, to, filter} 各自生成一个匹配器。先读顶层配置，再读平台配置。

    Returns:
        没有任何配置时返回 None，否则默认匹配器（非空时）排在第一位
    """
    default_src = Path(default_src)
    default_dest = Path(default_dest)
    default_matcher = FileMatcher(default_src, default_dest, macro_expander)
    file_matchers: List[FileMatcher] = []
    specified_as_empty = False

    sources = [getattr(config, name)]
    if platform_options is not None:
        sources.append(getattr(platform_options, name))

    for patterns in sources:
        if name == "files" and isinstance(patterns, list) and not patterns:
            specified_as_empty = True
        for pattern in _as_pattern_list(patterns):
            if isinstance(pattern, str):
                default_matcher.add_pattern(pattern)
                continue
            if name == "asar_unpack":
                raise ConfigurationError("asarUnpack 不支持 {from, to, filter} 形式的配置")
            from_dir = default_src if pattern.from_ is None else Path(os.path.normpath(default_src / pattern.from_))
            to_dir = default_dest if pattern.to is None else Path(os.path.normpath(default_dest / pattern.to))
            file_matchers.append(FileMatcher(from_dir, to_dir, macro_expander, pattern.filter))

    if not default_matcher.is_empty():
        file_matchers.insert(0, default_matcher)
    elif specified_as_empty and not file_matchers:
        default_matcher.is_specified_as_empty_array = True
        return [default_matcher]

    return file_matchers or None


def get_main_file_matchers(
    app_dir: Union[str, Path],
    destination: Union[str, Path],
    macro_expander: MacroExpander,
    platform_options: Optional["PlatformSpecificBuildOptions"],
    packager: "PlatformPackager",
    out_dir: Union[str, Path],
) -> List[FileMatcher]:
    """应用文件匹配器

    默认包含应用目录下的全部文件，并追加内置的排除规则
    （版本控制目录、编辑器文件、node_modules 中的文档和测试、构建资源目录和输出目录）。
    """
    app_dir = Path(app_dir)
    matchers = None
    if not packager.info.is_prepacked_app_asar:
        matchers = get_file_matchers(packager.config, "files", app_dir, destination, macro_expander, platform_options)
    if matchers is None:
        matchers = [FileMatcher(app_dir, destination, macro_expander)]

    matcher = matchers[0]
    # 只有源目录是应用目录时才添加默认模式
    if matcher.from_dir != app_dir:
        return matchers

    patterns = matcher.patterns
    custom_first_patterns: List[str] = []
    if not matcher.is_specified_as_empty_array and (matcher.is_empty() or matcher.contains_only_ignore()):
        custom_first_patterns.append("**/*")
    elif "package.json" not in patterns:
        patterns.append("package.json")

    relative_build_resources = Path(os.path.relpath(packager.build_resources_dir, app_dir)).as_posix()
    if not relative_build_resources.startswith("."):
        custom_first_patterns.append(f"!{relative_build_resources}{{,/**/*}}")

    relative_out_dir = Path(os.path.relpath(out_dir, app_dir)).as_posix()
    if not relative_out_dir.startswith("."):
        custom_first_patterns.append(f"!{relative_out_dir}{{,/**/*}}")

    # 默认排除规则放在最后一个 **/ 开头的用户模式之后
    insert_index = 0
    for index in range(len(patterns) - 1, -1, -1):
        if patterns[index].startswith("**/"):
            insert_index = index + 1
            break
    patterns[insert_index:insert_index] = custom_first_patterns
    patterns.extend(DEFAULT_IGNORES)

    debug(f"应用文件模式: {patterns}", stage=LogStage.COPY)
    return matchers

