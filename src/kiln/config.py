"""Configuration values for the Kiln parser and code generator.

Each stage takes one immutable configuration object, passed explicitly on
every call. Nothing is read from module or process state.

    >>> from kiln.config import ParserConfig, GeneratorConfig
    >>> ParserConfig(tags=("{{", "}}"), execute_prefix="!", interpolate_prefix="")
    >>> GeneratorConfig(auto_escape=False, use_with=True)

Invalid combinations raise ConfigurationError at construction time, before
anything is scanned.
"""

from __future__ import annotations

import keyword
from dataclasses import dataclass, fields
from typing import Any

from kiln._types import TRIM_MARKERS, TagKind, TrimMode
from kiln.environment.exceptions import ConfigurationError

# Generated code owns every identifier starting with this prefix
RESERVED_PREFIX = "__kiln"

# Names the generated function binds for template code
RESERVED_NAMES = frozenset({"include", "include_async", "layout", "options"})

TrimSetting = TrimMode | tuple[TrimMode, TrimMode]


def coerce_trim_mode(value: Any) -> TrimMode:
    """Accept a TrimMode, its string value, or False/None for OFF."""
    if isinstance(value, TrimMode):
        return value
    if value is None or value is False:
        return TrimMode.OFF
    try:
        return TrimMode(value)
    except ValueError:
        raise ConfigurationError(
            f"Invalid trim mode {value!r}; expected one of "
            f"{', '.join(repr(m.value) for m in TrimMode)}"
        ) from None


@dataclass(frozen=True, slots=True)
class ParserConfig:
    """Options for the tag scanner.

    Attributes:
        tags: (open, close) delimiters
        execute_prefix: Character selecting an execute tag
        interpolate_prefix: Character selecting an interpolate tag
        raw_prefix: Character selecting a raw tag
        default_kind: Kind of a tag with no prefix. Derived from the blank
            prefix when one of the three prefixes is "", else INTERPOLATE.
        auto_trim: Global trim mode, or (before_tag, after_tag) pair
        debug: Record tag line numbers
        plugins: Objects with a ``process_ast(ast, config)`` hook
    """

    tags: tuple[str, str] = ("<%", "%>")
    execute_prefix: str = ""
    interpolate_prefix: str = "="
    raw_prefix: str = "~"
    default_kind: TagKind | None = None
    auto_trim: TrimSetting = (TrimMode.OFF, TrimMode.NEWLINE)
    debug: bool = False
    plugins: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", tuple(self.tags))
        object.__setattr__(self, "plugins", tuple(self.plugins))
        if isinstance(self.auto_trim, (tuple, list)):
            if len(self.auto_trim) != 2:
                raise ConfigurationError("auto_trim pair must have exactly two entries")
            trim: TrimSetting = (
                coerce_trim_mode(self.auto_trim[0]),
                coerce_trim_mode(self.auto_trim[1]),
            )
        else:
            trim = coerce_trim_mode(self.auto_trim)
        object.__setattr__(self, "auto_trim", trim)
        self.validate()

    def validate(self) -> None:
        """Raise ConfigurationError for unusable delimiters or prefixes."""
        if len(self.tags) != 2 or not all(isinstance(t, str) and t for t in self.tags):
            raise ConfigurationError(
                f"tags must be a pair of non-empty strings, got {self.tags!r}"
            )

        seen: dict[str, TagKind] = {}
        blank: list[TagKind] = []
        for kind, prefix in self._prefix_items():
            if not isinstance(prefix, str) or len(prefix) > 1:
                raise ConfigurationError(
                    f"{kind.name.lower()} prefix must be a single character or '', got {prefix!r}"
                )
            if not prefix:
                blank.append(kind)
                continue
            if prefix in TRIM_MARKERS or prefix.isspace():
                raise ConfigurationError(
                    f"{kind.name.lower()} prefix {prefix!r} collides with whitespace control"
                )
            if prefix in seen:
                raise ConfigurationError(
                    f"{kind.name.lower()} and {seen[prefix].name.lower()} tags "
                    f"share the prefix {prefix!r}"
                )
            seen[prefix] = kind

        if len(blank) > 1:
            names = " and ".join(k.name.lower() for k in blank)
            raise ConfigurationError(f"{names} tags both have an empty prefix")
        if blank and self.default_kind is not None and self.default_kind is not blank[0]:
            raise ConfigurationError(
                f"default_kind {self.default_kind.name} conflicts with the empty "
                f"{blank[0].name.lower()} prefix"
            )

    def _prefix_items(self) -> tuple[tuple[TagKind, str], ...]:
        return (
            (TagKind.EXECUTE, self.execute_prefix),
            (TagKind.INTERPOLATE, self.interpolate_prefix),
            (TagKind.RAW, self.raw_prefix),
        )

    @property
    def prefixes(self) -> dict[str, TagKind]:
        """Non-blank prefix character -> tag kind."""
        return {prefix: kind for kind, prefix in self._prefix_items() if prefix}

    @property
    def resolved_default_kind(self) -> TagKind:
        """Kind assigned to tags that carry no prefix."""
        for kind, prefix in self._prefix_items():
            if not prefix:
                return kind
        return self.default_kind or TagKind.INTERPOLATE

    @property
    def trim_pair(self) -> tuple[TrimMode, TrimMode]:
        """(before_tag, after_tag) global trim modes."""
        if isinstance(self.auto_trim, TrimMode):
            return (self.auto_trim, self.auto_trim)
        return self.auto_trim


@dataclass(frozen=True, slots=True)
class GeneratorConfig:
    """Options for the code generator.

    Attributes:
        auto_escape: Escape interpolate output
        auto_filter: Pass raw and interpolate output through the filter
        use_with: Resolve bare names against the data context
        async_mode: Generate a body for ``async def``
        debug: Track lines and wrap the body for error reporting
        function_header: Code placed at the top of the body
        var_name: Name the data context is bound to
        plugins: Objects with a ``process_code(code, config)`` hook
    """

    auto_escape: bool = True
    auto_filter: bool = False
    use_with: bool = False
    async_mode: bool = False
    debug: bool = False
    function_header: str = ""
    var_name: str = "it"
    plugins: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "plugins", tuple(self.plugins))
        self.validate()

    def validate(self) -> None:
        """Raise ConfigurationError for an unusable context variable name."""
        name = self.var_name
        if not isinstance(name, str) or not name.isidentifier() or keyword.iskeyword(name):
            raise ConfigurationError(f"var_name must be a Python identifier, got {name!r}")
        if name.startswith(RESERVED_PREFIX) or name in RESERVED_NAMES:
            raise ConfigurationError(f"var_name {name!r} is reserved by generated code")


PARSER_OPTIONS = frozenset(f.name for f in fields(ParserConfig))
GENERATOR_OPTIONS = frozenset(f.name for f in fields(GeneratorConfig))
