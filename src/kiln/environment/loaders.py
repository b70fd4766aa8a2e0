"""Template loaders for the Kiln environment.

A loader maps a template name to ``(source, filename)``. Names arrive
already resolved: ``include("./nav.html")`` and ``layout("../base.html")``
are joined to the calling template's name by `resolve_name` before the
loader is asked, so loaders only ever see ``/``-separated names relative to
their own root.

Any object with a ``get_source`` method works as a loader:
    ```python
    class DatabaseLoader:
        def get_source(self, name: str) -> tuple[str, str | None]:
            row = db.query("SELECT source FROM templates WHERE name = ?", name)
            if not row:
                raise TemplateNotFoundError(f"Template '{name}' not found")
            return row.source, f"db://{name}"
    ```

"""

from __future__ import annotations

import posixpath
from collections.abc import Iterable, Mapping, Sequence
from difflib import get_close_matches
from pathlib import Path
from typing import Protocol

from kiln.environment.exceptions import TemplateNotFoundError

_MAX_LISTED = 10


class Loader(Protocol):
    def get_source(self, name: str) -> tuple[str, str | None]: ...


def resolve_name(name: str, parent: str | None) -> str:
    """Resolve ``./`` and ``../`` names relative to the calling template.

        >>> resolve_name("./nav.html", "pages/home.html")
        'pages/nav.html'
        >>> resolve_name("../base.html", "pages/home.html")
        'base.html'
        >>> resolve_name("nav.html", "pages/home.html")
        'nav.html'
    """
    if not parent or not name.startswith(("./", "../")):
        return name
    return posixpath.normpath(posixpath.join(posixpath.dirname(parent), name))


def _not_found(name: str, known: Iterable[str], where: str = "") -> TemplateNotFoundError:
    """Build the error for a missing template, pointing at the likeliest fix."""
    msg = f"Template '{name}' not found{where}"
    if name.startswith(("./", "../")):
        return TemplateNotFoundError(
            f"{msg}. Relative names resolve against the calling template; "
            "render them through include() or layout()"
        )
    candidates = sorted(known)
    matches = get_close_matches(name, candidates, n=1, cutoff=0.6)
    if matches:
        msg += f". Did you mean '{matches[0]}'?"
    elif candidates:
        msg += f". Available: {', '.join(candidates[:_MAX_LISTED])}"
        if len(candidates) > _MAX_LISTED:
            msg += f" ... ({len(candidates)} total)"
    return TemplateNotFoundError(msg)


class FileSystemLoader:
    """Load templates from one or more directories, first match wins.

    Names that would leave every search directory (``../secret`` after
    resolution, or absolute paths) are refused rather than read.
    """

    __slots__ = ("_encoding", "_paths")

    def __init__(
        self,
        paths: str | Path | Sequence[str | Path],
        encoding: str = "utf-8",
    ):
        if isinstance(paths, (str, Path)):
            paths = [paths]
        self._paths = [Path(p) for p in paths]
        self._encoding = encoding

    def get_source(self, name: str) -> tuple[str, str]:
        parts = Path(name).parts
        if Path(name).is_absolute() or ".." in parts:
            raise TemplateNotFoundError(
                f"Template '{name}' points outside the template directories"
            )

        for base in self._paths:
            path = base.joinpath(*parts)
            if path.is_file():
                return path.read_text(self._encoding), str(path)

        where = f" in: {', '.join(str(p) for p in self._paths)}"
        raise _not_found(name, self._siblings(name), where)

    def _siblings(self, name: str) -> set[str]:
        # Suggestions come from the directory the name points into
        folder = posixpath.dirname(name)
        found: set[str] = set()
        for base in self._paths:
            directory = base / folder
            if directory.is_dir():
                found.update(
                    posixpath.join(folder, entry.name)
                    for entry in directory.iterdir()
                    if entry.is_file()
                )
        return found


class DictLoader:
    """Serve templates from a mapping; ``filename`` is always ``None``.

    Example:
            >>> loader = DictLoader({
            ...     "base.html": "<main><%~ it['body'] %></main>",
            ...     "page.html": "<% layout('base.html') %>Hi",
            ... })
            >>> Environment(loader=loader).render("page.html")
            '<main>Hi</main>'

    """

    __slots__ = ("_mapping",)

    def __init__(self, mapping: Mapping[str, str]):
        self._mapping = mapping

    def get_source(self, name: str) -> tuple[str, None]:
        try:
            return self._mapping[name], None
        except KeyError:
            raise _not_found(name, self._mapping) from None


class ChoiceLoader:
    """Ask each loader in turn; the first one that has the name wins.

    Useful for overriding a few templates of a theme:
        ```python
        loader = ChoiceLoader([
            DictLoader({"nav.html": "<nav>Custom</nav>"}),
            FileSystemLoader("themes/default/"),
        ])
        ```
    """

    __slots__ = ("_loaders",)

    def __init__(self, loaders: Sequence[Loader]):
        self._loaders = list(loaders)

    def get_source(self, name: str) -> tuple[str, str | None]:
        misses: list[str] = []
        for loader in self._loaders:
            try:
                return loader.get_source(name)
            except TemplateNotFoundError as exc:
                misses.append(f"{type(loader).__name__}: {exc}")
        detail = "".join(f"\n  {miss}" for miss in misses)
        raise TemplateNotFoundError(
            f"Template '{name}' not found in any of {len(self._loaders)} loaders{detail}"
        )
