"""Configuration file lookup and the persisted settings file.

Files are searched in the user config directory first, then the system ones.
All reads are defensive: a missing or unreadable file reads as empty, and
malformed lines are logged and skipped.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from platformdirs import site_config_dir, user_config_dir

from .entries import Column
from .tokenizer import iter_lines, write_line

logger = logging.getLogger(__name__)

APP_NAME = "lazynav"
BINDINGS_FILENAME = "bindings"
LOOK_FILENAME = "look"
SETTINGS_FILENAME = "config"

_BOOLEAN_SETTINGS = {
    "full-view": "full_view",
    "gravity": "gravity",
    "reverse-sort": "reverse_sort",
    "show-hidden": "show_hidden",
    "ext-helpers": "ext_helpers",
}
_TRUE = {"1", "on", "true", "yes"}
_FALSE = {"0", "off", "false", "no"}


def user_config_path() -> Path:
    return Path(user_config_dir(APP_NAME, appauthor=False))


def config_search_path() -> list[Path]:
    """Directories to search, most specific first."""
    paths = [user_config_path()]
    for directory in site_config_dir(APP_NAME, appauthor=False, multipath=True).split(os.pathsep):
        if directory:
            paths.append(Path(directory))
    return paths


def find_config(name: str) -> Path | None:
    for directory in config_search_path():
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def read_config_lines(name: str) -> list[list[str]]:
    """Tokenize the first ``name`` file found; unreadable files read as empty."""
    path = find_config(name)
    if path is None:
        return []
    try:
        with path.open(encoding="utf-8", errors="surrogateescape") as handle:
            return list(iter_lines(handle))
    except OSError as exc:
        logger.warning("%s: %s", path, exc.strerror)
        return []


@dataclass
class Settings:
    full_view: bool = False
    gravity: bool = False
    reverse_sort: bool = False
    show_hidden: bool = False
    ext_helpers: bool = False
    sort_column: Column = Column.FILENAME

    def apply(self, tokens: list[str]) -> bool:
        """Apply one ``NAME VALUE`` line; return whether it was understood."""
        if len(tokens) != 2:
            return False
        name, value = tokens
        attribute = _BOOLEAN_SETTINGS.get(name)
        if attribute is not None:
            if value in _TRUE:
                setattr(self, attribute, True)
            elif value in _FALSE:
                setattr(self, attribute, False)
            else:
                return False
            return True
        if name == "sort-column":
            try:
                self.sort_column = Column(int(value))
            except ValueError:
                return False
            return True
        return False

    def to_lines(self) -> list[list[str]]:
        lines = [
            [name, "1" if getattr(self, attribute) else "0"]
            for name, attribute in _BOOLEAN_SETTINGS.items()
        ]
        lines.append(["sort-column", str(int(self.sort_column))])
        return lines


def load_settings() -> tuple[Settings, list[list[str]]]:
    """Return the settings plus the raw ``history`` lines of the settings file."""
    settings = Settings()
    history: list[list[str]] = []
    for tokens in read_config_lines(SETTINGS_FILENAME):
        if not tokens:
            continue
        if tokens[0] == "history":
            history.append(tokens)
        elif not settings.apply(tokens):
            logger.warning("config: unrecognized line: %s", " ".join(tokens))
    return settings, history


def save_settings(settings: Settings, history: Iterable[list[str]]) -> bool:
    """Rewrite the user settings file atomically.

    Failures are logged and reported through the return value only.
    """
    directory = user_config_path()
    target = directory / SETTINGS_FILENAME
    try:
        directory.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(prefix=".config.", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", errors="surrogateescape") as handle:
                for tokens in settings.to_lines():
                    write_line(handle, tokens)
                for tokens in history:
                    write_line(handle, tokens)
            os.replace(temp_name, target)
        except BaseException:
            os.unlink(temp_name)
            raise
    except OSError as exc:
        logger.warning("%s: %s", target, exc.strerror or exc)
        return False
    return True
