"""
Localized string tables read from text/strings.csv (columns: table, key, en, fa).
"""
from __future__ import annotations

from pathlib import Path

import pandas as pd

from signalling import config
from signalling.errors import LookupFallbackWarning, warn

REQUIRED_COLUMNS = {"table", "key"}


class StringTables:
    """
    Lookup of (table, key) -> text in one language.

    Missing text never raises: an empty cell falls back to English, and an
    unknown key returns "[key]" with a LookupFallbackWarning (once per key).
    """

    def __init__(self, frame: pd.DataFrame, language: str = config.DEFAULT_LANGUAGE) -> None:
        missing = REQUIRED_COLUMNS - set(frame.columns)
        if missing:
            raise ValueError(f"String table must have columns {REQUIRED_COLUMNS}; missing {missing}")
        self.language = language
        self._text: dict[tuple[str, str], dict[str, str]] = {}
        languages = [c for c in frame.columns if c not in REQUIRED_COLUMNS]
        for row in frame.itertuples(index=False):
            entry = row._asdict()
            self._text[(entry["table"], entry["key"])] = {
                lang: entry[lang] for lang in languages if entry[lang]
            }
        self._reported: set[tuple[str, str]] = set()

    @classmethod
    def from_csv(cls, path: Path, language: str = config.DEFAULT_LANGUAGE) -> StringTables:
        path = Path(path)
        if not path.exists():
            warn(LookupFallbackWarning, f"String table not found: {path}; all text will use fallback keys")
            return cls(pd.DataFrame(columns=["table", "key", config.DEFAULT_LANGUAGE]), language)
        frame = pd.read_csv(path, dtype=str, keep_default_na=False)
        return cls(frame, language)

    def get_string(self, table: str, key: str) -> str:
        entry = self._text.get((table, key), {})
        text = entry.get(self.language) or entry.get(config.DEFAULT_LANGUAGE)
        if text:
            return text
        if (table, key) not in self._reported:
            self._reported.add((table, key))
            warn(LookupFallbackWarning, f"No '{self.language}' text for {table}/{key}")
        return f"[{key}]"
