"""
Source credentials, read once from the environment.

Adapters never read process state themselves: the pipeline builds a
Credentials value up front and hands each adapter its own field.
"""
import os
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class Credentials:
    """One optional credential per source family."""
    newsapi_api_key: Optional[str] = None
    gnews_api_key: Optional[str] = None
    nvd_api_key: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Credentials":
        env = os.environ if environ is None else environ
        return cls(
            newsapi_api_key=_non_empty(env.get("NEWSAPI_API_KEY")) or _non_empty(env.get("NEWS_API_KEY")),
            gnews_api_key=_non_empty(env.get("GNEWS_API_KEY")),
            nvd_api_key=_non_empty(env.get("NVD_API_KEY")),
        )

    def for_source(self, source_id: str) -> Optional[str]:
        return {
            "newsapi": self.newsapi_api_key,
            "gnews": self.gnews_api_key,
            "nvd": self.nvd_api_key,
        }.get(source_id)


def _non_empty(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None
