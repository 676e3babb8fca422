"""JSON render target: one document per section container plus a status file."""

import json
import logging
from datetime import datetime
from pathlib import Path

from news_pwa.feeds import SECTION_ICONS
from news_pwa.models import NewsItem, item_to_dict
from news_pwa.translate import TARGET_LANG

logger = logging.getLogger(__name__)


class JsonRenderer:
    def __init__(self, output_dir: Path, target_lang: str = TARGET_LANG) -> None:
        self.output_dir = Path(output_dir)
        self.target_lang = target_lang

    def render(self, container: str, items: list[NewsItem], section: str) -> None:
        if not items:
            self._write(container, {
                "state": "empty",
                "section": section,
                "icon": SECTION_ICONS.get(section, ""),
                "items": [],
            })
            return
        self._write(container, {
            "state": "loaded",
            "section": section,
            "items": [
                {**item_to_dict(it), "translated": bool(it.lang) and it.lang != self.target_lang}
                for it in items
            ],
        })

    def render_loading_placeholder(self, container: str) -> None:
        self._write(container, {"state": "loading", "items": []})

    def render_error(self, container: str) -> None:
        self._write(container, {"state": "error", "items": []})

    def mark_refreshed(self, when: datetime) -> None:
        self._write("status", {"last_updated": when.isoformat(timespec="seconds")})

    def _write(self, name: str, document: dict) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / f"{name}.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(document, f, ensure_ascii=False, indent=2)
        logger.debug("Wrote %s (%s)", path, document.get("state", "status"))
