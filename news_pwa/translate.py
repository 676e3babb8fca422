import logging

import httpx

logger = logging.getLogger(__name__)

TRANSLATE_ENDPOINT = "https://translate.googleapis.com/translate_a/single"
TARGET_LANG = "ru"
CACHE_KEY_CHARS = 100


def build_translate_params(text: str, source_lang: str, target_lang: str = TARGET_LANG) -> dict:
    return {
        "client": "gtx",
        "sl": source_lang,
        "tl": target_lang,
        "dt": "t",
        "q": text,
    }


def decode_translation(payload) -> str | None:
    """Join the translated parts of a ``[[[part, original, ...], ...], ...]`` payload.

    Returns None when the payload does not have that shape or carries no text.
    """
    if not isinstance(payload, list) or not payload:
        return None
    segments = payload[0]
    if not isinstance(segments, list):
        return None
    parts = []
    for segment in segments:
        if not isinstance(segment, list) or not segment:
            return None
        part = segment[0]
        if part is None:
            continue
        if not isinstance(part, str):
            return None
        parts.append(part)
    return "".join(parts) or None


class Translator:
    """Best-effort text translation with a per-instance memo.

    The memo is keyed by ``(source_lang, text[:100])``, so texts sharing their
    first 100 characters share one translation.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        endpoint: str = TRANSLATE_ENDPOINT,
        target_lang: str = TARGET_LANG,
    ) -> None:
        self.client = client
        self.endpoint = endpoint
        self.target_lang = target_lang
        self.cache: dict[tuple[str, str], str] = {}

    def needs_translation(self, source_lang: str) -> bool:
        return source_lang != self.target_lang

    async def translate(self, text: str, source_lang: str) -> str:
        """Translate ``text`` into the target language, returning it unchanged on any failure."""
        if not text or not self.needs_translation(source_lang):
            return text

        key = (source_lang, text[:CACHE_KEY_CHARS])
        if key in self.cache:
            return self.cache[key]

        params = build_translate_params(text, source_lang, self.target_lang)
        try:
            resp = await self.client.get(self.endpoint, params=params)
            if not resp.is_success:
                logger.debug("Translation returned HTTP %d for %s", resp.status_code, source_lang)
                return text
            translated = decode_translation(resp.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("Translation failed for %s: %s", source_lang, exc)
            return text

        if translated is None:
            logger.debug("Unexpected translation payload for %s", source_lang)
            return text

        self.cache[key] = translated
        return translated
