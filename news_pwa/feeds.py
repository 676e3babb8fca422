"""Section catalogue: which feeds make up each news section.

Feeds whose ``lang`` differs from the target language are translated on fetch.
"""

from news_pwa.models import FeedSource

SECTIONS: dict[str, list[FeedSource]] = {
    "czech": [
        # Russian-language sources
        FeedSource(url="https://russian.radio.cz/rss.xml", name="Radio Prague RU", lang="ru"),
        FeedSource(url="https://420on.cz/news/rss", name="420on.cz", lang="ru"),
        FeedSource(url="https://pražský-express.cz/feed", name="Prague Express", lang="ru"),
        # Czech-language sources
        FeedSource(url="https://www.novinky.cz/rss", name="Novinky.cz", lang="cs"),
        FeedSource(url="https://servis.idnes.cz/rss.aspx?c=zpravodaj", name="iDNES.cz", lang="cs"),
        FeedSource(
            url="https://www.irozhlas.cz/rss/irozhlas/section/zpravy-domov",
            name="iROZHLAS",
            lang="cs",
        ),
    ],
    "estonia": [
        FeedSource(url="https://rus.err.ee/rss", name="ERR RUS", lang="ru"),
        FeedSource(url="https://rus.postimees.ee/rss", name="Postimees RUS", lang="ru"),
        FeedSource(url="https://rus.delfi.ee/rss", name="Delfi RUS", lang="ru"),
        FeedSource(url="https://www.err.ee/rss", name="ERR.ee", lang="et"),
    ],
    "vaping": [
        FeedSource(url="https://www.vapingpost.com/feed/", name="Vaping Post", lang="en"),
        FeedSource(url="https://vaping360.com/feed/", name="Vaping360", lang="en"),
        FeedSource(url="https://www.ecigintelligence.com/feed/", name="ECig Intelligence", lang="en"),
        FeedSource(
            url="https://www.planetofthevapes.co.uk/news/rss",
            name="Planet of the Vapes UK",
            lang="en",
        ),
        FeedSource(url="https://filtermag.org/feed/", name="Filter Magazine", lang="en"),
    ],
}

SECTION_ICONS = {
    "czech": "🇨🇿",
    "estonia": "🇪🇪",
    "vaping": "💨",
}


def section_names() -> list[str]:
    return list(SECTIONS)


def container_id(section: str) -> str:
    """Each section renders into the container named after it."""
    return section
