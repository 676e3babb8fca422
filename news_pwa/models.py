from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class FeedSource:
    url: str
    name: str
    lang: str


@dataclass(frozen=True, slots=True)
class NewsItem:
    title: str
    description: str
    link: str
    pub_date: str
    source: str
    lang: str
    original_title: str | None = None


@dataclass(frozen=True, slots=True)
class CacheEntry:
    timestamp: int
    items: list[NewsItem] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class FeedResult:
    """Outcome of one feed fetch. ``error`` is None on success."""

    source: FeedSource
    items: list[NewsItem] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def item_to_dict(item: NewsItem) -> dict:
    """Convert a NewsItem to its JSON-serializable storage shape."""
    data = {
        "title": item.title,
        "description": item.description,
        "link": item.link,
        "pubDate": item.pub_date,
        "source": item.source,
        "lang": item.lang,
    }
    if item.original_title is not None:
        data["originalTitle"] = item.original_title
    return data


def item_from_dict(data: dict) -> NewsItem:
    """Rebuild a NewsItem from its storage shape. Raises KeyError on missing fields."""
    return NewsItem(
        title=data["title"],
        description=data["description"],
        link=data["link"],
        pub_date=data["pubDate"],
        source=data["source"],
        lang=data["lang"],
        original_title=data.get("originalTitle"),
    )
