# ============================================================================
# src/medical_interpreter/enrichers/videos.py
# ============================================================================
"""
YouTube Data API v3 search for patient-education videos.

Results from well-known medical channels are listed first.
"""

from typing import Any, Dict, List, Optional

from ..config import enrichment_settings
from .base import Enricher, EnrichmentErrorKind, EnrichmentOutcome, UpstreamError

YOUTUBE_SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"

PREFERRED_CHANNELS = [
    "Mayo Clinic",
    "Cleveland Clinic",
    "Johns Hopkins Medicine",
    "Osmosis",
    "Khan Academy Medicine",
    "WHO",
    "CDC",
    "NHS",
    "Armando Hasudungan",
]


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def is_preferred_channel(channel: str) -> bool:
    lowered = (channel or "").lower()
    return any(preferred.lower() in lowered for preferred in PREFERRED_CHANNELS)


def parse_search_results(data: Any, query: str, language: str) -> List[Dict[str, Any]]:
    """Video records from a search response, preferred channels first."""
    videos = []
    items = data.get("items") if isinstance(data, dict) else None
    for item in items if isinstance(items, list) else []:
        if not isinstance(item, dict):
            continue
        ids = item.get("id")
        video_id = ids.get("videoId") if isinstance(ids, dict) else None
        snippet = item.get("snippet") if isinstance(item.get("snippet"), dict) else {}
        title = _text(snippet.get("title"))
        if not isinstance(video_id, str) or not video_id or not title:
            continue
        channel = _text(snippet.get("channelTitle"))
        published = _text(snippet.get("publishedAt"))
        videos.append({
            "title": title,
            "url": f"https://www.youtube.com/watch?v={video_id}",
            "channel": channel or "Unknown Channel",
            "duration": "",
            "reason": f"Educational video about {query}" + (f" from {channel}" if channel else ""),
            "publishedDate": published[:10],
            "viewCount": None,
            "language": language,
        })
    # sorted() is stable, so relevance order holds within each group
    return sorted(videos, key=lambda v: not is_preferred_channel(v["channel"]))


class VideoSearcher(Enricher):
    """Search YouTube for videos about a condition."""

    name = "videos"

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(config, timeout)
        self.api_key = (self.config.get("youtube_api_key") or "").strip()
        self.limit = limit or enrichment_settings.VIDEO_RESULT_LIMIT

    async def search(self, query: str, language: str = "en") -> EnrichmentOutcome[List[Dict[str, Any]]]:
        if not self.api_key:
            return EnrichmentOutcome.failure(
                EnrichmentErrorKind.NOT_CONFIGURED, "YOUTUBE_API_KEY is not set"
            )
        if not query or query == "Unknown":
            return EnrichmentOutcome.failure(EnrichmentErrorKind.EMPTY, "No search query")

        language_name = "Hindi" if language == "hi" else "English"
        params = {
            "part": "snippet",
            "q": f"{query} medical education {language_name}",
            "type": "video",
            "maxResults": "10",
            "order": "relevance",
            "relevanceLanguage": "hi" if language == "hi" else "en",
            "key": self.api_key,
        }

        try:
            data = await self._get_json(YOUTUBE_SEARCH_URL, params=params)
        except UpstreamError as e:
            self.logger.warning(f"YouTube search failed: {e}")
            return EnrichmentOutcome.failure(EnrichmentErrorKind.UPSTREAM_FAILED, str(e))

        videos = parse_search_results(data, query, language)[: self.limit]
        if not videos:
            return EnrichmentOutcome.failure(EnrichmentErrorKind.EMPTY, f"No videos found for {query}")

        self.logger.info(f"Found {len(videos)} video(s) for {query}")
        return EnrichmentOutcome.success(videos)
