"""
Feed Mixer -- deterministic type interleaving with a head-of-feed vendor cap.

Pattern (repeating): garment, garment, accessory, garment, garment, fabric

- One read cursor per stream; items are consumed, never re-queued
- While fewer than HEAD_SIZE items are placed, a vendor already holding
  MAX_PER_VENDOR_HEAD slots is skipped and the same stream is scanned on
- An exhausted stream falls back to garment -> accessory -> fabric
- Stops at `limit` or when every stream is exhausted
"""

from collections import Counter
from typing import Dict, List, Optional, Sequence, Set

from config.constants import DEFAULT_MIXER_CONFIG, MixerConfig
from core.logging import get_logger
from feed.models import STREAM_NAMES, ItemType, RankedItem


logger = get_logger(__name__)


class _Stream:
    """A ranked, type-homogeneous queue with a read cursor."""

    def __init__(self, name: str, items: Sequence[RankedItem]):
        self.name = name
        self.items = items
        self.cursor = 0

    def exhausted(self) -> bool:
        return self.cursor >= len(self.items)


class FeedMixer:
    def __init__(self, config: MixerConfig = DEFAULT_MIXER_CONFIG):
        self.config = config

    def mix_candidates(
        self,
        garments: Sequence[RankedItem],
        accessories: Sequence[RankedItem],
        fabrics: Sequence[RankedItem],
        limit: int,
    ) -> List[RankedItem]:
        """
        Interleave three pre-ranked streams.

        Returns:
            Up to `limit` items, each a copy tagged with its stream name
        """
        streams: Dict[str, _Stream] = {
            ItemType.GARMENT.value: _Stream(STREAM_NAMES[ItemType.GARMENT.value], garments),
            ItemType.ACCESSORY.value: _Stream(STREAM_NAMES[ItemType.ACCESSORY.value], accessories),
            ItemType.FABRIC.value: _Stream(STREAM_NAMES[ItemType.FABRIC.value], fabrics),
        }
        pattern = self.config.PATTERN

        mixed: List[RankedItem] = []
        seen: Set[str] = set()
        head_vendor_counts: Counter = Counter()

        slot = 0
        while len(mixed) < limit:
            required = pattern[slot % len(pattern)]
            order = [required] + [t for t in self.config.FALLBACK_ORDER if t != required]

            picked: Optional[RankedItem] = None
            source: Optional[_Stream] = None
            for stream_type in order:
                source = streams[stream_type]
                picked = self._next_from(source, seen, head_vendor_counts, len(mixed))
                if picked is not None:
                    break

            if picked is None:
                break

            mixed.append(picked.model_copy(update={"stream": source.name}))
            slot += 1

        logger.debug(
            "Mixed feed",
            garments=len(garments),
            accessories=len(accessories),
            fabrics=len(fabrics),
            returned=len(mixed),
        )
        return mixed

    def _next_from(
        self,
        stream: _Stream,
        seen: Set[str],
        head_vendor_counts: Counter,
        placed: int,
    ) -> Optional[RankedItem]:
        cfg = self.config
        while not stream.exhausted():
            candidate = stream.items[stream.cursor]
            stream.cursor += 1

            if candidate.item_id in seen:
                continue

            if placed < cfg.HEAD_SIZE:
                if head_vendor_counts[candidate.vendor] >= cfg.MAX_PER_VENDOR_HEAD:
                    continue
                head_vendor_counts[candidate.vendor] += 1

            seen.add(candidate.item_id)
            return candidate
        return None

    def mix_ranked(self, ranked: Sequence[RankedItem], limit: int) -> List[RankedItem]:
        """Split a mixed-type ranked list into per-type streams and mix them."""
        by_type: Dict[str, List[RankedItem]] = {t.value: [] for t in ItemType}
        for item in ranked:
            by_type[item.type].append(item)
        return self.mix_candidates(
            by_type[ItemType.GARMENT.value],
            by_type[ItemType.ACCESSORY.value],
            by_type[ItemType.FABRIC.value],
            limit,
        )
