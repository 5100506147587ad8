"""Static lookup tables shared by the requirement parser and facility matcher.

Tables are read-only mappings of frozensets. Services receive a
``FacilityVocabulary`` instance instead of importing module globals, so tests
can swap in a narrower vocabulary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional


MEETING_ROOM_CATEGORY = "Meeting Room"
DESK_CATEGORY = "Desk"
PRIVACY_POD_CATEGORY = "Privacy Pod"

KIND_ROOM = "ROOM"
KIND_DESK = "DESK"
KIND_DESK_BANK = "DESK_BANK"
KIND_POD = "POD"

SINGLE_OCCUPANT_KINDS = frozenset({KIND_DESK})

ROOM_BOOKING_CATEGORY_ID = 9000002
DESK_BOOKING_CATEGORY_ID = 9000001


def _freeze(table: Mapping[str, tuple[str, ...]]) -> Mapping[str, frozenset[str]]:
    return MappingProxyType({key: frozenset(values) for key, values in table.items()})


# Canonical facility name -> trigger phrases (matched as lowercase substrings).
FACILITY_KEYWORDS = _freeze(
    {
        "whiteboard": ("whiteboard", "white board", "dry erase"),
        "conference phone": (
            "conference phone",
            "conference call",
            "speaker phone",
            "speakerphone",
            "polycom",
        ),
        "video conference": (
            "video conference",
            "videoconference",
            "video call",
            "zoom",
            "teams",
            "webex",
        ),
        "screen": ("screen", "monitor", "display", "tv", "television"),
        "projector": ("projector",),
        "adjustable desk": (
            "adjustable",
            "standing desk",
            "sit-stand",
            "sit stand",
        ),
        "wheelchair accessible": ("accessible", "wheelchair", "step-free"),
        "air conditioning": ("air con", "air-con", "conditioning", "climate control"),
        "wifi": ("wifi", "wi-fi", "wireless", "internet"),
        "power outlets": ("power", "plug", "socket", "charging", "outlet"),
        "docking station": ("docking station", "dock", "usb-c"),
        "telephone": ("telephone", "desk phone"),
        "kitchen": ("kitchen", "coffee", "refreshment", "catering"),
    }
)

# Feature tag -> phrases that reveal it in a facility name.
FACILITY_FEATURES = _freeze(
    {
        "Adjustable": ("adjustable", "sit-stand", "sit stand"),
        "Mechanical": ("mechanical",),
        "Wireless": ("wireless",),
        "4K": ("4k", "uhd"),
        "Touch": ("touch",),
    }
)

# Symmetric "these mean roughly the same thing" links used for related matches.
RELATED_TERMS = _freeze(
    {
        "screen": ("monitor", "display", "tv", "television"),
        "monitor": ("screen", "display"),
        "display": ("screen", "monitor", "tv"),
        "tv": ("screen", "television", "display"),
        "television": ("screen", "tv"),
        "conference phone": ("polycom", "speaker phone", "speakerphone", "telephone"),
        "video conference": ("camera", "webcam", "zoom", "teams"),
        "whiteboard": ("flipchart", "flip chart", "smartboard"),
        "projector": ("screen", "display"),
        "adjustable desk": ("standing desk", "sit-stand desk", "electric desk"),
        "wheelchair accessible": ("step-free access", "accessible"),
        "wifi": ("ethernet", "network"),
        "power outlets": ("charging", "usb-c"),
    }
)

# Facility category -> keywords used to infer a category from free text.
# Accessibility is listed before furniture so "wheelchair" never reads as "chair".
FACILITY_CATEGORY_KEYWORDS = MappingProxyType(
    {
        "audio_visual": frozenset(
            {"tv", "screen", "monitor", "projector", "display", "phone", "speaker", "microphone"}
        ),
        "technology": frozenset({"camera", "video conference", "webcam", "streaming"}),
        "connectivity": frozenset({"wifi", "ethernet", "internet", "network", "cable"}),
        "accessibility": frozenset({"wheelchair", "accessible", "disability", "hearing loop"}),
        "furniture": frozenset({"chair", "desk", "table", "adjustable", "ergonomic"}),
        "catering": frozenset({"coffee", "kitchen", "refreshment", "catering"}),
        "comfort": frozenset({"air con", "heating", "climate", "lighting"}),
    }
)

# Category label -> trigger keywords, checked in insertion order.
CATEGORY_KEYWORDS = MappingProxyType(
    {
        MEETING_ROOM_CATEGORY: ("meeting", "conference", "boardroom", "room"),
        DESK_CATEGORY: ("desk", "workstation"),
        PRIVACY_POD_CATEGORY: ("pod", "booth"),
    }
)

BOOKING_CATEGORY_BY_KIND = MappingProxyType(
    {
        KIND_ROOM: ROOM_BOOKING_CATEGORY_ID,
        KIND_DESK: DESK_BOOKING_CATEGORY_ID,
        KIND_DESK_BANK: DESK_BOOKING_CATEGORY_ID,
    }
)


@dataclass(frozen=True)
class FacilityVocabulary:
    keywords: Mapping[str, frozenset[str]] = field(default_factory=lambda: FACILITY_KEYWORDS)
    related_terms: Mapping[str, frozenset[str]] = field(default_factory=lambda: RELATED_TERMS)
    facility_categories: Mapping[str, frozenset[str]] = field(
        default_factory=lambda: FACILITY_CATEGORY_KEYWORDS
    )
    booking_categories: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: CATEGORY_KEYWORDS
    )
    features: Mapping[str, frozenset[str]] = field(default_factory=lambda: FACILITY_FEATURES)

    def are_related(self, term: str, facility_text: str) -> bool:
        """True when the related-terms table links ``term`` to the facility text.

        Facility names are free text ("4K Monitor", "Polycom Trio"), so the
        table's phrases are looked up as substrings of the facility name.
        """
        term_key = term.lower().strip()
        facility_key = facility_text.lower().strip()
        if any(phrase in facility_key for phrase in self.related_terms.get(term_key, ())):
            return True
        for root, related in self.related_terms.items():
            if root in facility_key and term_key in related:
                return True
        return False

    def amenities_in(self, text: str) -> list[str]:
        """Canonical facility names whose trigger phrases occur in ``text``."""
        lowered = text.lower()
        return [
            name
            for name, phrases in self.keywords.items()
            if any(phrase in lowered for phrase in phrases)
        ]

    def features_in(self, text: str) -> list[str]:
        lowered = text.lower()
        return [
            tag
            for tag, phrases in self.features.items()
            if any(phrase in lowered for phrase in phrases)
        ]

    def infer_facility_category(self, text: str) -> Optional[str]:
        lowered = text.lower()
        for category, keywords in self.facility_categories.items():
            if any(keyword in lowered for keyword in keywords):
                return category
        return None


def booking_category_for_kind(kind: Optional[str]) -> int:
    """Map a location kind onto the upstream booking category id."""
    if kind is None:
        return DESK_BOOKING_CATEGORY_ID
    return BOOKING_CATEGORY_BY_KIND.get(kind.upper(), DESK_BOOKING_CATEGORY_ID)


DEFAULT_VOCABULARY = FacilityVocabulary()
