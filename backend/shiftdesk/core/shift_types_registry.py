from dataclasses import dataclass


@dataclass(frozen=True)
class ShiftTypeDef:
    key: str
    name: str
    description: str | None = None


# Stable catalog of work categories.
# Added a category -> add it here -> it is upserted on the next catalog read of an empty table.
SHIFT_TYPES: list[ShiftTypeDef] = [
    ShiftTypeDef("PUB_CRAWL", "Pub Crawl", "Nightly pub crawl with designated leader and guides."),
    ShiftTypeDef("PRIVATE_PUB_CRAWL", "Private Pub Crawl", "Private crawl for booked groups."),
    ShiftTypeDef("BOTTOMLESS_BRUNCH", "Bottomless Brunch", "Brunch shift covering guests and logistics."),
    ShiftTypeDef("GO_KARTING", "Go Karting", "Go-karting coordination shift."),
    ShiftTypeDef("PROMOTION", "Promotion", "Street promotion and outreach shift."),
    ShiftTypeDef("SOCIAL_MEDIA", "Social Media", "Evening social media coverage."),
    ShiftTypeDef("CLEANING", "Cleaning", "Cleaning shift for assigned area."),
    ShiftTypeDef("ORG_MANAGER", "Organization Duty Manager", "Manager on duty overseeing operations."),
]

# Crawl types must have exactly one leader and at least one guide.
CRAWL_TYPE_KEYS = frozenset({"PUB_CRAWL", "PRIVATE_PUB_CRAWL"})


@dataclass(frozen=True)
class ShiftTemplateDef:
    shift_type_key: str
    name: str
    start: str | None
    end: str | None
    roles: tuple[tuple[str, int | None], ...]
    requires_leader: bool = False
    meta: dict | None = None


# Default weekly blueprints, created by name when missing (never overwritten).
# An end before the start runs past midnight; an end equal to the start means "open".
SHIFT_TEMPLATES: list[ShiftTemplateDef] = [
    ShiftTemplateDef("PUB_CRAWL", "Pub Crawl - Standard", "20:45", "00:30", (("Leader", 1), ("Guide", None)), True),
    ShiftTemplateDef("PRIVATE_PUB_CRAWL", "Private Pub Crawl", None, None, (("Leader", 1), ("Guide", None)), True),
    ShiftTemplateDef("BOTTOMLESS_BRUNCH", "Bottomless Brunch", "12:00", "14:00", (("Manager", 1), ("Staff", 2))),
    ShiftTemplateDef("GO_KARTING", "Go Karting", "16:00", "18:00", (("Coordinator", 1),)),
    *[
        ShiftTemplateDef("PROMOTION", f"Promotion - Slot {i}", start, start, (("Staff", 1),))
        for i, start in enumerate(("14:00", "16:00", "18:00"), start=1)
    ],
    ShiftTemplateDef("SOCIAL_MEDIA", "Social Media", "20:45", "22:00", (("Staff", 1),)),
    *[
        ShiftTemplateDef("CLEANING", f"Cleaning - {area}", "17:00", "18:00", (("Staff", 1),), meta={"area": area})
        for area in ("Kitchen", "Entrance", "Outside", "Bathroom", "Bedrooms")
    ],
    ShiftTemplateDef("ORG_MANAGER", "Manager on Duty", "16:00", "01:00", (("Manager", 1),)),
]
