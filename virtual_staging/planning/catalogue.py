"""Room and style catalogues used to build staging plans.

Item strings are what the provider sees; keep them short, concrete and
free of structural work (nothing that needs drilling, wiring or removal).
"""
from __future__ import annotations
from dataclasses import dataclass, field
from virtual_staging.core.workflow import RoomCategory, StageKind, StyleProfile

Range = tuple[int, int]


@dataclass(frozen=True)
class StageCatalogue:
    item_range: Range
    items: tuple[str, ...]


@dataclass(frozen=True)
class RoomCatalogue:
    label: str
    stages: dict[StageKind, StageCatalogue]


@dataclass(frozen=True)
class StyleDetail:
    label: str
    palette: tuple[str, ...]
    materials: tuple[str, ...]
    silhouettes: tuple[str, ...]
    palette_accents: tuple[str, ...] = ()
    blocked_colors: tuple[str, ...] = ()
    hardware: tuple[str, ...] = ()
    details: tuple[str, ...] = ()
    patterns: tuple[str, ...] = ()
    # Catalogue items mentioning any of these terms are dropped for the style.
    blocked_terms: tuple[str, ...] = field(default_factory=tuple)


def _room(label: str, primary: tuple[Range, tuple[str, ...]], complementary: tuple[Range, tuple[str, ...]],
          windows: tuple[Range, tuple[str, ...]], wall: tuple[Range, tuple[str, ...]]) -> RoomCatalogue:
    return RoomCatalogue(label=label, stages={
        StageKind.PRIMARY_FURNITURE: StageCatalogue(*primary),
        StageKind.COMPLEMENTARY: StageCatalogue(*complementary),
        StageKind.WINDOW_TREATMENT: StageCatalogue(*windows),
        StageKind.WALL_DECOR: StageCatalogue(*wall),
    })


ROOM_CATALOGUE: dict[RoomCategory, RoomCatalogue] = {
    RoomCategory.LIVING_ROOM: _room(
        "living room",
        primary=((2, 4), (
            "modular sectional (low-profile, neutral tones)",
            "compact 2-3 seat sofa (straight arms, slim legs)",
            "accent swivel chair (boucle or fabric, 1-2)",
            "barrel lounge chair (sculptural, upholstered)",
            "chaise lounge (slim, modern profile)",
            "smoked-glass coffee table with slim metal base",
            "clear tempered-glass coffee table (rectangular or square)",
            "marble or travertine coffee table (pedestal or slab)",
            "nesting coffee tables (glass/stone top, metal frame)",
            "plinth-style coffee table (stone, lacquer, or glass base)",
            "cylinder side table (stone, glass, or lacquer finish)",
            "round glass side table with metal legs",
            "sculptural pedestal side table (minimal, modern)",
        )),
        complementary=((3, 5), (
            "large area rug anchoring front legs of seating",
            "layered rug (smaller patterned rug on top of neutral base rug)",
            "arc floor lamp or slim linear floor lamp",
            "reading floor lamp (slim, matte black or brass)",
            "portable cordless table lamp (rechargeable)",
            "small sculptural table lamp (stone, ceramic or smoked glass)",
            "contrasting throw pillows (2-4) in complementary textures",
            "neutral boucle or linen throw blanket draped on sofa",
            "pouf or small ottoman (fabric or leather)",
            "indoor tree (olive, fiddle-leaf) in matte planter",
            "medium plant (monstera, rubber plant) in ceramic planter",
            "tall snake plant in slim pedestal planter",
            "ceramic or stone vases in varied heights (cluster of 2-3)",
            "travertine or marble tray with candles",
            "stack of coffee table books (2-3, neutral covers)",
            "woven basket for throws (floor corner)",
        )),
        windows=((1, 4), (
            "linen curtains (floor-length, neutral tones)",
            "sheer curtains (white/cream, light filtering)",
            "double-layer curtains (sheer + blackout) on existing windows",
            "minimal curtain rod or ceiling track (existing windows only)",
        )),
        wall=((0, 2), (
            "small framed artwork (abstract/botanical)",
            "small round or pill mirror",
            "plug-in wall sconces (pair, no hardwiring)",
            "plug-in picture light over artwork",
        )),
    ),
    RoomCategory.BEDROOM: _room(
        "bedroom",
        primary=((1, 1), (
            "queen or king-size bed",
        )),
        complementary=((1, 2), (
            "bedside lamps (pair or single, proportional to nightstand)",
            "slim floor lamp in corner",
            "layered bedding with decorative pillows and throw",
            "area rug extending beyond bed sides and foot",
            "freestanding leaner floor mirror (corner placement)",
            "potted plant (olive, monstera) in neutral planter",
            "stack of books on nightstand",
            "woven basket for extra blankets",
        )),
        windows=((1, 1), (
            "blackout curtains (neutral fabric, floor length)",
        )),
        wall=((0, 1), (
            "framed artwork above headboard (single large or pair)",
            "oversized round or arched mirror above dresser",
            "paired framed prints over nightstands",
            "picture ledge for photos (surface-mounted)",
        )),
    ),
    RoomCategory.KITCHEN: _room(
        "kitchen",
        primary=((1, 3), (
            "counter or island stools (2-4, backless or low-back)",
            "compact bistro set (small round table + 2 chairs)",
            "narrow bar table with 2 stools (freestanding)",
            "bar cart on casters (freestanding)",
        )),
        complementary=((1, 3), (
            "low-pile runner rug along circulation zone",
            "floor plant in corner (compact, away from work zones)",
            "tabletop bowl or vase on bistro table (not on countertops)",
            "seat cushions for stools",
        )),
        windows=((0, 2), (
            "cafe curtains (lower window only)",
            "roman shades (moisture resistant)",
            "mini blinds (easy to clean)",
            "simple tie-up shades",
        )),
        wall=((0, 1), (
            "small framed print on free wall surface",
            "modern wall clock",
            "slim picture ledge (surface-mounted, shallow)",
        )),
    ),
    RoomCategory.BATHROOM: _room(
        "bathroom",
        primary=((0, 1), (
            "small stool (wood or stone)",
            "slim console table (narrow, freestanding)",
            "freestanding ladder towel rack",
            "slim freestanding shelving tower",
        )),
        complementary=((2, 4), (
            "coordinated towels (bath, hand, face)",
            "vanity tray with soap dispenser and jar",
            "low-pile bath mat",
            "small humidity-tolerant plant",
            "compact lidded hamper",
            "reed diffuser or LED candle",
        )),
        windows=((0, 1), (
            "frosted window film (privacy)",
            "moisture-resistant roman shades",
            "simple roller shades (waterproof)",
            "venetian blinds (moisture resistant)",
        )),
        wall=((0, 1), (
            "small framed print on free wall",
            "auxiliary mirror (if free wall)",
            "slim wall shelf above toilet (surface-mounted)",
        )),
    ),
    RoomCategory.DINING_ROOM: _room(
        "dining room",
        primary=((1, 2), (
            "extendable dining table (light oak or walnut top, slim legs)",
            "rectangular dining table with matte ceramic top",
            "round pedestal dining table (white oak or marble top)",
            "set of dining chairs (4-8, upholstered or cane back)",
            "bench with cushion for one side",
            "slim sideboard in matching wood tone",
            "wine cabinet or slim bar console (glass doors, wood frame)",
        )),
        complementary=((2, 4), (
            "area rug sized to cover table and chairs pulled back",
            "ceramic vase centerpiece with seasonal greenery",
            "linen table runner in muted color",
            "pair of buffet lamps with fabric shades",
            "corner plant in tall ceramic planter",
        )),
        windows=((1, 2), (
            "formal dining curtains (floor-length)",
            "layered window treatments (sheer + drapes)",
            "roman shades (linen)",
            "wooden blinds (matching dining furniture)",
        )),
        wall=((1, 2), (
            "large framed abstract artwork in muted tones",
            "round oak-framed mirror proportional to table width",
            "minimal floating shelf (max 20 cm deep)",
            "pair of slim plug-in wall sconces",
        )),
    ),
    RoomCategory.HOME_OFFICE: _room(
        "home office",
        primary=((2, 3), (
            "sit-stand desk (freestanding)",
            "ergonomic task chair",
            "guest chair or lounge chair",
            "low credenza",
            "bookcase or shelving unit",
            "slim filing cabinet",
        )),
        complementary=((2, 4), (
            "task desk lamp",
            "floor lamp",
            "area rug under desk zone",
            "plant (snake plant or ZZ)",
            "desktop organizers (trays, risers, boxes)",
            "monitor stand",
        )),
        windows=((1, 2), (
            "light-filtering blinds (reduce screen glare)",
            "adjustable roman shades",
            "cordless cellular shades",
            "office curtains (neutral)",
        )),
        wall=((0, 2), (
            "framed artwork or photography",
            "cork board",
            "pegboard organizer",
            "decorative acoustic panels",
        )),
    ),
    RoomCategory.KIDS_ROOM: _room(
        "kids room",
        primary=((2, 4), (
            "twin bed or bunk bed",
            "nightstand",
            "small desk and chair",
            "bookshelf or cubby storage",
            "toy organizer shelf",
            "storage bench or reading bench",
        )),
        complementary=((2, 4), (
            "soft area rug",
            "toy baskets or bins",
            "beanbag or floor cushion",
            "reading teepee or freestanding canopy",
            "table lamp or night light",
        )),
        windows=((1, 2), (
            "blackout curtains",
            "patterned curtains (age-appropriate)",
            "cordless blinds (child safety)",
            "room darkening shades",
        )),
        wall=((1, 2), (
            "playful framed prints (animals or letters)",
            "name or initial framed art",
            "shatterproof mirror at safe height",
            "peg rail with hooks (surface-mounted)",
        )),
    ),
    RoomCategory.OUTDOOR: _room(
        "outdoor space",
        primary=((2, 4), (
            "modular outdoor sectional",
            "pair of lounge chairs",
            "outdoor coffee table",
            "bistro set (2-seat) or small dining set",
            "chaise lounge (single or pair)",
            "freestanding cantilever umbrella",
        )),
        complementary=((2, 4), (
            "UV-resistant outdoor rug",
            "planters with greenery (varied heights)",
            "lanterns on freestanding posts",
            "outdoor cushions and throws",
            "small side tables",
        )),
        windows=((0, 1), (
            "outdoor curtains (weather-resistant)",
            "bamboo roll-up shades",
            "outdoor privacy screens",
        )),
        wall=((0, 1), (
            "outdoor-safe wall art",
            "wall planter rack (surface-mounted)",
        )),
    ),
}


STYLE_CATALOGUE: dict[StyleProfile, StyleDetail] = {
    StyleProfile.STANDARD: StyleDetail(
        label="standard",
        palette=("warm greige", "taupe", "soft warm gray", "cream", "ecru"),
        palette_accents=("muted olive", "warm beige"),
        blocked_colors=("navy", "cobalt blue", "electric blue", "icy blue"),
        materials=("oak/walnut veneer", "solid oak legs", "linen/cotton weaves", "brushed nickel"),
        silhouettes=("soft rounded edges", "balanced proportions", "box cushions (medium firmness)"),
        hardware=("brushed nickel", "matte black (limited)"),
        details=("edge radius 10-25 mm", "top-stitch seams", "tone-on-tone piping"),
        patterns=("subtle herringbone", "micro-chevron", "tone-on-tone weave"),
        blocked_terms=("neon",),
    ),
    StyleProfile.MODERN: StyleDetail(
        label="modern",
        palette=("greige", "taupe", "warm gray", "cream", "earthy charcoal"),
        palette_accents=("desaturated olive", "warm sand"),
        blocked_colors=("blue upholstery", "navy", "steel-blue", "cold gray fabric"),
        materials=("matte lacquer", "powder-coated metal", "smoked glass", "stone (travertine/basalt)"),
        silhouettes=("clean lines", "low-profile", "rectilinear with soft curves", "thin sled or blade legs"),
        hardware=("matte black", "satin chrome"),
        details=("flush fronts", "shadow gaps", "fluted wood panels (limited)"),
        patterns=("plain weave", "micro-texture (no bold prints)"),
        blocked_terms=("rustic", "distressed", "patterned curtains"),
    ),
    StyleProfile.SCANDINAVIAN: StyleDetail(
        label="Scandinavian",
        palette=("white", "cream", "light oak", "beech", "warm gray", "soft pastel accents"),
        palette_accents=("sage", "dusty pink (very subtle)"),
        blocked_colors=("navy", "cobalt", "high-saturation jewel tones"),
        materials=("boucle/wool", "oiled light wood", "stoneware", "cotton-linen"),
        silhouettes=("organic curves", "minimal ornament", "airy forms", "tapered round legs"),
        hardware=("light wood pulls", "matte white/black minimal"),
        details=("visible wood grain", "softly rounded corners"),
        patterns=("fine stripes", "subtle checks", "knit textures"),
        blocked_terms=("mirrored", "tufted"),
    ),
    StyleProfile.INDUSTRIAL: StyleDetail(
        label="industrial",
        palette=("charcoal", "ink", "tobacco", "warm gray", "rust brown"),
        palette_accents=("aged brass (subtle)",),
        blocked_colors=("bright white glossy", "pastels", "navy velvet"),
        materials=("blackened steel", "raw/reclaimed wood", "concrete/stone", "oiled leather"),
        silhouettes=("robust forms", "exposed joinery", "square tube frames"),
        hardware=("blackened steel", "antique brass"),
        details=("visible welds (clean)", "bolted brackets"),
        patterns=("distressed leather grain", "muted geometric weaves"),
        blocked_terms=("pastel", "playful"),
    ),
    StyleProfile.MIDCENTURY: StyleDetail(
        label="mid-century modern",
        palette=("walnut", "teak", "cream", "warm white", "olive", "mustard", "teal (muted)"),
        palette_accents=("burnt orange (small doses)",),
        blocked_colors=("navy velvet", "chrome mirror-finish"),
        materials=("walnut/teak veneer", "solid wood tapered legs", "linen tweed", "boucle"),
        silhouettes=("tapered legs", "slim profiles", "boxy cushions", "loose back cushions"),
        hardware=("brass", "matte black"),
        details=("button tuft (light)", "piping", "finger joints (visible)"),
        patterns=("geometric/atomic", "fine houndstooth (small scale)"),
        blocked_terms=("chrome",),
    ),
    StyleProfile.LUXURY: StyleDetail(
        label="luxury",
        palette=("rich neutrals", "cream", "taupe", "jewel accents (emerald/sapphire)"),
        palette_accents=("champagne gold",),
        blocked_colors=("rustic orange", "distressed wood tones", "matte-black overload"),
        materials=("velvet", "silk-blend", "marble", "mirror", "ribbed/fluted glass"),
        silhouettes=("sculptural", "sumptuous", "softly curved arms"),
        hardware=("polished brass", "champagne gold"),
        details=("deep plush seats", "mitered stone edges", "polished reveals"),
        patterns=("subtle sheen weaves", "fine ribbing"),
        blocked_terms=("reclaimed", "distressed", "rustic"),
    ),
    StyleProfile.COASTAL: StyleDetail(
        label="coastal",
        palette=("white", "sand", "driftwood", "warm gray", "soft seafoam"),
        palette_accents=("powder blue (very light)",),
        blocked_colors=("navy lacquer", "heavy black metal"),
        materials=("rattan", "jute", "light woods", "linen/cotton", "washed finishes"),
        silhouettes=("breezy", "casual", "rounded edges"),
        hardware=("brushed nickel", "light bronze"),
        details=("loose linen slipcovers", "open-weave panels"),
        patterns=("subtle stripes", "botanical prints (muted)"),
        blocked_terms=("velvet", "blackout"),
    ),
    StyleProfile.FARMHOUSE: StyleDetail(
        label="farmhouse",
        palette=("warm whites", "earth tones", "natural wood", "greige"),
        palette_accents=("sage", "muted clay"),
        blocked_colors=("high-gloss lacquer", "mirror-chrome"),
        materials=("reclaimed/knotty wood", "stoneware", "textured cotton", "linen"),
        silhouettes=("shaker profiles", "sturdy frames", "X-brace (limited, neat)"),
        hardware=("black/antique bronze",),
        details=("visible grain", "soft distress (light)"),
        patterns=("gingham", "ticking stripes", "basket weaves"),
        blocked_terms=("tempered-glass", "smoked", "lacquer"),
    ),
}


# Per-kind global preservation rule, prepended to every instruction.
STAGE_SCOPE_RULES: dict[StageKind, str] = {
    StageKind.PRIMARY_FURNITURE: (
        "Add only furniture items, on top of the original photo; never modify, move, or substitute "
        "any existing structures or surfaces."
    ),
    StageKind.COMPLEMENTARY: (
        "Add only decor items, on top of the original photo; never modify, move, or substitute "
        "any existing structures or surfaces."
    ),
    StageKind.WINDOW_TREATMENT: (
        "Add only window treatments, on top of the original photo; never modify, move, or substitute "
        "any existing structures, furniture, decor or surfaces."
    ),
    StageKind.WALL_DECOR: (
        "Add only wall decoration items, on top of the original photo; never modify, move, or substitute "
        "any existing structures, furniture, decor or surfaces."
    ),
}

PRESERVATION_RULE = (
    "Maintain the same composition, perspective, and natural lighting. Do not alter or replace any fixed "
    "architectural or material elements: keep the floor, walls, ceiling, doors, windows, countertops, "
    "cabinetry, stair parts, lighting fixtures, trims, and all existing colors identical."
)

# How many catalogue items are surfaced as examples inside an instruction.
EXAMPLE_COUNTS: dict[StageKind, int] = {
    StageKind.PRIMARY_FURNITURE: 3,
    StageKind.COMPLEMENTARY: 10,
    StageKind.WINDOW_TREATMENT: 3,
    StageKind.WALL_DECOR: 2,
}

# Reinforcement used when a stage attempt failed without a validation verdict.
STAGE_REINFORCEMENT: dict[StageKind, str] = {
    StageKind.PRIMARY_FURNITURE: "No wall decor or window treatments. Stairs and doors are no-placement zones.",
    StageKind.COMPLEMENTARY: "Only add items where space is clearly available. Do not block doors or windows.",
    StageKind.WINDOW_TREATMENT: "Treat only windows that actually exist. Do not add wall decor.",
    StageKind.WALL_DECOR: "Use free wall surface only. Do not add curtains, blinds or shades.",
}
