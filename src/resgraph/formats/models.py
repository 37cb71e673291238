"""Dataclass models for parsed resources."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    ClassVar,
    Iterator,
    List,
    Optional,
    Tuple,
    Union,
)

from ..binary.chunks import UnknownChunk
from ..binary.constants import (
    KIND_ANIMATION,
    KIND_ENVIRONMENT,
    KIND_MATERIAL_SWAP,
    KIND_MODEL,
    KIND_TERRAIN,
    KIND_TEXTURE,
    KIND_TEXTURE_SEQUENCE,
    NO_INDEX,
)

if TYPE_CHECKING:  # pragma: no cover
    from ..graph.keys import ResourceKey


@dataclass(frozen=True, slots=True)
class Ref:
    """Raw index into another resource kind, pending resolution."""

    kind: bytes
    index: int

    def __repr__(self) -> str:
        return f"Ref({self.kind.decode('latin-1')}[{self.index}])"


def ref_or_none(kind: bytes, index: int) -> Optional[Ref]:
    return None if index <= NO_INDEX else Ref(kind, index)


class RefSlot:
    """One reference field: an attribute of an object or an item of a list."""

    __slots__ = ("holder", "name", "kind")

    def __init__(self, holder: Any, name: Union[str, int], kind: bytes) -> None:
        self.holder = holder
        self.name = name
        self.kind = kind

    def get(self) -> Any:
        if isinstance(self.name, int):
            return self.holder[self.name]
        return getattr(self.holder, self.name)

    def set(self, value: Any) -> None:
        if isinstance(self.name, int):
            self.holder[self.name] = value
        else:
            setattr(self.holder, self.name, value)

    def __repr__(self) -> str:
        return f"RefSlot({type(self.holder).__name__}.{self.name})"


@dataclass(eq=False, slots=True, kw_only=True)
class Resource:
    KIND: ClassVar[bytes] = b""

    version: int = 1
    unknown_chunks: Tuple[UnknownChunk, ...] = ()
    key: Optional["ResourceKey"] = None

    def ref_slots(self) -> Iterator[RefSlot]:
        return iter(())

    def pending_refs(self) -> List[RefSlot]:
        return [s for s in self.ref_slots() if isinstance(s.get(), Ref)]

    def dependencies(self) -> List["Resource"]:
        return [
            v for v in (s.get() for s in self.ref_slots())
            if isinstance(v, Resource)
        ]


# ---------------------------------------------------------------------------
# Textures
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ScrollAnim:
    speed_s: float
    speed_t: float


@dataclass(eq=False, slots=True, kw_only=True)
class Texture(Resource):
    KIND: ClassVar[bytes] = KIND_TEXTURE

    width: int
    height: int
    format: int
    levels: int = 1
    flags: int = 0
    texels: bytes = b""
    scroll_anims: Tuple[ScrollAnim, ...] = ()
    sequence: Union[Ref, "TextureSequence", None] = None

    def ref_slots(self) -> Iterator[RefSlot]:
        yield RefSlot(self, "sequence", KIND_TEXTURE_SEQUENCE)


@dataclass(eq=False, slots=True)
class SequenceFrame:
    texture: Union[Ref, Texture, None]
    duration: float


@dataclass(eq=False, slots=True, kw_only=True)
class TextureSequence(Resource):
    KIND: ClassVar[bytes] = KIND_TEXTURE_SEQUENCE

    looping: bool = False
    frames: List[SequenceFrame] = field(default_factory=list)

    def ref_slots(self) -> Iterator[RefSlot]:
        for frame in self.frames:
            yield RefSlot(frame, "texture", KIND_TEXTURE)

    @property
    def total_duration(self) -> float:
        return sum(f.duration for f in self.frames)


# ---------------------------------------------------------------------------
# Terrain & environment
# ---------------------------------------------------------------------------


@dataclass(eq=False, slots=True)
class Tile:
    texture: Union[Ref, Texture, None]
    flags: int
    height: float


@dataclass(eq=False, slots=True, kw_only=True)
class TerrainTable(Resource):
    KIND: ClassVar[bytes] = KIND_TERRAIN

    columns: int
    rows: int
    cell_width: float
    cell_depth: float
    tiles: List[Tile] = field(default_factory=list)
    layer_names: Tuple[str, ...] = ()

    def tile(self, column: int, row: int) -> Tile:
        if not (0 <= column < self.columns and 0 <= row < self.rows):
            raise IndexError(f"tile ({column}, {row}) outside grid")
        return self.tiles[row * self.columns + column]

    def ref_slots(self) -> Iterator[RefSlot]:
        for t in self.tiles:
            yield RefSlot(t, "texture", KIND_TEXTURE)


@dataclass(eq=False, slots=True, kw_only=True)
class Environment(Resource):
    KIND: ClassVar[bytes] = KIND_ENVIRONMENT

    clear_color: Tuple[int, int, int]
    fog_enabled: bool = False
    fog_near: float = 0.0
    fog_far: float = 0.0
    sky_textures: List[Union[Ref, Texture, None]] = field(default_factory=list)
    terrain: Union[Ref, TerrainTable, None] = None

    def ref_slots(self) -> Iterator[RefSlot]:
        for i in range(len(self.sky_textures)):
            yield RefSlot(self.sky_textures, i, KIND_TEXTURE)
        yield RefSlot(self, "terrain", KIND_TERRAIN)


# ---------------------------------------------------------------------------
# Models and their sibling files
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Shape:
    material: int
    indices: Tuple[int, ...]


@dataclass(frozen=True, slots=True)
class TexTrack:
    material: int
    scroll_s: float
    scroll_t: float


@dataclass(eq=False, slots=True, kw_only=True)
class AnimationTrack(Resource):
    KIND: ClassVar[bytes] = KIND_ANIMATION

    loop_mode: int
    duration: int
    tracks: Tuple[TexTrack, ...] = ()


@dataclass(eq=False, slots=True, kw_only=True)
class MaterialSwap(Resource):
    KIND: ClassVar[bytes] = KIND_MATERIAL_SWAP

    material_names: Tuple[str, ...] = ()
    texture_names: Tuple[str, ...] = ()


@dataclass(eq=False, slots=True, kw_only=True)
class Model(Resource):
    KIND: ClassVar[bytes] = KIND_MODEL

    name: str = ""
    flags: int = 0
    positions: Tuple[Tuple[float, float, float], ...] = ()
    shapes: Tuple[Shape, ...] = ()
    material_names: Tuple[str, ...] = ()
    texture_names: Tuple[str, ...] = ()
    animation: Optional[AnimationTrack] = None
    material_swap: Optional[MaterialSwap] = None

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def effective_material_names(self) -> Tuple[str, ...]:
        if self.material_swap is not None and self.material_swap.material_names:
            return self.material_swap.material_names
        return self.material_names


__all__ = [
    "Ref",
    "RefSlot",
    "ref_or_none",
    "Resource",
    "ScrollAnim",
    "Texture",
    "SequenceFrame",
    "TextureSequence",
    "Tile",
    "TerrainTable",
    "Environment",
    "Shape",
    "TexTrack",
    "AnimationTrack",
    "MaterialSwap",
    "Model",
]
