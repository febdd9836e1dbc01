from __future__ import annotations

import re

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Tuple, Union

import numpy as np

from eigenface.utils.image import normalize_face, read_image, write_image
from eigenface.utils.log import get_logger

logger = get_logger(__name__)

# "<label> (<index>).jpg" -- label is the shortest token before " (".
FACE_FILENAME_RE = re.compile(r"(?P<label>.+?) \((?P<index>\d+)\)\.jpg")

INFO_SEPARATOR = ";"
INFO_FIELD_COUNT = 9


class CorpusError(Exception):
    """Base class for corpus failures."""


class CorpusIOError(CorpusError, OSError):
    """Reading or writing the corpus on disk failed."""


class CorpusFormatError(CorpusError, ValueError):
    """The corpus metadata file is malformed."""


@dataclass
class FaceInfo:
    """Biographical record for one label. Unknown fields are empty strings."""

    label: str = ""
    first_name: str = ""
    last_name: str = ""
    age: str = ""
    sex: str = ""
    glasses: str = ""
    skin_color: str = ""
    beard: str = ""
    hair_size: str = ""

    @property
    def is_empty(self) -> bool:
        return not any(getattr(self, f.name) for f in fields(self) if f.name != "label")


@dataclass(frozen=True)
class FaceRecord:
    label: str
    image: np.ndarray


def parse_face_filename(name: str) -> Optional[Tuple[str, int]]:
    """Return (label, index) for "<label> (<index>).jpg", or None if it does not match."""
    m = FACE_FILENAME_RE.fullmatch(name)
    if m is None:
        return None
    return m.group("label"), int(m.group("index"))


def format_face_filename(label: str, index: int) -> str:
    return f"{label} ({int(index)}).jpg"


def parse_info_line(line: str, line_no: Optional[int] = None) -> FaceInfo:
    """Parse one "label;first;last;age;sex;glasses;skin;beard;hair" line."""
    values = line.split(INFO_SEPARATOR)
    if len(values) < INFO_FIELD_COUNT:
        where = f" at line {line_no}" if line_no is not None else ""
        raise CorpusFormatError(
            f"Metadata record{where} has {len(values)} field(s), expected {INFO_FIELD_COUNT}: {line!r}"
        )
    return FaceInfo(*values[:INFO_FIELD_COUNT])


def format_info_line(info: FaceInfo) -> str:
    values = [getattr(info, f.name) for f in fields(info)]
    for v in values:
        if INFO_SEPARATOR in v or "\n" in v:
            raise CorpusFormatError(f"Metadata value may not contain ';' or newlines: {v!r}")
    return INFO_SEPARATOR.join(values)


class FaceInfoMap:
    """label -> FaceInfo with explicit get-or-create."""

    def __init__(self):
        self._items: Dict[str, FaceInfo] = {}

    def __contains__(self, label: str) -> bool:
        return label in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def get(self, label: str) -> Optional[FaceInfo]:
        return self._items.get(label)

    def get_or_create(self, label: str) -> FaceInfo:
        info = self._items.get(label)
        if info is None:
            info = FaceInfo(label)
            self._items[label] = info
        return info

    def put(self, info: FaceInfo) -> None:
        self._items[info.label] = info

    def values(self) -> List[FaceInfo]:
        return list(self._items.values())


class TrainingCorpus:
    """Labeled training faces plus biographical metadata, backed by a directory.

    Records keep insertion order and may repeat a label. Every label that has
    a record also has a FaceInfo; a FaceInfo may exist without records.
    `revision` increases with every added face so derived models can tell
    when they are stale.
    """

    def __init__(self, image_dir: Union[str, Path], info_path: Union[str, Path]):
        self.image_dir = Path(image_dir)
        self.info_path = Path(info_path)
        self._records: List[FaceRecord] = []
        self._infos = FaceInfoMap()
        # Labels that have a line in the metadata file.
        self._stored_labels: Set[str] = set()
        self.revision = 0

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> List[FaceRecord]:
        return list(self._records)

    @property
    def labels(self) -> List[str]:
        return [r.label for r in self._records]

    @property
    def images(self) -> List[np.ndarray]:
        return [r.image for r in self._records]

    @property
    def infos(self) -> FaceInfoMap:
        return self._infos

    @classmethod
    def create(cls, image_dir: Union[str, Path], info_path: Union[str, Path]) -> "TrainingCorpus":
        """Create an empty corpus on disk (directory + metadata file) and load it."""
        image_dir = Path(image_dir)
        info_path = Path(info_path)
        try:
            image_dir.mkdir(parents=True, exist_ok=True)
            info_path.parent.mkdir(parents=True, exist_ok=True)
            if not info_path.exists():
                info_path.write_text("", encoding="utf-8")
        except OSError as e:
            raise CorpusIOError(f"Cannot create corpus at {image_dir}: {e}") from e
        return cls.load(image_dir, info_path)

    @classmethod
    def load(cls, image_dir: Union[str, Path], info_path: Union[str, Path]) -> "TrainingCorpus":
        corpus = cls(image_dir, info_path)
        corpus._load_images()
        corpus._load_infos()
        logger.info(
            f"Loaded corpus: {len(corpus)} face image(s), {len(set(corpus.labels))} label(s), "
            f"{len(corpus.infos)} record(s)"
        )
        return corpus

    def _load_images(self) -> None:
        if not self.image_dir.is_dir():
            raise CorpusIOError(f"Face directory not found: {self.image_dir}")

        entries: List[Tuple[str, int, Path]] = []
        try:
            paths = list(self.image_dir.glob("*.jpg"))
        except OSError as e:
            raise CorpusIOError(f"Cannot list face directory {self.image_dir}: {e}") from e

        for p in paths:
            parsed = parse_face_filename(p.name)
            if parsed is None:
                logger.debug(f"Skipping file with unexpected name: {p.name}")
                continue
            label, index = parsed
            entries.append((label, index, p))

        # Directory order is filesystem dependent.
        entries.sort(key=lambda e: (e[0], e[1]))

        for label, _, p in entries:
            try:
                img = read_image(p, gray=True)
            except OSError as e:
                raise CorpusIOError(f"Cannot read face image {p}: {e}") from e
            self._records.append(FaceRecord(label, normalize_face(img)))

        for label in self.labels:
            self._infos.get_or_create(label)

    def _load_infos(self) -> None:
        try:
            text = self.info_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise CorpusIOError(f"Cannot read metadata file {self.info_path}: {e}") from e

        for line_no, line in enumerate(text.split("\n"), start=1):
            if line.endswith("\r"):
                line = line[:-1]
            if len(line) == 0:
                continue
            parsed = parse_info_line(line, line_no)
            info = self._infos.get_or_create(parsed.label)
            self._stored_labels.add(parsed.label)
            for f in fields(parsed):
                setattr(info, f.name, getattr(parsed, f.name))

    def count_label(self, label: str) -> int:
        return sum(1 for r in self._records if r.label == label)

    def next_filename(self, label: str) -> Path:
        return self.image_dir / format_face_filename(label, self.count_label(label))

    def add_face(self, label: str, image: np.ndarray) -> Path:
        """Persist a new training face and register it; returns the written path.

        The biographical record is not modified; an empty one is ensured.
        """
        label = str(label)
        if not label or "/" in label or "\\" in label:
            raise ValueError(f"Invalid face label: {label!r}")
        face = normalize_face(image)
        path = self.next_filename(label)

        try:
            write_image(path, face)
        except OSError as e:
            raise CorpusIOError(f"Cannot write face image {path}: {e}") from e

        self._records.append(FaceRecord(label, face))
        self._infos.get_or_create(label)
        self.revision += 1
        logger.info(f"Added face for '{label}': {path.name} ({self.count_label(label)} image(s))")
        return path

    def lookup(self, label: str) -> FaceInfo:
        return self._infos.get_or_create(label)

    def update_info(self, info: FaceInfo) -> None:
        """Replace the record for `info.label` and rewrite the metadata file."""
        if not info.label:
            raise ValueError("FaceInfo label must not be empty")
        records = [info if i.label == info.label else i for i in self._infos.values()]
        if info.label not in self._infos:
            records.append(info)
        # Empty records that were only materialized by lookups stay in memory.
        keep = self._stored_labels | {info.label}
        lines = [format_info_line(i) for i in records if i.label in keep or not i.is_empty]
        try:
            self.info_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        except OSError as e:
            raise CorpusIOError(f"Cannot write metadata file {self.info_path}: {e}") from e
        self._infos.put(info)
        self._stored_labels.add(info.label)
        logger.info(f"Updated metadata for '{info.label}'")
