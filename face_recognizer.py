"""Command-line front end: recognize faces in an image and optionally grow the corpus."""

from __future__ import annotations

import argparse
import json
import time

from dataclasses import fields
from pathlib import Path

from eigenface.config import DEFAULT_FACES_DIR, DEFAULT_INFO_FILE, DISPLAY_WIDTH
from eigenface.face.corpus import FaceInfo
from eigenface.face.detector import DetectorConfig
from eigenface.face.eigen import EigenConfig
from eigenface.face.recognizer import FaceRecognizer
from eigenface.utils.image import read_image, write_image
from eigenface.utils.log import get_logger
from eigenface.utils.serializer import serialize_results

logger = get_logger(__name__)


def _ask_info(label: str) -> FaceInfo:
    values = {"label": label}
    for f in fields(FaceInfo):
        if f.name == "label":
            continue
        values[f.name] = input(f"  {f.name.replace('_', ' ')}: ").strip()
    return FaceInfo(**values)


def _train(recognizer: FaceRecognizer, ask_info: bool) -> int:
    """Ask for a label for every detected face; an empty answer skips the face."""
    added = 0
    faces = recognizer.get_train_faces()
    for i, face in enumerate(faces):
        label = input(f"Label for face {i + 1}/{len(faces)} (empty to skip): ").strip()
        if not label:
            continue
        path = recognizer.add_face(label, face)
        logger.info(f"Saved {path}")
        added += 1
        info = recognizer.corpus.infos.get(label)
        if ask_info and (info is None or info.is_empty):
            recognizer.corpus.update_info(_ask_info(label))
    return added


def main() -> None:
    parser = argparse.ArgumentParser(description="Detect faces in an image and recognize them with eigenfaces")
    parser.add_argument("input", help="input image path")
    parser.add_argument("--faces", "-d", default=DEFAULT_FACES_DIR, help="face image directory")
    parser.add_argument("--info", default=DEFAULT_INFO_FILE, help="metadata file (';'-separated, 9 fields)")
    parser.add_argument("--output", "-o", default=None, help="annotated image output path")
    parser.add_argument("--output-json", "-j", default=None, help="recognition results JSON path")
    parser.add_argument("--threshold", "-t", type=float, default=3000.0, help="eigenspace distance threshold")
    parser.add_argument("--min-neighbors", type=int, default=10, help="cascade neighbor grouping threshold")
    parser.add_argument("--no-canny", action="store_true", help="disable edge-density pruning")
    parser.add_argument("--train", action="store_true", help="label detected faces interactively and add them")
    parser.add_argument("--ask-info", action="store_true", help="with --train, also ask for new people's details")
    args = parser.parse_args()

    recognizer = FaceRecognizer.from_paths(
        args.faces,
        args.info,
        detector_config=DetectorConfig(min_neighbors=int(args.min_neighbors), canny_pruning=not args.no_canny),
        eigen_config=EigenConfig(threshold=float(args.threshold)),
    )

    recognizer.set_image(read_image(args.input))
    count, info = recognizer.recognize_faces()
    logger.info(f"Detected {count} face(s) (display width {DISPLAY_WIDTH})")
    if info.label:
        logger.info(f"Last face: {info.label} {info.first_name} {info.last_name}".rstrip())

    if args.train and count:
        if _train(recognizer, bool(args.ask_info)):
            count, info = recognizer.recognize_faces()

    if args.output:
        write_image(args.output, recognizer.current_image)
        logger.info(f"Annotated image saved to: {args.output}")

    if args.output_json:
        shape = recognizer.original_image.shape[:2]
        payload = {
            "input": str(Path(args.input)),
            "faces": count,
            "results": serialize_results(recognizer.last_results, shape),
        }
        with open(args.output_json, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        logger.info(f"Results saved to: {args.output_json}")


if __name__ == "__main__":
    st = time.time()
    main()
    ed = time.time()
    logger.info(f"Total time: {ed - st:.2f} s")
