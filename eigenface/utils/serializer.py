from dataclasses import asdict
from typing import Dict, List, Optional, Sequence, Tuple


def serialize_result(result, frame_shape: Optional[Tuple[int, int]] = None) -> Dict:
    """Serialize a RecognitionResult into JSON-safe form and optionally add normalized coords.

    result: object with 'bbox' (BoundingBox), 'label', 'distance' and 'info' (FaceInfo)
    frame_shape: (h, w)
    """
    bbox = result.bbox
    x1, y1, x2, y2 = [int(v) for v in bbox.xyxy]
    distance = float(result.distance)

    ed = {
        "bbox": [x1, y1, x2, y2],
        "center": [int((x1 + x2) / 2), int((y1 + y2) / 2)],
        "label": str(result.label),
        "known": bool(result.label),
        # inf (no corpus) is not valid JSON
        "distance": distance if distance != float("inf") else None,
        "info": asdict(result.info),
    }

    if frame_shape is not None:
        h, w = int(frame_shape[0]), int(frame_shape[1])
        if w > 0 and h > 0:
            ed["bbox_norm"] = [round(x1 / w, 4), round(y1 / h, 4), round(x2 / w, 4), round(y2 / h, 4)]
            cx, cy = ed["center"]
            ed["center_norm"] = [round(cx / w, 4), round(cy / h, 4)]
        else:
            ed["bbox_norm"] = None
            ed["center_norm"] = None

    return ed


def serialize_results(results: Sequence, frame_shape: Optional[Tuple[int, int]] = None) -> List[Dict]:
    return [serialize_result(r, frame_shape) for r in results]
