"""Parsing of keypoint payloads into KeypointFrame objects."""

import logging
import math
from typing import Any, Iterable, Mapping, Optional

from fitrep.exceptions import InvalidFrameError
from fitrep.landmarks import LANDMARK_COUNT
from fitrep.models import Keypoint, KeypointFrame

logger = logging.getLogger("Keypoints")


def _keypoint_from_dict(default_id: Optional[int], raw: Any) -> Optional[Keypoint]:
    if not isinstance(raw, Mapping):
        return None
    landmark_id = raw.get('keypoint', raw.get('id', default_id))
    try:
        landmark_id = int(landmark_id)
        keypoint = Keypoint(
            id=landmark_id,
            x=float(raw['x']),
            y=float(raw['y']),
            z=float(raw.get('z', 0.0)),
            visibility=float(raw.get('visibility', 0.0)),
            presence=float(raw.get('presence', 0.0)),
        )
    except (KeyError, TypeError, ValueError):
        return None
    if not 0 <= landmark_id < LANDMARK_COUNT:
        return None
    if not all(math.isfinite(v) for v in (keypoint.x, keypoint.y, keypoint.z,
                                          keypoint.visibility, keypoint.presence)):
        return None
    return keypoint


def keypoint_frame_from_json(payload: Any) -> KeypointFrame:
    """Parse keypoints posted by a client.

    Args:
        payload: Either a list of keypoint objects, each carrying its id in
            'keypoint' or 'id', or a mapping from id strings to keypoint
            objects. None means no body was detected.

    Returns:
        KeypointFrame with the valid entries; malformed entries are dropped

    Raises:
        InvalidFrameError: If the payload is neither a list nor a mapping
    """
    if payload is None:
        return {}

    if isinstance(payload, Mapping):
        entries = []
        for key, raw in payload.items():
            try:
                entries.append((int(key), raw))
            except (TypeError, ValueError):
                entries.append((None, raw))
    elif isinstance(payload, list):
        entries = [(None, raw) for raw in payload]
    else:
        raise InvalidFrameError("keypoints must be a list or an object")

    frame: KeypointFrame = {}
    for default_id, raw in entries:
        keypoint = _keypoint_from_dict(default_id, raw)
        if keypoint is None:
            logger.debug("Dropping malformed keypoint entry: %r", raw)
            continue
        frame[keypoint.id] = keypoint
    return frame


def keypoint_frame_from_landmarks(landmarks: Optional[Iterable[Any]]) -> KeypointFrame:
    """Convert MediaPipe pose landmarks into a KeypointFrame.

    Args:
        landmarks: Sequence of landmark objects with x, y, z, visibility
            and presence attributes, indexed by BlazePose id

    Returns:
        KeypointFrame keyed by landmark index
    """
    if not landmarks:
        return {}
    frame: KeypointFrame = {}
    for index, landmark in enumerate(landmarks):
        if index >= LANDMARK_COUNT:
            break
        frame[index] = Keypoint(
            id=index,
            x=float(landmark.x),
            y=float(landmark.y),
            z=float(getattr(landmark, 'z', 0.0)),
            visibility=float(getattr(landmark, 'visibility', 0.0)),
            presence=float(getattr(landmark, 'presence', 0.0)),
        )
    return frame
