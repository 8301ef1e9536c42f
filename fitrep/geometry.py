"""Joint angle computation from keypoints."""

from typing import Optional

import numpy as np

from fitrep.models import Keypoint


def angle_at(
    a: Optional[Keypoint],
    b: Optional[Keypoint],
    c: Optional[Keypoint]
) -> float:
    """Calculate the angle between three points (ABC with B as vertex).

    Only the (x, y) projection is used; z is ignored.

    Args:
        a: First point
        b: Vertex point
        c: Third point

    Returns:
        Angle in degrees (0-180). 0 when any point is missing, a coordinate
        is not finite, or either ray from the vertex has zero length.
    """
    if a is None or b is None or c is None:
        return 0.0

    ba = np.array([a.x - b.x, a.y - b.y], dtype=float)
    bc = np.array([c.x - b.x, c.y - b.y], dtype=float)
    if not (np.all(np.isfinite(ba)) and np.all(np.isfinite(bc))):
        return 0.0

    norm_ba = np.linalg.norm(ba)
    norm_bc = np.linalg.norm(bc)

    if norm_ba == 0 or norm_bc == 0:
        return 0.0

    cosine_angle = np.dot(ba, bc) / (norm_ba * norm_bc)
    return float(np.degrees(np.arccos(np.clip(cosine_angle, -1.0, 1.0))))
