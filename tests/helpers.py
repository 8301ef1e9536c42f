"""Frame builders and a controllable clock for tests."""

import math

from fitrep.models import Keypoint

VERTEX = (0.5, 0.5)
LIMB = 0.2


class FakeClock:
    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def points_for_angle(theta, vertex=VERTEX, length=LIMB):
    """Three (x, y) points whose angle at the middle point is theta degrees."""
    vx, vy = vertex
    rad = math.radians(theta)
    a = (vx, vy - length)
    c = (vx + length * math.sin(rad), vy - length * math.cos(rad))
    return a, vertex, c


def frame_for(recipe, angles, visibility=0.9, overrides=None):
    """Build a keypoint frame that produces the given angle per joint triple.

    Args:
        recipe: ExerciseRecipe whose angle joints are placed
        angles: One angle per entry in recipe.angle_joint_sets
        visibility: Visibility given to every placed joint
        overrides: Optional {landmark_id: visibility} applied afterwards
    """
    frame = {}
    for offset, (joints, theta) in enumerate(zip(recipe.angle_joint_sets, angles)):
        vertex = (0.3 + 0.4 * offset, 0.5)
        for joint, (x, y) in zip(joints, points_for_angle(theta, vertex)):
            frame[int(joint)] = Keypoint(id=int(joint), x=x, y=y, z=0.0,
                                         visibility=visibility, presence=0.99)
    for joint, vis in (overrides or {}).items():
        kp = frame[int(joint)]
        frame[int(joint)] = Keypoint(id=kp.id, x=kp.x, y=kp.y, z=kp.z,
                                     visibility=vis, presence=kp.presence)
    return frame
