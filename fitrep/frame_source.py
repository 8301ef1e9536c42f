"""Server-side pose detection for clients that post raw images.

MediaPipePoseSource runs MediaPipe Pose on a decoded frame and hands back the
same KeypointFrame that on-device clients post as JSON.
"""

import base64
import binascii

import cv2
import mediapipe as mp
import numpy as np

from fitrep.exceptions import InvalidFrameError
from fitrep.keypoints import keypoint_frame_from_landmarks
from fitrep.models import KeypointFrame


def decode_image(data_url: str) -> np.ndarray:
    """Decode a base64 image, with or without a data URL prefix, to BGR.

    Raises:
        InvalidFrameError: If the data is not a decodable image
    """
    encoded = data_url.split(',', 1)[1] if ',' in data_url else data_url
    try:
        img_bytes = base64.b64decode(encoded, validate=False)
    except (binascii.Error, ValueError):
        raise InvalidFrameError("image is not valid base64") from None
    frame = cv2.imdecode(np.frombuffer(img_bytes, np.uint8), cv2.IMREAD_COLOR)
    if frame is None:
        raise InvalidFrameError("image could not be decoded")
    return frame


class MediaPipePoseSource:
    """Runs MediaPipe Pose on BGR images.

    Attributes:
        mp_pose: MediaPipe Pose solution module
        pose: Initialized MediaPipe Pose instance
    """

    def __init__(self) -> None:
        """Initialize the MediaPipe Pose model."""
        self.mp_pose = mp.solutions.pose
        self.pose = self.mp_pose.Pose(
            min_detection_confidence=0.5,
            min_tracking_confidence=0.5,
            model_complexity=1
        )

    def detect(self, frame_bgr: np.ndarray) -> KeypointFrame:
        """Detect body landmarks in a BGR frame.

        Args:
            frame_bgr: Input frame in BGR format with shape (H, W, 3)

        Returns:
            KeypointFrame, empty if no body was detected
        """
        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        results = self.pose.process(frame_rgb)
        if not results.pose_landmarks:
            return {}
        return keypoint_frame_from_landmarks(results.pose_landmarks.landmark)

    def close(self) -> None:
        """Release MediaPipe resources."""
        self.pose.close()
