"""Scene (object pose) query interface, fed by perception outside this package."""

from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np


class ISceneQuery(ABC):

    @abstractmethod
    def find_object(self, object_id: str) -> Optional[List[float]]:
        """
        :return: List[float]|None, object pose [x, y, z, qx, qy, qz, qw] in the world frame,
            None if the object is not in the scene
        """

    @abstractmethod
    def object_dimensions(self, object_id: str) -> Optional[List[float]]:
        """
        :return: List[float]|None, bounding box extents [x, y, z] (m)
        """

    @abstractmethod
    def object_transform(self, object_id: str) -> Optional[np.ndarray]:
        """
        :return: np.ndarray|None, 4x4 transform of the object in the world frame
        """

    @abstractmethod
    def grip_transforms(self, object_id: str) -> List[np.ndarray]:
        """
        Grip frames of the object, expressed in the object frame.

        :return: List[np.ndarray], 4x4 transforms, possibly empty
        """
