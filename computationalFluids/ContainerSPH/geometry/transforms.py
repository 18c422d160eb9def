# -- Placement Transforms -- #

'''
Homogeneous 4x4 placement transforms and bounding-box helpers.

The fluid system simulates in its own local frame. Its placement in
the world is a 4x4 matrix; world-space directions such as gravity are
brought into the local frame with the inverse of its linear part
(a direction ignores the translation column).
'''

from __future__ import annotations

import numpy as np
from scipy.spatial.transform import Rotation


def placementTransform(
    translation: np.ndarray | None = None,
    eulerDeg: np.ndarray | None = None,
    scale: float = 1.0,
) -> np.ndarray:
    '''
    Build a placement matrix T = Translate * Rotate * Scale.

    Parameters:
    -----------
    translation : np.ndarray | None
        World position of the local origin [m]
    eulerDeg : np.ndarray | None
        Extrinsic x-y-z rotation angles [degrees]
    scale : float
        Uniform scale factor

    Returns:
    --------
    np.ndarray : 4x4 transform
    '''
    transform = np.eye(4)

    linear = np.eye(3) * scale
    if eulerDeg is not None:
        linear = Rotation.from_euler('xyz', eulerDeg, degrees=True).as_matrix() @ linear

    transform[:3, :3] = linear
    if translation is not None:
        transform[:3, 3] = np.asarray(translation, dtype=float)

    return transform


def mapVector(transform: np.ndarray, vector: np.ndarray) -> np.ndarray:
    '''Apply the linear part of a transform to a direction.'''
    return np.asarray(transform, dtype=float)[:3, :3] @ np.asarray(vector, dtype=float)


def worldToLocalDirection(transform: np.ndarray, vector: np.ndarray) -> np.ndarray:
    '''
    Map a world-space direction into the transform's local frame.

    Equivalent to inverse(transform).mapVector(vector).

    Raises:
    -------
    ValueError : If the transform's linear part is singular
    '''
    linear = np.asarray(transform, dtype=float)[:3, :3]
    try:
        return np.linalg.solve(linear, np.asarray(vector, dtype=float))
    except np.linalg.LinAlgError as exc:
        raise ValueError('Placement transform is not invertible') from exc


def inflateBoundingBox(
    boundsMin: np.ndarray,
    boundsMax: np.ndarray,
    factor: float,
) -> tuple[np.ndarray, np.ndarray]:
    '''
    Scale an axis-aligned box about its center.

    Parameters:
    -----------
    boundsMin : np.ndarray
        Lower corner [m]
    boundsMax : np.ndarray
        Upper corner [m]
    factor : float
        Scale factor (1.2 grows each half-extent by 20%)

    Returns:
    --------
    tuple[np.ndarray, np.ndarray] : Inflated (minimum, maximum)
    '''
    boundsMin = np.asarray(boundsMin, dtype=float)
    boundsMax = np.asarray(boundsMax, dtype=float)
    center = 0.5 * (boundsMin + boundsMax)
    return ((boundsMin - center) * factor + center, (boundsMax - center) * factor + center)
