"""sRGB <-> CIE L*a*b* conversion and the CIEDE2000 color difference.

Scalar functions operate on :class:`ColorPoint` values and are the
reference implementation.  The ``*_array`` functions compute the same
formulas element-wise over ``(n, 3)`` NumPy arrays; every element is
independent of the others, so callers may split arrays into chunks (or
ship them to another device) without changing results.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from colorharmony.constants import (
    LAB_DELTA,
    LAB_EPSILON,
    LAB_KAPPA,
    REF_X,
    REF_Y,
    REF_Z,
    RGB_TO_XYZ,
    SRGB_GAMMA_THRESHOLD,
    SRGB_LINEAR_THRESHOLD,
    XYZ_TO_RGB,
)
from colorharmony.models import ColorPoint

_RGB_TO_XYZ = np.array(RGB_TO_XYZ, dtype=np.float64)
_XYZ_TO_RGB = np.array(XYZ_TO_RGB, dtype=np.float64)
_REF_WHITE = np.array([REF_X, REF_Y, REF_Z], dtype=np.float64)

_POW25_7 = 25.0**7
_DEG30 = math.radians(30.0)
_DEG6 = math.radians(6.0)
_DEG63 = math.radians(63.0)
_DEG275 = math.radians(275.0)
_DEG25 = math.radians(25.0)


# ---------------------------------------------------------------------------
# Scalar reference
# ---------------------------------------------------------------------------


def _linearize(c: float) -> float:
    c = c / 255.0
    if c > SRGB_GAMMA_THRESHOLD:
        return ((c + 0.055) / 1.055) ** 2.4
    return c / 12.92


def _companding(c: float) -> float:
    if c > SRGB_LINEAR_THRESHOLD:
        c = 1.055 * c ** (1 / 2.4) - 0.055
    else:
        c = 12.92 * c
    return max(0.0, min(255.0, c * 255.0))


def _lab_f(t: float) -> float:
    if t > LAB_EPSILON:
        return math.cbrt(t)
    return (LAB_KAPPA * t + 16.0) / 116.0


def _lab_f_inverse(t: float) -> float:
    if t > LAB_DELTA:
        return t * t * t
    return 3.0 * LAB_DELTA * LAB_DELTA * (t - 4.0 / 29.0)


def rgb_to_lab(rgb: ColorPoint) -> ColorPoint:
    """Convert an sRGB point (channels 0-255) to CIE L*a*b* (D65)."""
    r = _linearize(rgb.c1) * 100.0
    g = _linearize(rgb.c2) * 100.0
    b = _linearize(rgb.c3) * 100.0

    (m00, m01, m02), (m10, m11, m12), (m20, m21, m22) = RGB_TO_XYZ
    x = r * m00 + g * m01 + b * m02
    y = r * m10 + g * m11 + b * m12
    z = r * m20 + g * m21 + b * m22

    fx = _lab_f(x / REF_X)
    fy = _lab_f(y / REF_Y)
    fz = _lab_f(z / REF_Z)

    return ColorPoint(116.0 * fy - 16.0, 500.0 * (fx - fy), 200.0 * (fy - fz))


def lab_to_rgb(lab: ColorPoint) -> ColorPoint:
    """Convert a CIE L*a*b* point back to sRGB, clamped to [0, 255]."""
    fy = (lab.c1 + 16.0) / 116.0
    fx = lab.c2 / 500.0 + fy
    fz = fy - lab.c3 / 200.0

    x = _lab_f_inverse(fx) * REF_X / 100.0
    y = _lab_f_inverse(fy) * REF_Y / 100.0
    z = _lab_f_inverse(fz) * REF_Z / 100.0

    (m00, m01, m02), (m10, m11, m12), (m20, m21, m22) = XYZ_TO_RGB
    r = x * m00 + y * m01 + z * m02
    g = x * m10 + y * m11 + z * m12
    b = x * m20 + y * m21 + z * m22

    return ColorPoint(_companding(r), _companding(g), _companding(b))


def delta_e_2000(lab1: ColorPoint, lab2: ColorPoint) -> float:
    """CIEDE2000 color difference between two L*a*b* points.

    Uses unit weighting factors (kL = kC = kH = 1).  When either
    chroma is zero the hue difference is zero and the mean hue is the
    plain sum of both hue angles, as the standard prescribes.
    """
    l1, a1, b1 = lab1.c1, lab1.c2, lab1.c3
    l2, a2, b2 = lab2.c1, lab2.c2, lab2.c3

    c1 = math.hypot(a1, b1)
    c2 = math.hypot(a2, b2)
    c_avg7 = ((c1 + c2) / 2.0) ** 7
    g = 0.5 * (1.0 - math.sqrt(c_avg7 / (c_avg7 + _POW25_7)))

    a1p = a1 * (1.0 + g)
    a2p = a2 * (1.0 + g)
    c1p = math.hypot(a1p, b1)
    c2p = math.hypot(a2p, b2)

    h1p = math.atan2(b1, a1p) % (2.0 * math.pi) if c1p else 0.0
    h2p = math.atan2(b2, a2p) % (2.0 * math.pi) if c2p else 0.0

    delta_l = l2 - l1
    delta_c = c2p - c1p

    chroma_product = c1p * c2p
    diff = h2p - h1p
    if chroma_product == 0:
        dhp = 0.0
    elif abs(diff) <= math.pi:
        dhp = diff
    elif diff > math.pi:
        dhp = diff - 2.0 * math.pi
    else:
        dhp = diff + 2.0 * math.pi
    delta_h = 2.0 * math.sqrt(chroma_product) * math.sin(dhp / 2.0)

    l_avg = (l1 + l2) / 2.0
    cp_avg = (c1p + c2p) / 2.0

    if chroma_product == 0:
        hp_avg = h1p + h2p
    elif abs(h1p - h2p) <= math.pi:
        hp_avg = (h1p + h2p) / 2.0
    elif h1p + h2p < 2.0 * math.pi:
        hp_avg = (h1p + h2p + 2.0 * math.pi) / 2.0
    else:
        hp_avg = (h1p + h2p - 2.0 * math.pi) / 2.0

    t = (
        1.0
        - 0.17 * math.cos(hp_avg - _DEG30)
        + 0.24 * math.cos(2.0 * hp_avg)
        + 0.32 * math.cos(3.0 * hp_avg + _DEG6)
        - 0.20 * math.cos(4.0 * hp_avg - _DEG63)
    )

    l_term = (l_avg - 50.0) ** 2
    s_l = 1.0 + (0.015 * l_term) / math.sqrt(20.0 + l_term)
    s_c = 1.0 + 0.045 * cp_avg
    s_h = 1.0 + 0.015 * cp_avg * t

    cp_avg7 = cp_avg**7
    r_c = 2.0 * math.sqrt(cp_avg7 / (cp_avg7 + _POW25_7))
    delta_theta = _DEG30 * math.exp(-(((hp_avg - _DEG275) / _DEG25) ** 2))
    r_t = -math.sin(2.0 * delta_theta) * r_c

    tl = delta_l / s_l
    tc = delta_c / s_c
    th = delta_h / s_h
    return math.sqrt(max(0.0, tl * tl + tc * tc + th * th + r_t * tc * th))


# ---------------------------------------------------------------------------
# Array variants
# ---------------------------------------------------------------------------


def rgb_to_lab_array(rgb: np.ndarray, xp=np) -> np.ndarray:
    """Convert an ``(n, 3)`` array of sRGB values (0-255) to L*a*b*.

    *xp* is the array module to compute with (``numpy`` or ``cupy``).
    """
    c = xp.asarray(rgb, dtype=xp.float64) / 255.0
    linear = xp.where(
        c > SRGB_GAMMA_THRESHOLD,
        ((c + 0.055) / 1.055) ** 2.4,
        c / 12.92,
    )
    xyz = (linear * 100.0) @ xp.asarray(_RGB_TO_XYZ).T
    t = xyz / xp.asarray(_REF_WHITE)
    f = xp.where(
        t > LAB_EPSILON,
        xp.cbrt(t),
        (LAB_KAPPA * t + 16.0) / 116.0,
    )
    lab = xp.empty_like(f)
    lab[:, 0] = 116.0 * f[:, 1] - 16.0
    lab[:, 1] = 500.0 * (f[:, 0] - f[:, 1])
    lab[:, 2] = 200.0 * (f[:, 1] - f[:, 2])
    return lab


def lab_to_rgb_array(lab: np.ndarray, xp=np) -> np.ndarray:
    """Convert an ``(n, 3)`` array of L*a*b* values to sRGB in [0, 255]."""
    lab = xp.asarray(lab, dtype=xp.float64)
    fy = (lab[:, 0] + 16.0) / 116.0
    fx = lab[:, 1] / 500.0 + fy
    fz = fy - lab[:, 2] / 200.0
    f = xp.stack([fx, fy, fz], axis=1)
    t = xp.where(
        f > LAB_DELTA,
        f * f * f,
        3.0 * LAB_DELTA * LAB_DELTA * (f - 4.0 / 29.0),
    )
    xyz = t * xp.asarray(_REF_WHITE) / 100.0
    linear = xyz @ xp.asarray(_XYZ_TO_RGB).T
    safe = xp.maximum(linear, SRGB_LINEAR_THRESHOLD)
    companded = xp.where(
        linear > SRGB_LINEAR_THRESHOLD,
        1.055 * safe ** (1 / 2.4) - 0.055,
        12.92 * linear,
    )
    return xp.clip(companded * 255.0, 0.0, 255.0)


def delta_e_2000_array(lab1: np.ndarray, lab2: np.ndarray) -> np.ndarray:
    """Element-wise CIEDE2000 between two broadcastable ``(..., 3)`` arrays."""
    lab1 = np.asarray(lab1, dtype=np.float64)
    lab2 = np.asarray(lab2, dtype=np.float64)
    l1, a1, b1 = lab1[..., 0], lab1[..., 1], lab1[..., 2]
    l2, a2, b2 = lab2[..., 0], lab2[..., 1], lab2[..., 2]

    c_avg7 = ((np.hypot(a1, b1) + np.hypot(a2, b2)) / 2.0) ** 7
    g = 0.5 * (1.0 - np.sqrt(c_avg7 / (c_avg7 + _POW25_7)))
    a1p = a1 * (1.0 + g)
    a2p = a2 * (1.0 + g)
    c1p = np.hypot(a1p, b1)
    c2p = np.hypot(a2p, b2)

    two_pi = 2.0 * np.pi
    h1p = np.where(c1p == 0, 0.0, np.mod(np.arctan2(b1, a1p), two_pi))
    h2p = np.where(c2p == 0, 0.0, np.mod(np.arctan2(b2, a2p), two_pi))

    chroma_product = c1p * c2p
    zero = chroma_product == 0
    diff = h2p - h1p
    dhp = np.where(
        np.abs(diff) <= np.pi,
        diff,
        np.where(diff > np.pi, diff - two_pi, diff + two_pi),
    )
    dhp = np.where(zero, 0.0, dhp)
    delta_h = 2.0 * np.sqrt(chroma_product) * np.sin(dhp / 2.0)

    hsum = h1p + h2p
    hp_avg = np.where(
        np.abs(h1p - h2p) <= np.pi,
        hsum / 2.0,
        np.where(hsum < two_pi, (hsum + two_pi) / 2.0, (hsum - two_pi) / 2.0),
    )
    hp_avg = np.where(zero, hsum, hp_avg)

    t = (
        1.0
        - 0.17 * np.cos(hp_avg - _DEG30)
        + 0.24 * np.cos(2.0 * hp_avg)
        + 0.32 * np.cos(3.0 * hp_avg + _DEG6)
        - 0.20 * np.cos(4.0 * hp_avg - _DEG63)
    )
    l_term = ((l1 + l2) / 2.0 - 50.0) ** 2
    cp_avg = (c1p + c2p) / 2.0
    s_l = 1.0 + (0.015 * l_term) / np.sqrt(20.0 + l_term)
    s_c = 1.0 + 0.045 * cp_avg
    s_h = 1.0 + 0.015 * cp_avg * t

    cp_avg7 = cp_avg**7
    r_c = 2.0 * np.sqrt(cp_avg7 / (cp_avg7 + _POW25_7))
    delta_theta = _DEG30 * np.exp(-(((hp_avg - _DEG275) / _DEG25) ** 2))
    r_t = -np.sin(2.0 * delta_theta) * r_c

    tl = (l2 - l1) / s_l
    tc = (c2p - c1p) / s_c
    th = delta_h / s_h
    return np.sqrt(np.maximum(0.0, tl * tl + tc * tc + th * th + r_t * tc * th))


# ---------------------------------------------------------------------------
# Batch helpers over ColorPoint sequences
# ---------------------------------------------------------------------------


def points_to_array(points: Sequence[ColorPoint]) -> np.ndarray:
    """Pack a sequence of points into an ``(n, 3)`` float64 array."""
    if not points:
        return np.empty((0, 3), dtype=np.float64)
    return np.array([p.as_tuple() for p in points], dtype=np.float64)


def array_to_points(array: np.ndarray) -> list[ColorPoint]:
    """Unpack an ``(n, 3)`` array into a list of points."""
    return [ColorPoint(float(a), float(b), float(c)) for a, b, c in np.asarray(array)]


def rgb_to_lab_batch(points: Sequence[ColorPoint]) -> list[ColorPoint]:
    """Convert many sRGB points to L*a*b* at once."""
    if not points:
        return []
    return array_to_points(rgb_to_lab_array(points_to_array(points)))


def lab_to_rgb_batch(points: Sequence[ColorPoint]) -> list[ColorPoint]:
    """Convert many L*a*b* points to sRGB at once."""
    if not points:
        return []
    return array_to_points(lab_to_rgb_array(points_to_array(points)))
