"""2D vector algebra and convex polygon helpers.

Vectors are plain ``(x, y)`` tuples so they can be shared freely between
tans without aliasing.  Angles passed to ``rotate`` are in radians, every
other angle helper works in degrees.
"""
import math

__all__ = [
    "add", "sub", "negate", "scale", "dot", "cross", "length", "normalize",
    "rotate", "perpendicular", "distance", "distance_squared", "angle",
    "is_polygon_clockwise", "is_polygon_convex", "project_polygon_to_normal",
    "compute_polygon_penetration", "signed_distance_to_edge",
    "is_point_on_edge", "is_point_inside_convex_polygon",
    "wrap_angle", "snap_periodic_angle", "snap_angle", "snap_rotation",
    "round_half_up",
]

ZERO = (0.0, 0.0)


def add(a, b):
    return (a[0] + b[0], a[1] + b[1])


def sub(a, b):
    return (a[0] - b[0], a[1] - b[1])


def negate(v):
    return (-v[0], -v[1])


def scale(v, s):
    return (v[0] * s, v[1] * s)


def dot(a, b):
    return a[0] * b[0] + a[1] * b[1]


def cross(a, b):
    return a[0] * b[1] - a[1] * b[0]


def length(v):
    return math.sqrt(v[0] * v[0] + v[1] * v[1])


def normalize(v):
    """Unit vector along *v*; a zero vector is returned unchanged."""
    n = length(v) or 1.0
    return (v[0] / n, v[1] / n)


def rotate(v, radians):
    """Rotate *v* counter-clockwise around the origin."""
    sina = math.sin(radians)
    cosa = math.cos(radians)
    return (v[0] * cosa - v[1] * sina, v[0] * sina + v[1] * cosa)


def perpendicular(v):
    """Rotate *v* by 90 degrees counter-clockwise."""
    return (-v[1], v[0])


def distance_squared(a, b):
    dx = a[0] - b[0]
    dy = a[1] - b[1]
    return dx * dx + dy * dy


def distance(a, b):
    return math.sqrt(distance_squared(a, b))


def angle(v):
    """Direction of *v* in radians."""
    return math.atan2(v[1], v[0])


def round_half_up(value):
    """Round to the nearest integer, halves towards positive infinity."""
    return int(math.floor(value + 0.5))


def is_polygon_clockwise(corners):
    """Check the winding with the shoelace sum of (x2 - x1) * (y2 + y1)."""
    total = 0.0
    for i, c1 in enumerate(corners):
        c2 = corners[(i + 1) % len(corners)]
        total += (c2[0] - c1[0]) * (c2[1] + c1[1])
    return total > 0.0


def is_polygon_convex(corners):
    """Check that every turn has the same direction.

    Collinear corners (zero turn) are accepted, the direction is taken from
    the first corner that actually turns.
    """
    count = len(corners)
    turn0 = 0
    for i in range(count):
        c1 = corners[i]
        c2 = corners[(i + 1) % count]
        c3 = corners[(i + 2) % count]
        turn = cross(sub(c2, c1), sub(c3, c2))
        if turn == 0.0:
            continue
        sign = 1 if turn > 0.0 else -1
        if turn0 == 0:
            turn0 = sign
        elif sign != turn0:
            return False
    return True


def project_polygon_to_normal(points, normal):
    """Project *points* onto *normal*, returning the (min, max) interval."""
    dots = [dot(p, normal) for p in points]
    return min(dots), max(dots)


def compute_polygon_penetration(points1, points2, normal):
    """Overlap of the two projections along *normal*; positive means overlap."""
    _, max1 = project_polygon_to_normal(points1, normal)
    min2, _ = project_polygon_to_normal(points2, normal)
    return max1 - min2


def signed_distance_to_edge(point, edge_point, edge_normal):
    """Distance of *point* behind the edge; positive on the inner side."""
    return dot(sub(edge_point, point), edge_normal)


def is_point_on_edge(point, edge_point1, edge_point2, edge_tangent, edge_normal, eps=1e-7):
    if abs(signed_distance_to_edge(point, edge_point1, edge_normal)) > eps:
        return False
    d = dot(point, edge_tangent)
    if d < dot(edge_point1, edge_tangent) - eps:
        return False
    return d <= dot(edge_point2, edge_tangent) + eps


def is_point_inside_convex_polygon(point, corners, normals, eps=1e-7):
    for corner, normal in zip(corners, normals):
        if signed_distance_to_edge(point, corner, normal) + eps < 0.0:
            return False
    return True


def wrap_angle(degrees):
    """Map an angle to the range (-180, 180]."""
    wrapped = math.fmod(degrees, 360.0)
    if wrapped > 180.0:
        return wrapped - 360.0
    if wrapped <= -180.0:
        return wrapped + 360.0
    return wrapped


def snap_periodic_angle(source_angle, periodic_angle):
    """Signed delta from *source_angle* to the nearest multiple of *periodic_angle*."""
    steps = round_half_up(source_angle / periodic_angle)
    return steps * periodic_angle - source_angle


def snap_angle(source_angle, target_angle, repeat_angle):
    """Smallest wrapped delta from *source_angle* to target + k * repeat."""
    steps = round_half_up(360.0 / repeat_angle)
    closest = None
    for i in range(steps):
        delta = wrap_angle(target_angle + i * repeat_angle - source_angle)
        if closest is None or abs(delta) < abs(closest):
            closest = delta
    return closest


def snap_rotation(rotation, edge_angles, edge_smooths, step=15.0, repeat=45.0, eps=1e-6):
    """Snap a free rotation to the angle grid or to a non-standard edge.

    The rotation goes to the nearest multiple of *step* unless one of the
    piece's sharp edges, whose own direction is off the grid, can be brought
    onto a multiple of *repeat* with a smaller correction.
    """
    snap = snap_periodic_angle(rotation, step)
    for edge_angle, smooth in zip(edge_angles, edge_smooths):
        if smooth:
            continue
        if abs(math.fmod(edge_angle, step)) > eps:
            edge_snap = snap_angle(rotation, -edge_angle, repeat)
            if abs(edge_snap) < abs(snap):
                snap = edge_snap
    return rotation + snap
