import logging
import math
from collections import deque, namedtuple
from dataclasses import dataclass

from shapely import affinity
from shapely.geometry import Polygon
from shapely.ops import unary_union

import vecmath as vm

logger = logging.getLogger(__name__)

# Corners and edges whose neighbouring edges turn by less than this many
# degrees are treated as smooth (not pickable, not used for angle snapping)
SMOOTH_EDGE_ANGLE_MAX = 15.0

ROTATION_ANGLE_STEP = 15.0
REPEAT_EDGE_ANGLE = 45.0
STANDARD_ANGLE_EPS = 1e-6

Collision = namedtuple("Collision", ["index", "normal", "penetration"])
AABB = namedtuple("AABB", ["min", "max"])


@dataclass
class TangramConfig:
    """Tolerances used by placement, snapping and the shape check."""
    max_penetration: float = 0.1
    max_iterations: int = 10
    collision_eps: float = 1e-8
    point_snap_distance: float = 0.02
    mid_snap_distance: float = 0.015
    edge_snap_distance: float = 0.01
    snap_eps: float = 1e-9
    touch_eps: float = 1e-7
    staging_scale: float = 1.2


@dataclass(frozen=True)
class Dissection:
    """A cut pattern: a shared vertex pool and one index list per piece."""
    id: int
    vertices: tuple
    polygons: tuple

    def __post_init__(self):
        if not 0 <= self.id <= 0xFF:
            raise ValueError(f"Dissection id ({self.id}) should be in range [0..255]")
        vertices = tuple((float(x), float(y)) for x, y in self.vertices)
        polygons = tuple(tuple(int(i) for i in polygon) for polygon in self.polygons)
        for polygon in polygons:
            for i in polygon:
                if not 0 <= i < len(vertices):
                    raise ValueError(f"Vertex index ({i}) is out of range [0..{len(vertices) - 1}]")
        # frozen dataclass, so bypass __setattr__ to store the normalised tuples
        object.__setattr__(self, "vertices", vertices)
        object.__setattr__(self, "polygons", polygons)

    @classmethod
    def from_dict(cls, data):
        """Build a dissection from its JSON form {"id", "vertices", "polygons"}"""
        return cls(data["id"], data["vertices"], data["polygons"])


class Tan:
    """One convex piece with a fixed local shape and a mutable world pose."""

    def __init__(self, vertices, polygon):
        if len(polygon) < 3:
            raise ValueError("Tan polygon should have at least 3 corners")
        raw = [vertices[i] for i in polygon]
        count = len(raw)
        self.origin = (sum(p[0] for p in raw) / count, sum(p[1] for p in raw) / count)
        self.corners = [vm.sub(p, self.origin) for p in raw]

        self.edge_angles = []
        for i in range(count):
            edge = vm.sub(self.corners[(i + 1) % count], self.corners[i])
            self.edge_angles.append(vm.angle(edge) / math.pi * 180.0)

        self.corner_smooths = []
        self.edge_smooths = []
        for i in range(count):
            e1 = self.edge_angles[i - 1]
            e2 = self.edge_angles[i]
            e3 = self.edge_angles[(i + 1) % count]
            smooth1 = abs(vm.wrap_angle(e2 - e1)) < SMOOTH_EDGE_ANGLE_MAX
            smooth2 = abs(vm.wrap_angle(e3 - e2)) < SMOOTH_EDGE_ANGLE_MAX
            self.corner_smooths.append(smooth1)
            self.edge_smooths.append(smooth1 or smooth2)

        if not vm.is_polygon_clockwise(self.corners):
            raise ValueError("Tan polygon should be clockwise")
        if not vm.is_polygon_convex(self.corners):
            raise ValueError("Tan polygon should be convex")

        self.active = True
        self.transform(self.origin, 0.0)

    def __repr__(self):
        return f"Tan(position={self.position}, rotation={self.rotation}, active={self.active})"

    def transform(self, position, rotation):
        """Place the tan at *position* rotated by *rotation* degrees"""
        self.position = (float(position[0]), float(position[1]))
        self.rotation = float(rotation)
        radians = self.rotation / 180.0 * math.pi
        self.points = [vm.add(vm.rotate(c, radians), self.position) for c in self.corners]
        count = len(self.points)
        self.mids = []
        self.tangents = []
        self.normals = []
        for i, p1 in enumerate(self.points):
            p2 = self.points[(i + 1) % count]
            tangent = vm.normalize(vm.sub(p2, p1))
            self.mids.append(vm.scale(vm.add(p1, p2), 0.5))
            self.tangents.append(tangent)
            # clockwise winding, so the CCW perpendicular points outward
            self.normals.append(vm.perpendicular(tangent))

    def translate(self, delta):
        self.transform(vm.add(self.position, delta), self.rotation)

    def edges(self):
        """Yield (point1, point2, tangent, normal) for every edge"""
        count = len(self.points)
        for i in range(count):
            yield self.points[i], self.points[(i + 1) % count], self.tangents[i], self.normals[i]

    def is_point_inside(self, point, eps=1e-7):
        return vm.is_point_inside_convex_polygon(point, self.points, self.normals, eps)

    def is_point_on_edge(self, point, eps=1e-7):
        return any(vm.is_point_on_edge(point, p1, p2, t, n, eps) for p1, p2, t, n in self.edges())

    def touches(self, other, eps=1e-7):
        """Check whether a corner of either tan lies on an edge of the other"""
        return (any(other.is_point_on_edge(p, eps) for p in self.points)
                or any(self.is_point_on_edge(p, eps) for p in other.points))

    def snap_rotation(self, rotation):
        """Snap a free rotation to the angle grid or to one of this tan's edges"""
        return vm.snap_rotation(rotation, self.edge_angles, self.edge_smooths,
                                ROTATION_ANGLE_STEP, REPEAT_EDGE_ANGLE, STANDARD_ANGLE_EPS)

    @property
    def polygon(self):
        """Current world outline as a shapely Polygon"""
        return Polygon(self.points)


def compute_tan_collision(other, tan):
    """Separating axis test; returns (normal, penetration) pushing *tan* out of *other*"""
    result_normal = None
    result_penetration = None
    for normal in other.normals:
        penetration = vm.compute_polygon_penetration(other.points, tan.points, normal)
        if result_penetration is None or penetration < result_penetration:
            result_normal = normal
            result_penetration = penetration
    for normal in tan.normals:
        penetration = vm.compute_polygon_penetration(tan.points, other.points, normal)
        if result_penetration is None or penetration < result_penetration:
            result_normal = vm.negate(normal)
            result_penetration = penetration
    return result_normal, result_penetration


class Tangram:
    """The live set of tans cut from one dissection."""

    def __init__(self, dissection, config=None):
        self.dissection = dissection
        self.config = config or TangramConfig()
        self.tans = [Tan(dissection.vertices, polygon) for polygon in dissection.polygons]

    def __len__(self):
        return len(self.tans)

    def __iter__(self):
        return iter(self.tans)

    def other_tans(self, tan):
        """Yield (index, other) for every active tan except *tan*"""
        for i, other in enumerate(self.tans):
            if other.active and other is not tan:
                yield i, other

    def compute_collisions(self, tan):
        """Collisions against every other active tan, deepest first"""
        collisions = []
        for i, other in self.other_tans(tan):
            normal, penetration = compute_tan_collision(other, tan)
            collisions.append(Collision(i, normal, penetration))
        collisions.sort(key=lambda c: c.penetration, reverse=True)
        return collisions

    def has_collisions(self, tan, eps=None):
        if eps is None:
            eps = self.config.collision_eps
        collisions = self.compute_collisions(tan)
        return bool(collisions) and collisions[0].penetration > eps

    def place_tan(self, tan, position, rotation, max_penetration=None, max_iterations=None, eps=None):
        """Move *tan* to the requested pose, pushing it out of shallow overlaps.

        Each pass pushes the tan along the normal of its deepest collision by
        the penetration depth, accumulating onto the requested position.  The
        move is rejected and the previous pose restored when a pass finds an
        overlap deeper than *max_penetration* or the passes run out while the
        tan still collides.
        """
        cfg = self.config
        max_penetration = cfg.max_penetration if max_penetration is None else max_penetration
        max_iterations = cfg.max_iterations if max_iterations is None else max_iterations
        eps = cfg.collision_eps if eps is None else eps

        prev_position = tan.position
        prev_rotation = tan.rotation
        tan_position = (float(position[0]), float(position[1]))
        tan.transform(tan_position, rotation)
        for i in range(max_iterations + 1):
            collisions = self.compute_collisions(tan)
            if not collisions:
                break
            deepest = collisions[0]
            if deepest.penetration <= eps:
                break
            if deepest.penetration > max_penetration or i == max_iterations:
                logger.debug("Rejected tan placement at %s: penetration %.6f after %d passes",
                             tan_position, deepest.penetration, i)
                tan.transform(prev_position, prev_rotation)
                return False
            tan_position = vm.add(tan_position, vm.scale(deepest.normal, deepest.penetration))
            tan.transform(tan_position, rotation)
        return True

    def _snap_to(self, tan, point, snap_point):
        tan.translate(vm.sub(snap_point, point))

    def snap_tan_point(self, tan, max_distance_squared):
        """Snap the closest pair of corners within range"""
        best = None
        for _, other in self.other_tans(tan):
            for point in tan.points:
                for other_point in other.points:
                    d = vm.distance_squared(point, other_point)
                    if d < max_distance_squared and (best is None or d < best[0]):
                        best = (d, point, other_point)
        if best is None:
            return False
        self._snap_to(tan, best[1], best[2])
        return True

    def snap_tan_mid(self, tan, max_distance_squared):
        """Snap the closest corner/mid, mid/corner or mid/mid pair within range"""
        best = None
        pairings = (
            (lambda t: t.points, lambda t: t.mids),
            (lambda t: t.mids, lambda t: t.points),
            (lambda t: t.mids, lambda t: t.mids),
        )
        # pairings are searched in order, ties keep the earlier pairing
        for own_points, other_points in pairings:
            for _, other in self.other_tans(tan):
                for point in own_points(tan):
                    for other_point in other_points(other):
                        d = vm.distance_squared(point, other_point)
                        if d < max_distance_squared and (best is None or d < best[0]):
                            best = (d, point, other_point)
        if best is None:
            return False
        self._snap_to(tan, best[1], best[2])
        return True

    def snap_tan_edge(self, tan, max_distance, eps=None):
        """Slide a corner onto the closest edge within range.

        Both directions are searched: corners of *tan* against edges of the
        other tans, and corners of the other tans against edges of *tan*.
        The second case moves *tan* the opposite way along the edge normal.
        """
        eps = self.config.snap_eps if eps is None else eps
        best = None
        for _, other in self.other_tans(tan):
            for source, target, direction in ((tan, other, 1.0), (other, tan, -1.0)):
                for point in source.points:
                    for p1, p2, tangent, normal in target.edges():
                        signed = vm.signed_distance_to_edge(point, p1, normal)
                        d = abs(signed)
                        if d >= max_distance:
                            continue
                        along = vm.dot(point, tangent)
                        if not vm.dot(p1, tangent) - eps < along < vm.dot(p2, tangent) + eps:
                            continue
                        if best is None or d < best[0]:
                            snap_point = vm.add(point, vm.scale(normal, direction * signed))
                            best = (d, point, snap_point)
        if best is None:
            return False
        self._snap_to(tan, best[1], best[2])
        return True

    def snap_tan(self, tan, point_distance=None, mid_distance=None, edge_distance=None, eps=None):
        """Align *tan* with its neighbours, trying corners, then mids, then edges.

        Only the first phase that finds a pair is applied.  The snap is undone
        when it leaves the tan overlapping another one by more than 10 * eps.
        """
        cfg = self.config
        point_distance = cfg.point_snap_distance if point_distance is None else point_distance
        mid_distance = cfg.mid_snap_distance if mid_distance is None else mid_distance
        edge_distance = cfg.edge_snap_distance if edge_distance is None else edge_distance
        eps = cfg.snap_eps if eps is None else eps

        prev_position = tan.position
        prev_rotation = tan.rotation
        snapped = (self.snap_tan_point(tan, point_distance * point_distance)
                   or self.snap_tan_mid(tan, mid_distance * mid_distance)
                   or self.snap_tan_edge(tan, edge_distance, eps))
        if not snapped:
            return False
        collisions = self.compute_collisions(tan)
        if collisions and collisions[0].penetration > 10.0 * eps:
            logger.debug("Rolled back snap of tan at %s: penetration %.3g",
                         tan.position, collisions[0].penetration)
            tan.transform(prev_position, prev_rotation)
            return False
        return True

    def is_shape_full(self, eps=None):
        """Check that all tans are active and form one touching group.

        A single active tan counts as full even though it touches nothing;
        callers that want at least two connected tans must check
        ``len(tangram) > 1`` themselves. An empty tangram is never full.
        """
        eps = self.config.touch_eps if eps is None else eps
        if not self.tans:
            return False
        reached = {0}
        queue = deque([0])
        while queue:
            tan = self.tans[queue.popleft()]
            if not tan.active:
                return False
            for j, other in enumerate(self.tans):
                if j in reached or not other.active or other is tan:
                    continue
                if tan.touches(other, eps):
                    reached.add(j)
                    queue.append(j)
        return len(reached) == len(self.tans)

    def compute_aabb(self):
        """Axis-aligned bounding box of all tan points, or None without tans"""
        points = [p for tan in self.tans for p in tan.points]
        if not points:
            return None
        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        return AABB((min(xs), min(ys)), (max(xs), max(ys)))

    def translate(self, delta):
        for tan in self.tans:
            tan.translate(delta)

    def center(self):
        """Move all tans so the bounding box is centred on the origin"""
        aabb = self.compute_aabb()
        if aabb is None:
            return
        self.translate((-0.5 * (aabb.min[0] + aabb.max[0]), -0.5 * (aabb.min[1] + aabb.max[1])))

    def stage_tan(self, tan, scale=None, offset=(0.0, 0.0)):
        """Put *tan* back on its tray pose and mark it inactive"""
        scale = self.config.staging_scale if scale is None else scale
        tan.active = False
        tan.transform(vm.add(vm.scale(tan.origin, scale), offset), 0.0)

    def silhouette(self):
        """Union of all tan outlines"""
        return unary_union([tan.polygon for tan in self.tans])

    def matches(self, target, tolerance=1e-6):
        """Compare silhouettes with another tangram, ignoring translation"""
        own = _normalized(self.silhouette())
        other = _normalized(target.silhouette())
        return own.symmetric_difference(other).area <= tolerance

    def encode_snapshot(self, background_color, foreground_colors):
        """Encode the current poses and colors into URL-safe text"""
        # snapshot imports Dissection and create_shape from this module at
        # load time, so a top-level import here would be circular
        from snapshot import encode_tangram
        return encode_tangram(self, background_color, foreground_colors)


def _normalized(geometry):
    min_x, min_y, _, _ = geometry.bounds
    return affinity.translate(geometry, xoff=-min_x, yoff=-min_y)


def create_shape(dissection, transforms, config=None):
    """Build a tangram with every tan placed by the matching transform"""
    if len(transforms) != len(dissection.polygons):
        raise ValueError(f"Transform count ({len(transforms)}) does not match "
                         f"the number of polygons ({len(dissection.polygons)})")
    tangram = Tangram(dissection, config)
    for tan, (position, rotation) in zip(tangram.tans, transforms):
        tan.transform(position, rotation)
    return tangram
