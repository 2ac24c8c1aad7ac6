# renderer/cuda_geometry.py

from numba import cuda, float32
from .cuda_utils import EPSILON, INFINITY, dot, normalize_inplace, multiply_mv
import math

# Must match geometry/primitives.py
GEOM_SPHERE = 0
GEOM_BOX = 1

@cuda.jit(device=True)
def _object_space_ray(ray_origin, ray_dir, inverse, q_origin, q_dir):
    multiply_mv(inverse, ray_origin, 1.0, q_origin)
    multiply_mv(inverse, ray_dir, 0.0, q_dir)
    normalize_inplace(q_dir)

@cuda.jit(device=True)
def _finish_hit(ray_origin, ray_dir, transform, inv_transpose, q_origin, q_dir, t_obj,
                obj_normal, outside, out_normal):
    """
    Map an object-space hit back to world space.

    Writes the world normal (flipped to face the incoming ray when the ray
    started inside the shape) and returns the world-space distance.
    """
    obj_point = cuda.local.array(3, dtype=float32)
    world_point = cuda.local.array(3, dtype=float32)
    for i in range(3):
        obj_point[i] = q_origin[i] + t_obj * q_dir[i]
    multiply_mv(transform, obj_point, 1.0, world_point)
    multiply_mv(inv_transpose, obj_normal, 0.0, out_normal)
    normalize_inplace(out_normal)
    if not outside:
        for i in range(3):
            out_normal[i] = -out_normal[i]

    dist_sq = 0.0
    for i in range(3):
        d = world_point[i] - ray_origin[i]
        dist_sq += d * d
    return math.sqrt(dist_sq)

@cuda.jit(device=True)
def sphere_intersection_test(ray_origin, ray_dir, transform, inverse, inv_transpose,
                             out_normal, out_front_face):
    """
    Ray vs. transformed sphere of object-space radius 0.5.

    Returns the world-space hit distance or -1.0 on a miss.
    """
    q_origin = cuda.local.array(3, dtype=float32)
    q_dir = cuda.local.array(3, dtype=float32)
    _object_space_ray(ray_origin, ray_dir, inverse, q_origin, q_dir)

    v_dot_dir = dot(q_origin, q_dir)
    radicand = v_dot_dir * v_dot_dir - (dot(q_origin, q_origin) - 0.25)
    if radicand < 0.0:
        return -1.0

    root = math.sqrt(radicand)
    t1 = -v_dot_dir + root
    t2 = -v_dot_dir - root
    if t1 <= 0.0 and t2 <= 0.0:
        return -1.0

    outside = True
    if t1 > 0.0 and t2 > 0.0:
        t_obj = min(t1, t2)
    else:
        t_obj = max(t1, t2)
        outside = False

    obj_normal = cuda.local.array(3, dtype=float32)
    for i in range(3):
        obj_normal[i] = q_origin[i] + t_obj * q_dir[i]

    out_front_face[0] = 1 if outside else 0
    return _finish_hit(ray_origin, ray_dir, transform, inv_transpose, q_origin, q_dir,
                       t_obj, obj_normal, outside, out_normal)

@cuda.jit(device=True)
def box_intersection_test(ray_origin, ray_dir, transform, inverse, inv_transpose,
                          out_normal, out_front_face):
    """
    Ray vs. transformed box spanning [-0.5, 0.5]^3 in object space (slab test).

    Returns the world-space hit distance or -1.0 on a miss.
    """
    q_origin = cuda.local.array(3, dtype=float32)
    q_dir = cuda.local.array(3, dtype=float32)
    _object_space_ray(ray_origin, ray_dir, inverse, q_origin, q_dir)

    t_near = -INFINITY
    t_far = INFINITY
    near_axis = -1
    near_sign = 0.0
    far_axis = -1
    far_sign = 0.0

    for axis in range(3):
        d = q_dir[axis]
        if abs(d) > EPSILON:
            t1 = (-0.5 - q_origin[axis]) / d
            t2 = (0.5 - q_origin[axis]) / d
            ta = min(t1, t2)
            tb = max(t1, t2)
            sign = 1.0 if t2 < t1 else -1.0
            if ta > 0.0 and ta > t_near:
                t_near = ta
                near_axis = axis
                near_sign = sign
            if tb < t_far:
                t_far = tb
                far_axis = axis
                far_sign = -sign
        elif q_origin[axis] < -0.5 or q_origin[axis] > 0.5:
            # Parallel to this slab and outside it
            return -1.0

    if t_far < t_near or t_far <= 0.0 or far_axis < 0:
        return -1.0

    outside = True
    if near_axis < 0:
        # Origin is inside the box; the exit face is the hit
        t_near = t_far
        near_axis = far_axis
        near_sign = far_sign
        outside = False

    obj_normal = cuda.local.array(3, dtype=float32)
    for i in range(3):
        obj_normal[i] = 0.0
    obj_normal[near_axis] = near_sign

    out_front_face[0] = 1 if outside else 0
    return _finish_hit(ray_origin, ray_dir, transform, inv_transpose, q_origin, q_dir,
                       t_near, obj_normal, outside, out_normal)

@cuda.jit(device=True)
def intersect_primitive(geom_type, ray_origin, ray_dir, transform, inverse, inv_transpose,
                        out_normal, out_front_face):
    """Dispatch on the primitive type tag. Unknown tags never hit."""
    if geom_type == GEOM_SPHERE:
        return sphere_intersection_test(ray_origin, ray_dir, transform, inverse, inv_transpose,
                                        out_normal, out_front_face)
    elif geom_type == GEOM_BOX:
        return box_intersection_test(ray_origin, ray_dir, transform, inverse, inv_transpose,
                                     out_normal, out_front_face)
    return -1.0
