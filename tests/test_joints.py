import numpy as np
import pytest
from physics_symbolic import Scene, RigidBody2D, Box, Circle, compile
from physics_symbolic.io.json_io import scene_to_json, load_scene, save_scene

REVOLUTE = """
    body a, b
    vector anchorA
    vector anchorB
    constraint (b.position + relative b.rotation anchorB) - (a.position + relative a.rotation anchorA)
"""

PRISMATIC = """
    body a, b
    vector axis = [1 0]
    constraint {
        ((b.position - a.position) dot [relative a.rotation axis])
        (b.rotation - a.rotation)
    }
"""

ROPE = """
    body a, b
    scalar length = 1
    limit constraint 0 length
    constraint |b.position - a.position|
"""


def joint(scene, source, a, b, beta=0.2, **vectors):
    c = compile(source)
    c.beta = beta
    c.set_body("a", a)
    c.set_body("b", b)
    for name, value in vectors.items():
        c.set_vector(name, value)
    return scene.add_constraint(c)


def test_revolute_joint():
    """Verify separate anchor points and constraint satisfaction."""
    scene = Scene(gravity=(0, 0), dt=0.01)

    # Body A: Static at 0,0
    a = RigidBody2D(Box((1, 1)), mass=0, position=(0, 0))
    # Body B: Dynamic, initially at (2,0)
    b = RigidBody2D(Box((1, 1)), mass=1, position=(2, 0))

    scene.add_body(a)
    scene.add_body(b)

    # Anchor A (1,0) is the right edge of A, anchor B (-1,0) the left edge of B,
    # so they start out coincident.
    joint(scene, REVOLUTE, a, b, beta=0.5, anchorA=(1.0, 0.0), anchorB=(-1.0, 0.0))

    # Pushing UP means it should circle around anchor A.
    b.velocity = np.array([0.0, 1.0], dtype=np.float64)

    scene.step()

    wa = a.local_to_world((1.0, 0.0))
    wb = b.local_to_world((-1.0, 0.0))

    dist = np.linalg.norm(wa - wb)
    assert dist < 0.002, f"Constraint violation: {dist}"
    # Verify it actually moved
    assert np.linalg.norm(b.position - np.array([2.0, 0.0])) > 1e-5
    assert b.angle > 0.0
    # static bodies are never pushed by constraints
    assert np.allclose(a.position, [0.0, 0.0])
    assert a.angle == 0.0


def test_prismatic_joint():
    """Verify sliding constraint (locked angle, locked perp pos)."""
    scene = Scene(gravity=(0, 0), dt=0.01)

    a = RigidBody2D(Box((1, 1)), mass=0, position=(0, 0))
    b = RigidBody2D(Box((1, 1)), mass=1, position=(2, 0))

    scene.add_body(a)
    scene.add_body(b)

    # Constrain B to slide along X axis of A
    c = joint(scene, PRISMATIC, a, b, beta=0.5)
    assert c.dim == 2

    # 1. Apply velocity in Y -> should be corrected/stopped
    b.velocity = np.array([0.0, 1.0], dtype=np.float64)
    scene.step()

    assert abs(b.position[1]) < 0.002, f"Prismatic joint failed to lock Y axis, pos={b.position[1]}"
    assert abs(b.velocity[1]) < 0.1, f"Prismatic joint failed to kill Y velocity, vel={b.velocity[1]}"

    # 2. Apply velocity in X -> should move in X
    b.velocity = np.array([1.0, 0.0], dtype=np.float64)
    scene.step()
    assert b.position[0] > 2.005, "Prismatic joint prevented valid X movement"

    # 3. Apply angular velocity -> should stop rotation
    b.omega = 10.0
    scene.step()
    assert abs(b.angle) < 0.1, f"Prismatic joint failed to lock rotation, angle={b.angle}"


def test_rope_holds_when_taut():
    scene = Scene()
    anchor = RigidBody2D(Circle(0.05), mass=0.0)
    bob = RigidBody2D(Circle(0.05), mass=1.0, position=(0.0, -1.001), velocity=(0.0, -3.0))
    scene.add_body(anchor)
    scene.add_body(bob)
    joint(scene, ROPE, anchor, bob)

    scene.step()

    assert np.linalg.norm(bob.position) < 1.005
    assert bob.velocity[1] > -0.5


def test_rope_is_slack_when_short():
    scene = Scene()
    anchor = RigidBody2D(Circle(0.05), mass=0.0)
    bob = RigidBody2D(Circle(0.05), mass=1.0, position=(0.0, -0.5))
    scene.add_body(anchor)
    scene.add_body(bob)
    rope = joint(scene, ROPE, anchor, bob)

    scene.step()

    # nothing but gravity acts on the bob
    assert rope.scale[0] == 0.0
    assert bob.velocity[1] == pytest.approx(-9.81 * scene.dt)
    assert bob.velocity[0] == 0.0


def test_constraints_json_io(tmp_path):
    """Verify JSON round-trip for bodies and constraints."""
    scene = Scene()
    b1 = RigidBody2D(Circle(1), mass=0, position=(0, 0))
    b2 = RigidBody2D(Box((0.5, 0.25)), mass=1, position=(2, 0), angle=0.5, inertia_override=0.3)
    scene.add_body(b1)
    scene.add_body(b2)

    rope = joint(scene, ROPE, b1, b2)
    rope.set_scalar("length", 2.0)
    joint(scene, REVOLUTE, b1, b2, beta=0.4, anchorA=(1.0, 0.0), anchorB=(-1.0, 0.0))
    joint(scene, PRISMATIC, b1, b2, axis=(0.0, 1.0))

    # Serialize
    data = scene_to_json(scene)
    assert len(data["constraints"]) == 3
    assert data["constraints"][0]["bodies"] == {"a": 0, "b": 1}
    assert data["constraints"][0]["scalars"] == {"length": 2.0}

    # Save/Load
    p = tmp_path / "test_scene.json"
    save_scene(scene, str(p))

    scene2 = load_scene(str(p))

    assert len(scene2.bodies) == 2
    assert len(scene2.constraints) == 3
    loaded = scene2.bodies[1]
    assert isinstance(loaded.shape, Box)
    assert loaded.shape.half_extents == (0.5, 0.25)
    assert loaded.angle == 0.5
    assert loaded.inertia == 0.3

    rope2, revolute2, prismatic2 = scene2.constraints
    assert rope2.get_scalar("length") == 2.0
    assert rope2.get_body("a") is scene2.bodies[0]
    assert rope2.get_body("b") is scene2.bodies[1]
    assert revolute2.beta == 0.4
    assert np.allclose(revolute2.get_vector("anchorA"), [1.0, 0.0])
    assert np.allclose(prismatic2.get_vector("axis"), [0.0, 1.0])
    assert prismatic2.program.source == PRISMATIC


def test_load_scene_rejects_bad_body_index(tmp_path):
    p = tmp_path / "bad.json"
    p.write_text(
        '{"bodies": [{"shape": {"type": "circle", "radius": 1}, "mass": 1}],'
        ' "constraints": [{"source": "body a constraint a.rotation", "bodies": {"a": 3}}]}'
    )
    with pytest.raises(ValueError):
        load_scene(str(p))


def test_scene_to_json_rejects_foreign_body():
    scene = Scene()
    inside = RigidBody2D(Circle(1), mass=1, position=(0, 0))
    outside = RigidBody2D(Circle(1), mass=1, position=(2, 0))
    scene.add_body(inside)
    joint(scene, ROPE, inside, outside)
    with pytest.raises(ValueError):
        scene_to_json(scene)
