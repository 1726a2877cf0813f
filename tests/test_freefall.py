import numpy as np
from physics_symbolic import Scene, RigidBody2D, Circle


def test_freefall_accuracy():
    """
    Analytic (constant g):
      y(t) = y0 + v0 t + 1/2 g t^2
      v(t) = v0 + g t
    """
    g = -9.81
    y0 = 10.0
    v0 = 0.0
    T = 1.0

    scene = Scene(gravity=(0, g), dt=1/240, substeps=2, solver_iters=10)
    b = RigidBody2D(Circle(0.1), mass=1.0, position=(0.0, y0), velocity=(0.0, v0))
    scene.add_body(b)

    while scene.time < T - 1e-12:
        scene.step(min(scene.dt, T - scene.time))

    y_exp = y0 + v0*T + 0.5*g*T*T
    v_exp = v0 + g*T

    y_err = abs(b.position[1] - y_exp) / max(1e-9, abs(y_exp))
    v_err = abs(b.velocity[1] - v_exp) / max(1e-9, abs(v_exp))
    print("freefall y", b.position[1], "exp", y_exp, "relerr", y_err)
    print("freefall v", b.velocity[1], "exp", v_exp, "relerr", v_err)

    assert y_err <= 0.01
    assert v_err <= 0.01


def test_static_body_ignores_gravity():
    scene = Scene()
    wall = RigidBody2D(Circle(1.0), mass=0.0, position=(2.0, 3.0))
    scene.add_body(wall)
    for _ in range(10):
        scene.step()
    assert np.allclose(wall.position, [2.0, 3.0])
    assert np.allclose(wall.velocity, [0.0, 0.0])


def test_forces_are_cleared_after_step():
    scene = Scene(gravity=(0.0, 0.0))
    b = RigidBody2D(Circle(0.1), mass=2.0)
    scene.add_body(b)
    b.force[:] = (4.0, 0.0)
    scene.step()
    assert b.velocity[0] > 0.0
    assert np.allclose(b.force, [0.0, 0.0])
    vx = b.velocity[0]
    scene.step()
    assert b.velocity[0] == vx
