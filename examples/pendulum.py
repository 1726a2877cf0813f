from physics_symbolic import Scene, RigidBody2D, Circle, compile
import numpy as np

scene = Scene(dt=1/240, substeps=4, solver_iters=40)

anchor = RigidBody2D(Circle(0.05), mass=0.0, position=(0.0, 0.0))
bob = RigidBody2D(Circle(0.05), mass=1.0, position=(0.2, -1.0))
scene.add_body(anchor); scene.add_body(bob)

L = 1.0
rod = compile("""
    body a, b
    scalar length = 1
    constraint |b.position - a.position| - length
""")
rod.beta = 0.25
rod.set_scalar("length", L)
rod.set_body("a", anchor)
rod.set_body("b", bob)
scene.add_constraint(rod)

print(rod.debug())

for _ in range(240):
    scene.step()

print("bob position:", bob.position, "distance:", float(np.linalg.norm(bob.position - anchor.position)))
