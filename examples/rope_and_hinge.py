# examples/rope_and_hinge.py
# A box hinged to a static anchor with a ball hanging below it on a rope.
from physics_symbolic import Scene, RigidBody2D, Box, Circle, compile
from physics_symbolic.io import save_debug

scene = Scene(gravity=(0.0, -9.81), dt=1/240)

ground = RigidBody2D(Box((0.1, 0.1)), mass=0.0, position=(0.0, 0.0))
plank = RigidBody2D(Box((0.5, 0.05)), mass=2.0, position=(0.5, 0.0))
ball = RigidBody2D(Circle(0.1), mass=0.5, position=(1.0, -0.8))
for b in (ground, plank, ball):
    scene.add_body(b)

hinge = compile("""
    body a, b
    vector anchorA
    vector anchorB = [-0.5 0]
    constraint (b.position + relative b.rotation anchorB) - (a.position + relative a.rotation anchorA)
""")
hinge.set_body("a", ground)
hinge.set_body("b", plank)
scene.add_constraint(hinge)

rope = compile("""
    body a, b
    vector tip = [0.5 0]
    scalar length = 1
    limit constraint 0 length
    constraint |b.position - (a.position + relative a.rotation tip)|
""")
rope.set_body("a", plank)
rope.set_body("b", ball)
scene.add_constraint(rope)

save_debug(rope, "rope_debug.json")

t_end = 2.0
while scene.time < t_end:
    scene.step()

print("t:", scene.time)
print("plank angle:", plank.angle)
print("ball pos:", ball.position)
