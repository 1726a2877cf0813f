"""
Microbenchmark: compile time and time per step vs chain length.
Run:
  python benchmarks/bench_steps.py
"""
import time
from physics_symbolic import Scene, RigidBody2D, Circle, CompiledProgram, compile_program
from physics_symbolic.constraint import SymbolicConstraint

LINK = """
    body a, b
    scalar length = 0.5
    constraint |b.position - a.position| - length
"""


def run(n: int, steps: int = 300):
    t0 = time.perf_counter()
    program: CompiledProgram = compile_program(LINK)
    compile_time = time.perf_counter() - t0

    scene = Scene(gravity=(0.0, -9.81), dt=1/240, substeps=2, solver_iters=15)

    # a horizontal chain hanging from a static anchor
    prev = RigidBody2D(Circle(0.05), mass=0.0, position=(0.0, 0.0))
    scene.add_body(prev)
    for i in range(n):
        body = RigidBody2D(Circle(0.05), mass=1.0, position=(0.5 * (i + 1), 0.0))
        scene.add_body(body)
        # every link shares the compiled program
        link = SymbolicConstraint(program)
        link.set_body("a", prev)
        link.set_body("b", body)
        scene.add_constraint(link)
        prev = body

    # warmup
    for _ in range(30):
        scene.step()

    t0 = time.perf_counter()
    for _ in range(steps):
        scene.step()
    t1 = time.perf_counter()

    return compile_time, (t1 - t0) / steps


if __name__ == "__main__":
    for n in [1, 5, 10, 25, 50]:
        compile_time, per_step = run(n)
        print(f"N={n:4d}  compile={1e3*compile_time:8.3f} ms  step={1e3*per_step:8.3f} ms  steps/s={1/per_step:8.1f}")
