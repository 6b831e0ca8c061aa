# %%
import numpy as np
from numpy.typing import NDArray
from scipy.integrate import DOP853, RK45, RK23, Radau, BDF, LSODA

from mdnad.ring_polymer import spring_force
from mdnad.errors import ConfigurationError, IntegrationError

from typing import Optional

SOLVERS = {
    "DOP853": DOP853,
    "RK45": RK45,
    "RK23": RK23,
    "Radau": Radau,
    "BDF": BDF,
    "LSODA": LSODA,
}

class Adaptive:
    """Adaptive step integration of the full equations of motion with the solvers of
    scipy.integrate.

    The state is flattened with `DynamicsVariables.to_vector`; the right hand side is
    assembled from the method's acceleration and electronic derivative. The solver is
    rebuilt whenever the stop time changes or a callback has modified the state.
    """

    def __init__(
        self,
        method: str = "DOP853",
        rtol: float = 1e-8,
        atol: float = 1e-10,
        min_step: float = 1e-12,
        max_step: float = np.inf,
    ):
        if method not in SOLVERS:
            raise ConfigurationError(f"Unrecognised solver: {method}. Use one of {', '.join(SOLVERS)}")
        self.method = method
        self.rtol = rtol
        self.atol = atol
        self.min_step = min_step
        self.max_step = max_step
        self.solver = None
        self.t_bound: Optional[float] = None

    def initialise(self, integrator) -> None:
        self.solver = None

    def rhs(self, sim, u):
        method = sim.method
        w = u.copy()

        def fun(t: float, y: NDArray[np.float64]) -> NDArray[np.float64]:
            w.from_vector(y)
            sim.calculator.update_electronics(w.r)
            dw = w.copy()
            a = method.acceleration(sim, w, t)
            if sim.is_ring_polymer:
                a = a + spring_force(w.r, sim.atoms.masses, sim.omega_n(t), sim.quantum) / sim.masses * sim.mobile
            dw.v = a
            dw.r = w.v * sim.mobile
            for name, value in method.electronic_derivative(sim, w).items():
                setattr(dw, name, value)
            return dw.to_vector()

        return fun

    def step(self, integrator, t_stop: float) -> None:
        sim, u = integrator.sim, integrator.u
        if self.solver is None or self.t_bound != t_stop:
            self.t_bound = t_stop
            self.solver = SOLVERS[self.method](
                self.rhs(sim, u), integrator.t, u.to_vector(), t_stop,
                rtol=self.rtol, atol=self.atol, max_step=self.max_step,
            )
        t_prev = self.solver.t
        message = self.solver.step()
        if self.solver.status == "failed":
            raise IntegrationError(f"{self.method} failed at t = {t_prev}: {message}")
        h = self.solver.t - t_prev
        if self.solver.t < t_stop and h < self.min_step:
            raise IntegrationError(f"{self.method} step size {h:.3e} fell below {self.min_step:.1e} at t = {t_prev}")

        u.from_vector(self.solver.y)
        integrator.t = self.solver.t
        integrator.last_step = h
        sim.calculator.update_electronics(u.r)
