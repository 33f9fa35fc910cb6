from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
import scipy as sp

from surfacefem.config import DTYPE, INSTABILITY_THRESHOLD, SolverSettings
from surfacefem.fea.pre.equations import (
    AdvectionDiffusionParameters,
    Equation,
    HeatParameters,
    ReactionDiffusionParameters,
    WaveParameters,
)

if TYPE_CHECKING:
    import numpy.typing as npt

    from surfacefem.fea.analysis import BoundaryCondition, Model
    from surfacefem.fea.pre.equations import AnyParameters

logger = logging.getLogger(__name__)

KRYLOV_METHODS = {
    "cg": sp.sparse.linalg.cg,
    "bicgstab": sp.sparse.linalg.bicgstab,
}


class Solver:
    """
    Semi-implicit time integrator for the surface equations.

    Holds the dense state vectors ``u`` (and ``v`` for the two-field
    equations) in dof space. Each step gathers the surface field, solves one
    or two sparse systems and scatters the result back onto the surface.
    """

    def __init__(
        self,
        model: Model,
        settings: SolverSettings | None = None,
    ) -> None:
        """
        Initialize the solver with a model.

        Args:
            model: FEM context holding the surface, parameters and operators.
            settings: Linear solve settings; defaults are used when omitted.
        """
        self.model = model
        self.settings = settings if settings is not None else SolverSettings()

        self.u: npt.NDArray[np.float32] = np.zeros(0, dtype=DTYPE)
        self.v: npt.NDArray[np.float32] = np.zeros(0, dtype=DTYPE)

        self.step_count: int = 0

    @property
    def equation(self) -> Equation:
        return self.model.parameters.active_equation

    @property
    def parameters(self) -> AnyParameters:
        """Parameter record of the active equation (editable in place)."""
        return self.model.parameters.active

    @property
    def has_operators(self) -> bool:
        return self.model.assembled

    @property
    def neq(self) -> int:
        return self.model.number_of_equations

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def init(self) -> bool:
        """
        Index dofs, assemble all operators and zero the state.

        Returns:
            True if the solver has valid operators afterwards.
        """
        ok = self.model.init_from_surface()
        self.clear_values()
        return ok

    def clear_values(self) -> None:
        """Zero the state vectors at the current number of unknowns."""
        self.u = np.zeros(self.neq, dtype=DTYPE)
        self.v = np.zeros(self.neq, dtype=DTYPE)
        self.step_count = 0

    def switch_equation(self, equation: Equation) -> None:
        """
        Make another equation active.

        All operators are reassembled and the state is cleared, since ``u``
        and ``v`` mean different things per equation. The surface field is
        left as it is.
        """
        equation = Equation(equation)
        previous = self.equation
        self.model.parameters.active_equation = equation
        if self.model.assembled:
            self.model.assemble_matrices()
        elif self.model.surface is not None and self.model.surface.initialized:
            self.model.init_from_surface()
        self.clear_values()
        logger.info(f"Switched equation: {previous} -> {equation}")

    def set_boundary_condition(self, boundary_condition: BoundaryCondition) -> None:
        self.model.update_boundary_conditions(boundary_condition)
        self.clear_values()
        logger.info(f"Boundary condition set to {self.model.boundary_condition}.")

    def update_advection_velocity(self, velocity: npt.ArrayLike | None = None) -> None:
        """
        Rebuild the advection operator, optionally assigning a new velocity first.
        """
        if velocity is not None:
            self.model.parameters.advection.set_velocity(velocity)
        self.model.update_advection_velocity()

    # ------------------------------------------------------------------
    # Time stepping
    # ------------------------------------------------------------------
    def _solve(
        self,
        A: sp.sparse.csr_matrix,
        b: npt.NDArray[np.float32],
        x0: npt.NDArray[np.float32],
        method: str = "cg",
    ) -> npt.NDArray[np.float32]:
        """
        Solve ``A x = b`` with a bounded Krylov iteration, warm started at ``x0``.

        Non-convergence is logged and the last iterate is returned.
        """
        krylov = KRYLOV_METHODS[method]
        x, info = krylov(
            A,
            b,
            x0=x0,
            rtol=self.settings.rtol,
            atol=self.settings.atol,
            maxiter=self.settings.iteration_cap(A.shape[0]),
        )
        if info > 0:
            logger.debug(f"{method} did not converge within {info} iterations.")
        elif info < 0:
            logger.debug(f"{method} broke down (info={info}).")
        return np.asarray(x, dtype=DTYPE)

    def advance_time(self) -> bool:
        """
        Advance the active equation by one time step.

        Returns:
            True if a step was taken, False if there are no valid operators.
        """
        surface = self.model.surface
        if not self.has_operators or surface is None:
            return False

        dof_map = self.model.dof_map
        if self.neq == 0:
            dof_map.scatter(np.zeros(0, dtype=DTYPE), out=surface.field)
            self.step_count += 1
            return True

        assert self.u.shape[0] == self.neq and self.v.shape[0] == self.neq, \
            "state vectors are stale; call init() or clear_values()"

        K = self.model.stiffness
        M = self.model.mass

        match self.parameters:
            case HeatParameters(time_step=dt, conductivity=k):
                M_dt = M * (1.0 / float(dt))
                self.u = dof_map.gather(surface.field)
                A = M_dt + float(k) * K
                b = M_dt @ self.u
                self.u = self._solve(A, b, x0=self.u)
                dof_map.scatter(self.u, out=surface.field)

            case AdvectionDiffusionParameters(time_step=dt, diffusivity=c):
                if self.model.advection_is_stale:
                    self.model.update_advection_velocity()
                M_dt = M * (1.0 / float(dt))
                self.u = dof_map.gather(surface.field)
                A = M_dt + float(c) * K - self.model.advection
                b = M_dt @ self.u
                self.u = self._solve(A, b, x0=self.u, method=self.settings.advection_method)
                dof_map.scatter(self.u, out=surface.field)

            case WaveParameters(time_step=dt, wave_speed=c):
                dt = float(dt)
                c2 = float(c) * float(c)
                M_dt = M * (1.0 / dt)
                self.u = dof_map.gather(surface.field)
                A_v = M_dt + (c2 * dt) * K
                b_v = M_dt @ self.v - c2 * (K @ self.u)
                self.v = self._solve(A_v, b_v, x0=self.v)
                self.u = (self.u + dt * self.v).astype(DTYPE)
                dof_map.scatter(self.u, out=surface.field)

            case ReactionDiffusionParameters(time_step=dt, Du=Du, Dv=Dv, feed_rate=f, kill_rate=k):
                f = float(f)
                k = float(k)
                M_dt = M * (1.0 / float(dt))
                self.v = dof_map.gather(surface.field)
                u, v = self.u, self.v
                uvv = u * v * v

                A_u = M_dt + float(Du) * K
                b_u = M_dt @ u - uvv + f * (1.0 - u)
                A_v = M_dt + float(Dv) * K
                b_v = M_dt @ v + uvv - (f + k) * v

                self.u = self._solve(A_u, b_u.astype(DTYPE), x0=u)
                self.v = self._solve(A_v, b_v.astype(DTYPE), x0=v)
                dof_map.scatter(self.v, out=surface.field)

            case _:
                raise TypeError(f"Unsupported parameter record: {type(self.parameters).__name__}")

        self.step_count += 1
        return True

    def _active_vectors(self) -> tuple[npt.NDArray[np.float32], ...]:
        if self.equation in (Equation.WAVE, Equation.REACTION_DIFFUSION):
            return self.u, self.v
        return (self.u,)

    def has_numerical_instability(self) -> bool:
        """True if any active state component is non-finite or exceeds the threshold in magnitude."""
        for x in self._active_vectors():
            if x.size and (not np.all(np.isfinite(x)) or np.max(np.abs(x)) > INSTABILITY_THRESHOLD):
                return True
        return False

    def run(self, n_steps: int) -> int:
        """
        Take up to ``n_steps`` steps, stopping at the first unstable state.

        Returns:
            Number of steps taken.
        """
        taken = 0
        for _ in range(n_steps):
            if not self.advance_time():
                break
            taken += 1
            if self.has_numerical_instability():
                logger.warning(f"Numerical instability after {self.step_count} steps of {self.equation}.")
                break
        return taken
