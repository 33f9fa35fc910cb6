import numpy as np
import pytest

from surfacefem.fea.pre.equations import (
    AdvectionDiffusionParameters,
    Equation,
    EquationParameters,
    HeatParameters,
    ParameterStore,
    ReactionDiffusionParameters,
    WaveParameters,
)


def test_defaults():
    store = ParameterStore()

    assert store.active_equation == Equation.WAVE
    assert store[Equation.HEAT].time_step == pytest.approx(0.01)
    assert store[Equation.HEAT].conductivity == pytest.approx(0.05)
    assert store[Equation.WAVE].wave_speed == pytest.approx(0.05)
    assert store[Equation.ADVECTION_DIFFUSION].diffusivity == pytest.approx(0.25)
    np.testing.assert_array_equal(store[Equation.ADVECTION_DIFFUSION].velocity, [1.0, 0.0, 0.0])
    rd = store[Equation.REACTION_DIFFUSION]
    assert (rd.Du, rd.Dv, rd.feed_rate, rd.kill_rate) == pytest.approx((0.08, 0.04, 0.035, 0.06))


def test_each_record_carries_its_tag():
    assert HeatParameters().equation == Equation.HEAT
    assert WaveParameters().equation == Equation.WAVE
    assert AdvectionDiffusionParameters().equation == Equation.ADVECTION_DIFFUSION
    assert ReactionDiffusionParameters().equation == Equation.REACTION_DIFFUSION


def test_set_clips_into_safe_range():
    params = HeatParameters()
    assert params.set("time_step", 50.0) == pytest.approx(1.0)
    assert params.set("conductivity", -1.0) == 0.0
    assert params.time_step == pytest.approx(1.0)


def test_set_unknown_parameter():
    with pytest.raises(KeyError):
        WaveParameters().set("conductivity", 1.0)


def test_velocity_components_are_clipped():
    params = AdvectionDiffusionParameters()
    params.set_velocity([100.0, -3.0, 0.0])
    np.testing.assert_array_equal(params.velocity, [10.0, -3.0, 0.0])


def test_store_round_trip():
    store = ParameterStore(active=Equation.REACTION_DIFFUSION)
    store[Equation.REACTION_DIFFUSION].set("feed_rate", 0.055)
    store.advection.set_velocity([0.0, 0.0, 2.0])

    restored = ParameterStore.from_dict(store.to_dict())

    assert restored.active_equation == Equation.REACTION_DIFFUSION
    assert restored.active.feed_rate == pytest.approx(0.055)
    np.testing.assert_allclose(restored.advection.velocity, [0.0, 0.0, 2.0])


def test_from_dict_clamps_and_fills_defaults():
    record = EquationParameters.from_dict({"equation": "heat", "conductivity": 99.0})
    assert isinstance(record, HeatParameters)
    assert record.conductivity == pytest.approx(10.0)
    assert record.time_step == pytest.approx(0.01)


def test_from_dict_rejects_unknown_equation():
    with pytest.raises(ValueError):
        EquationParameters.from_dict({"equation": "schrodinger"})


def test_reset_single_equation():
    store = ParameterStore()
    store[Equation.HEAT].set("conductivity", 1.0)
    store[Equation.WAVE].set("wave_speed", 1.0)

    store.reset(Equation.HEAT)

    assert store[Equation.HEAT].conductivity == pytest.approx(0.05)
    assert store[Equation.WAVE].wave_speed == pytest.approx(1.0)
