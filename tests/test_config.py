from pathlib import Path

import pytest

from tofdigi.config.load import load_config
from tofdigi.config.schemas import DigiCfg
from tofdigi.errors import ConfigurationError

EXAMPLE = Path(__file__).resolve().parents[1] / "configs" / "example.toml"


def test_defaults_match_reference_barrel():
    cfg = DigiCfg()
    assert (cfg.adc_bit, cfg.tdc_bit) == (8, 10)
    assert (cfg.t_min, cfg.t_max, cfg.n_bins) == (0.1, 100.0, 10000)
    assert cfg.time_period == 25.0
    assert cfg.step_tdc == pytest.approx(25.0 / 1024)
    assert cfg.pulse.gain == 80.0
    assert cfg.tdc_overflow == "clip"


def test_explicit_tdc_resolution_wins():
    assert DigiCfg(tdc_resolution=0.02).step_tdc == 0.02


@pytest.mark.parametrize("kw", [
    {"adc_bit": 0}, {"tdc_bit": -2}, {"adc_bit": 40},
    {"t_min": 5.0, "t_max": 5.0}, {"dy_range_adc": -1.0},
    {"time_period": 0.0}, {"n_bins": 1}, {"sum_fields": ()},
    {"sum_fields": ("system", "system")}, {"tdc_resolution": 0.0},
    {"tdc_overflow": "modulo"},
])
def test_invalid_digi_settings(kw):
    with pytest.raises(ValueError):
        DigiCfg(**kw)


def test_digi_cfg_is_immutable():
    cfg = DigiCfg()
    with pytest.raises((ValueError, TypeError)):
        cfg.adc_bit = 4


@pytest.mark.skipif(not EXAMPLE.exists(), reason="example config missing")
def test_load_example_config():
    cfg = load_config(EXAMPLE)
    assert cfg.run.seed == 12345
    assert cfg.topology.n_phi == 64
    assert cfg.digi.cross_talk is True
    assert cfg.digi.sum_fields == ("system", "module", "sensor", "x")


def test_bad_toml_is_a_configuration_error(tmp_path: Path):
    p = tmp_path / "bad.toml"
    p.write_text('[io]\ninput_path = "a"\noutput_path = "b"\n[digi]\nadc_bit = 0\n')
    with pytest.raises(ConfigurationError):
        load_config(p)
    p.write_text("[io\n")
    with pytest.raises(ConfigurationError):
        load_config(p)
