from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Literal, Optional, Tuple

class RunCfg(BaseModel):
    """
    Global run controls.

    TOML:

    [run]
    seed = 12345
    diagnostics_level = 1
    """

    # None -> fresh OS entropy (not reproducible)
    seed: Optional[int] = None

    # Diagnostics
    diagnostics_level: int = 1  # 0=off, 1=minimal, 2=verbose

    # Limits
    max_events: Optional[int] = None

    @field_validator("diagnostics_level")
    def _diag_range(cls, v: int) -> int:
        if v not in (0, 1, 2):
            raise ValueError("diagnostics_level must be 0, 1, or 2")
        return v

class IOCfg(BaseModel):
    """
    I/O paths.

    TOML:

    [io]
    input_path   = "simhits.h5"
    input_format = "hdf5"          # "hdf5" | "csv"
    output_path  = "rawhits.h5"
    """

    input_path: str
    input_format: Literal["hdf5", "csv"] = "hdf5"
    output_path: str

class TopologyCfg(BaseModel):
    """
    Barrel readout geometry (fed to tofdigi.geometry.topology.BarrelTopology).

    TOML:

    [topology]
    descriptor = "system:8,module:8,sensor:4,x:4,y:8"
    n_phi = 64
    sub_bins = 4
    bar_length = 3.2
    granularity = 4
    """
    model_config = ConfigDict(frozen=True)

    descriptor: str = "system:8,module:8,sensor:4,x:4,y:8"
    system_id: int = 1
    system_field: str = "system"
    phi_field: str = "module"
    sensor_field: str = "sensor"
    strip_field: str = "x"
    n_phi: int = Field(64, gt=0)
    sub_bins: int = Field(4, gt=0)
    bar_length: float = Field(3.2, gt=0)
    granularity: int = Field(4, gt=0)
    radius_cm: float = Field(64.0, gt=0)

class PulseCfg(BaseModel):
    """AC-LGAD pulse shape parameters (times in ns)."""
    model_config = ConfigDict(frozen=True)

    gain: float = Field(80.0, ge=0)
    rise_time: float = 0.45
    sigma_analog: float = Field(0.293951, gt=0)
    norm: float = Field(113.766, gt=0)

class DigiCfg(BaseModel):
    """
    Digitization settings. Immutable once built.

    Energies in GeV, times in ns; ADC dynamic range, threshold and pedestal
    are in pulse amplitude units.
    """
    model_config = ConfigDict(frozen=True)

    # energy / time resolution
    a: float = 0.0
    b: float = 0.0
    c: float = 0.0
    resolution_mode: Literal["abc", "ab"] = "abc"
    t_res: float = Field(0.1, ge=0)

    # ADC
    dy_range_adc: float = 1.0
    pedestal_mean: float = 0.0
    pedestal_sigma: float = Field(0.0, ge=0)
    adc_bit: int = 8
    threshold: float = Field(0.01, ge=0)

    # TDC
    tdc_bit: int = 10
    tdc_resolution: Optional[float] = None  # None -> time_period / 2**tdc_bit
    time_period: float = 25.0
    tdc_overflow: Literal["clip", "wrap"] = "clip"
    cfd_fraction: float = Field(0.5, gt=0, le=1)

    # pulse grid / accepted time window
    t_min: float = 0.1
    t_max: float = 100.0
    n_bins: int = 10000

    # channel merging
    sum_fields: Tuple[str, ...] = ("system", "module", "sensor", "x")
    cross_talk: bool = False
    cross_talk_fraction: float = Field(0.1, ge=0, le=1)

    pulse: PulseCfg = Field(default_factory=PulseCfg)

    @field_validator("adc_bit", "tdc_bit")
    def _bits(cls, v: int) -> int:
        if v <= 0 or v > 32:
            raise ValueError(f"bit width must be in 1..32, got {v}")
        return v

    @field_validator("dy_range_adc", "time_period")
    def _positive(cls, v: float) -> float:
        if not v > 0:
            raise ValueError(f"must be positive, got {v}")
        return v

    @field_validator("tdc_resolution")
    def _tdc_res(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not v > 0:
            raise ValueError(f"tdc_resolution must be positive, got {v}")
        return v

    @field_validator("n_bins")
    def _bins(cls, v: int) -> int:
        if v < 2:
            raise ValueError("n_bins must be at least 2")
        return v

    @field_validator("sum_fields")
    def _sum_fields(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if not v:
            raise ValueError("sum_fields must name at least one cell id field")
        if len(set(v)) != len(v):
            raise ValueError(f"duplicate entries in sum_fields: {v}")
        return v

    @model_validator(mode="after")
    def _window(self) -> "DigiCfg":
        if not self.t_max > self.t_min:
            raise ValueError(f"time window must satisfy t_min < t_max, got [{self.t_min}, {self.t_max}]")
        return self

    @property
    def step_tdc(self) -> float:
        if self.tdc_resolution is not None:
            return self.tdc_resolution
        return self.time_period / 2 ** self.tdc_bit

class VisCfg(BaseModel):
    export_png_on_write: bool = False


class Config(BaseModel):
    """
    Top-level TOML configuration.
    """

    run: RunCfg = Field(default_factory=RunCfg)
    io: IOCfg
    topology: TopologyCfg = Field(default_factory=TopologyCfg)
    digi: DigiCfg = Field(default_factory=DigiCfg)
    vis: VisCfg = Field(default_factory=VisCfg)
