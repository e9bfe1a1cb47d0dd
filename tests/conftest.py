import numpy as np
import pandas as pd
import pytest

from imsalign import Spectrum
from imsalign.config import AlignmentConfig


DRIFT_TIME = np.linspace(5.0, 12.0, 4)


def make_spectrum(name, start=0.0, stop=700.0, step=0.5):
    """Intensities rise linearly with retention time, with a different slope per drift time."""
    ret_time = np.arange(start, stop + step / 2, step)
    values = ret_time[:, np.newaxis] * np.arange(1, len(DRIFT_TIME) + 1)
    return Spectrum(name, values, ret_time, DRIFT_TIME)


def landmark_rows(sample, times, drift=7.5):
    return [
        {"SampleID": sample, "Peak": label, "RetentionTime_s": t, "DriftTime_ms": drift}
        for label, t in times.items()
    ]


@pytest.fixture
def config():
    return AlignmentConfig(["1", "2"], step=0.1)


@pytest.fixture
def spectra():
    return [make_spectrum(i) for i in ("A", "B", "C")]


@pytest.fixture
def landmarks():
    rows = (
        landmark_rows("A", {"1": 71.0, "2": 602.0}, drift=7.4)
        + landmark_rows("B", {"1": 69.0, "2": 598.0}, drift=7.6)
        + landmark_rows("C", {"1": 70.0, "2": 600.0}, drift=7.5)
    )
    return pd.DataFrame(rows)
