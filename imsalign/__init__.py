"""
Landmark alignment and normalization for GC-IMS data
====================================================

Documentation is available via docstrings in classes and functions.

Provides:
---------
* Segmented retention time alignment of GC-IMS spectra
based on manually annotated landmark peaks.

* Probabilistic quotient normalization (PQN) of integrated peak tables.

* Spectrum and dataset containers with csv and hdf5 IO.
"""
__version__ = "0.1.0"
__author__ = "Competency Center for Chemometrics Mannheim"
__credits__ = "Competency Center for Chemometrics Mannheim"

from imsalign.gcims import Spectrum
from imsalign.dataset import Dataset
from imsalign.config import AlignmentConfig, PQNConfig, Config, load_config
from imsalign.alignment import align_spectrum, align_spectra
from imsalign.landmarks import read_landmarks, reference_landmarks
from imsalign.pqn import pqn, normalize_peak_table
from imsalign.errors import (
    AlignmentError,
    DegenerateSegment,
    MissingLandmark,
    InsufficientSamplesWarning,
    SingleSampleWarning,
)
