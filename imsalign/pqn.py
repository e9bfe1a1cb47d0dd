"""
Probabilistic quotient normalization (PQN) of peak tables.

References
----------
Dieterle, F., Ross, A., Schlotterbeck, G., and Senn, H. (2006)
Probabilistic Quotient Normalization as Robust Method to Account for
Dilution of Complex Biological Mixtures. Application in 1H NMR Metabonomics.
Anal. Chem., 78: 4281-4290. doi: 10.1021/ac051632c
"""
import logging
import warnings
from collections import namedtuple

import numpy as np
import pandas as pd

from imsalign.config import PQNConfig
from imsalign.errors import InsufficientSamplesWarning, SingleSampleWarning


logger = logging.getLogger(__name__)

PQNResult = namedtuple(
    "PQNResult",
    ["normalized", "norm_factor", "area_factor", "dilution_factor", "warnings"],
)


def _as_matrix(X):
    X = np.asarray(X, dtype=float)
    if X.ndim == 1:
        X = X.reshape(1, -1)
    if X.ndim != 2 or X.size == 0:
        raise ValueError(f"Expected a non-empty 2D matrix, got shape {X.shape}.")
    if np.isnan(X).any():
        raise ValueError("Peak table contains missing values, impute them first.")
    if (X < 0).any():
        raise ValueError("Peak table contains negative intensities.")
    return X


def _shift_to_zero(X):
    """Moves the whole matrix up so its minimum is zero if any value is <= 0."""
    if (X <= 0).any():
        X = X - X.min()
    return X


def area_factors(X):
    """
    Total intensity of every sample relative to the median total intensity.

    Parameters
    ----------
    X : array-like of shape (n_samples, n_peaks)

    Returns
    -------
    numpy.ndarray of shape (n_samples,)

    Raises
    ------
    ValueError
        If the median total intensity is zero.
    """
    area = np.sum(np.asarray(X, dtype=float), axis=1)
    median = np.median(area)
    if median == 0:
        raise ValueError("Median total intensity is zero, at least half of the samples are empty.")
    return area / median


def pqn(X, min_samples=10):
    """
    Probabilistic quotient normalization.

    Samples are area normalized first. Then every peak is divided by
    its median across samples and the median of these quotients per
    sample is used as dilution factor. The original values are divided
    by the product of dilution and area factor.

    With a single sample only the area normalization is applied.

    Parameters
    ----------
    X : numpy.ndarray or pandas.DataFrame of shape (n_samples, n_peaks)
        Non-negative peak intensities without missing values.

    min_samples : int, optional
        With fewer samples an InsufficientSamplesWarning is raised
        because the peak medians get unreliable, by default 10.

    Returns
    -------
    PQNResult
        Named tuple with the normalized matrix, the combined normalization
        factor, area and dilution factors and the raised warnings.
        DataFrame input gives DataFrame and Series output with
        the same index and columns.

    Raises
    ------
    ValueError
        If the matrix is empty, has missing or negative values
        or if at least half of the samples have no intensity.

    Example
    -------
    >>> import numpy as np
    >>> from imsalign.pqn import pqn
    >>> X = np.array([[10, 20, 30], [20, 40, 90]])
    >>> result = pqn(X)
    >>> np.round(result.normalized, 3)
    array([[15.75 , 31.5  , 47.25 ],
           [15.75 , 31.5  , 70.875]])
    """
    index = columns = None
    if isinstance(X, pd.DataFrame):
        index, columns = X.index, X.columns

    X = _as_matrix(X)
    n_samples = X.shape[0]
    raised = []

    area_factor = area_factors(X)

    if n_samples == 1:
        msg = "PQN with a single sample, only area normalization is applied."
        raised.append(SingleSampleWarning(msg))
        dilution_factor = np.ones(1)
    else:
        if n_samples < min_samples:
            msg = (
                f"PQN with {n_samples} samples, peak medians are unreliable "
                f"below {min_samples} samples."
            )
            raised.append(InsufficientSamplesWarning(msg))

        # empty samples stay zero, their normalization factor is zero
        X_area = np.divide(
            X,
            area_factor[:, np.newaxis],
            out=np.zeros_like(X),
            where=area_factor[:, np.newaxis] != 0,
        )
        X_area = _shift_to_zero(X_area)

        with np.errstate(divide="ignore", invalid="ignore"):
            ratio = X_area / np.median(X_area, axis=0)
        ratio = np.nan_to_num(ratio, nan=0.0, posinf=0.0, neginf=0.0)
        ratio = _shift_to_zero(ratio)

        dilution_factor = np.median(ratio, axis=1)

    for w in raised:
        warnings.warn(w, stacklevel=2)

    norm_factor = dilution_factor * area_factor
    if (norm_factor == 0).any():
        logger.warning(
            "Normalization factor is zero for %d samples, their values are not finite",
            int(np.sum(norm_factor == 0)),
        )

    with np.errstate(divide="ignore", invalid="ignore"):
        normalized = X / norm_factor[:, np.newaxis]

    if index is not None:
        normalized = pd.DataFrame(normalized, index=index, columns=columns)
        norm_factor = pd.Series(norm_factor, index=index, name="norm_factor")
        area_factor = pd.Series(area_factor, index=index, name="area_factor")
        dilution_factor = pd.Series(dilution_factor, index=index, name="dilution_factor")

    return PQNResult(normalized, norm_factor, area_factor, dilution_factor, tuple(raised))


def drop_unassigned(table, exclude=("NA",)):
    """
    Removes columns of peaks that were not assigned to a cluster.

    Parameters
    ----------
    table : pandas.DataFrame
        Peak table with samples as rows and clusters as columns.

    exclude : sequence, optional
        Column labels to remove if present, by default ("NA",).

    Returns
    -------
    pandas.DataFrame
    """
    drop = [i for i in table.columns if str(i) in {str(j) for j in exclude}]
    return table.drop(columns=drop)


def peak_table_matrix(peaks, sample="SampleID", cluster="Cluster", intensity="Intensity"):
    """
    Pivots a long list of integrated peaks into a samples x clusters matrix.
    Intensities of the same sample and cluster are summed,
    combinations without a peak are missing (NaN).

    Parameters
    ----------
    peaks : pandas.DataFrame
        One row per integrated peak.

    sample, cluster, intensity : str, optional
        Column names.

    Returns
    -------
    pandas.DataFrame
    """
    table = peaks.pivot_table(
        index=sample, columns=cluster, values=intensity, aggfunc="sum"
    )
    table.columns.name = None
    return table


def normalize_peak_table(table, config=None):
    """
    Drops unassigned peaks and applies PQN.

    Parameters
    ----------
    table : pandas.DataFrame
        Imputed peak table, samples as rows and clusters as columns.

    config : imsalign.config.PQNConfig, optional
        Uses the defaults if None, by default None.

    Returns
    -------
    PQNResult

    Example
    -------
    >>> from imsalign.config import load_config
    >>> from imsalign.pqn import normalize_peak_table
    >>> result = normalize_peak_table(table, load_config().pqn)
    >>> result.norm_factor
    """
    if config is None:
        config = PQNConfig()

    table = drop_unassigned(table, config.exclude)
    logger.info("PQN on %d samples and %d peaks", *table.shape)
    return pqn(table, min_samples=config.min_samples)
