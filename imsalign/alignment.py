"""
Segmented landmark based retention time alignment.

Each spectrum gets an affine correction per segment between two
consecutive landmarks. The corrected intensities are interpolated
onto a uniform retention time grid that all samples share.
Segments are fitted independently, corrected times of neighbouring
segments do not have to meet at the boundary.
"""
import logging
from collections import namedtuple

import numpy as np
from scipy.interpolate import interp1d

from imsalign.errors import DegenerateSegment, MissingLandmark, AlignmentError
from imsalign.landmarks import validate, reference_landmarks, sample_landmarks, complete_samples


logger = logging.getLogger(__name__)

SegmentFit = namedtuple("SegmentFit", ["label", "slope", "intercept", "start", "stop"])
AlignmentResult = namedtuple("AlignmentResult", ["spectrum", "segments"])


def fit_segment(t0, t1, r0, r1):
    """
    Solves the affine map that moves the observed times t0 and t1
    onto the reference times r0 and r1. The 2x2 linear system
    slope * t + intercept = r is solved with Cramer's rule.

    Parameters
    ----------
    t0, t1 : float
        Observed retention times of the two control points.

    r0, r1 : float
        Reference retention times of the two control points.

    Returns
    -------
    tuple
        (slope, intercept)

    Raises
    ------
    DegenerateSegment
        If both control points have the same observed time.

    Example
    -------
    >>> from imsalign.alignment import fit_segment
    >>> fit_segment(70, 600, 70, 600)
    (1.0, 0.0)
    """
    # determinant of [[t0, 1], [t1, 1]]
    det = float(t0) - float(t1)
    if det == 0:
        raise DegenerateSegment(f"Control points coincide at {t0} s.")

    slope = (r0 - r1) / det
    intercept = (t0 * r1 - t1 * r0) / det
    return float(slope), float(intercept)


def fit_segments(observed, reference):
    """
    Fits one affine correction per segment.
    The first segment starts at time zero which is fixed.

    Parameters
    ----------
    observed : array-like of shape (n_landmarks,)
        Observed landmark retention times of one sample in landmark order.

    reference : array-like of shape (n_landmarks,)
        Reference landmark retention times in the same order.

    Returns
    -------
    list of tuple
        (slope, intercept) per segment.
    """
    observed = np.concatenate([[0.0], np.asarray(observed, dtype=float)])
    reference = np.concatenate([[0.0], np.asarray(reference, dtype=float)])

    fits = []
    for k in range(1, len(observed)):
        fits.append(fit_segment(observed[k - 1], observed[k], reference[k - 1], reference[k]))
    return fits


def boundary_index(ret_time, landmark_time, match_index=1, decimals=0):
    """
    Finds the row index of a landmark in the retention time vector.

    Both times are rounded and compared for equality. If there are
    multiple matches the one at position match_index is used, the second
    one by default, otherwise the first.

    Parameters
    ----------
    ret_time : numpy.ndarray
        Retention time vector of the sample.

    landmark_time : float
        Observed retention time of the landmark.

    match_index : int, optional
        Position in the list of matches, by default 1.

    decimals : int, optional
        Rounding precision, by default 0.

    Returns
    -------
    int

    Raises
    ------
    MissingLandmark
        If no rounded retention time matches.
    """
    matches = np.flatnonzero(
        np.round(ret_time, decimals) == np.round(landmark_time, decimals)
    )
    if len(matches) == 0:
        raise MissingLandmark(f"No retention time matches landmark at {landmark_time} s.")
    if len(matches) > match_index:
        return int(matches[match_index])
    return int(matches[0])


def corrected_ret_time(ret_time, boundaries, fits):
    """
    Applies the per segment corrections.
    Segment k covers the indices after boundary k-1 up to and
    including boundary k. The first segment starts at index 0.

    Parameters
    ----------
    ret_time : numpy.ndarray
        Original retention time vector.

    boundaries : sequence of int
        Boundary index of every landmark.

    fits : sequence of tuple
        (slope, intercept) per segment.

    Returns
    -------
    numpy.ndarray of shape (boundaries[-1] + 1,)
    """
    corrected = []
    start = 0
    for stop, (slope, intercept) in zip(boundaries, fits):
        if stop < start:
            raise MissingLandmark(
                f"Boundary index {stop} does not follow the previous boundary {start - 1}."
            )
        corrected.append(slope * ret_time[start : stop + 1] + intercept)
        start = stop + 1
    return np.concatenate(corrected)


def reference_grid(last_reference, step):
    """
    Uniform retention time grid from zero to the last reference landmark.

    Parameters
    ----------
    last_reference : float
        Reference position of the last landmark in seconds.

    step : float
        Grid spacing in seconds.

    Returns
    -------
    numpy.ndarray
    """
    n = int(np.floor(last_reference / step + 1e-9)) + 1
    return np.arange(n) * step


def resample(values, corrected, grid):
    """
    Linear interpolation of every drift time column from the corrected
    retention times onto the grid.

    Grid points outside the corrected time range take the
    intensity of the same row in the original matrix.

    Parameters
    ----------
    values : numpy.ndarray of shape (n_ret_time, n_drift_time)
        Original intensity matrix.

    corrected : numpy.ndarray
        Corrected retention times of the first len(corrected) rows.
        Does not have to be sorted.

    grid : numpy.ndarray
        Reference retention time grid.

    Returns
    -------
    numpy.ndarray of shape (len(grid), n_drift_time)
    """
    f = interp1d(
        corrected,
        values[: len(corrected), :],
        axis=0,
        kind="linear",
        bounds_error=False,
        fill_value=np.nan,
        assume_sorted=False,
    )
    resampled = f(grid)

    rows, cols = np.nonzero(np.isnan(resampled))
    if len(rows):
        source_rows = np.minimum(rows, values.shape[0] - 1)
        resampled[rows, cols] = values[source_rows, cols]
        logger.debug("Replaced %d out of range values with original intensities", len(rows))

    return resampled


def locate_landmarks(spectrum, landmarks, config):
    """
    Observed landmark times and their boundary indices for one spectrum.
    Depends only on the spectrum and its own landmark rows, so a
    spectrum can be checked before the reference is known.

    Parameters
    ----------
    spectrum : imsalign.Spectrum
        Its name is used as SampleID.

    landmarks : pandas.DataFrame
        Validated landmark table.

    config : imsalign.config.AlignmentConfig

    Returns
    -------
    tuple
        (observed, boundaries) with the observed retention times
        in landmark order and the boundary index of every landmark.

    Raises
    ------
    MissingLandmark
        If a landmark is absent or its boundary index can not be found.

    DegenerateSegment
        If two consecutive landmarks (or the first landmark and time zero)
        have the same observed time.
    """
    labels = list(config.landmarks)
    observed = sample_landmarks(landmarks, spectrum.name, labels)
    times = observed.to_numpy()

    try:
        previous = 0.0
        for label, time in zip(labels, times):
            if time == previous:
                raise DegenerateSegment(
                    f"Landmark {label} coincides with the previous control point at {time} s.",
                    label=label,
                )
            previous = time

        boundaries = []
        for label, time in zip(labels, times):
            try:
                boundaries.append(
                    boundary_index(spectrum.ret_time, time, config.match_index, config.decimals)
                )
            except MissingLandmark as e:
                e.label = label
                raise

        for label, (start, stop) in zip(labels[1:], zip(boundaries, boundaries[1:])):
            if stop <= start:
                raise MissingLandmark(
                    f"Boundary index {stop} of landmark {label} does not follow {start}.",
                    label=label,
                )
        if boundaries[-1] < 1:
            raise DegenerateSegment("Segments cover less than two retention time points.")
    except AlignmentError as e:
        e.sample = spectrum.name
        raise

    return times, boundaries


def align_spectrum(spectrum, landmarks, reference, config):
    """
    Aligns the retention time axis of one spectrum to the reference landmarks.

    Parameters
    ----------
    spectrum : imsalign.Spectrum
        Spectrum to align. Its name is used as SampleID.

    landmarks : pandas.DataFrame
        Validated landmark table.

    reference : pandas.DataFrame
        Reference landmarks from imsalign.landmarks.reference_landmarks.

    config : imsalign.config.AlignmentConfig

    Returns
    -------
    AlignmentResult
        New aligned spectrum and the fitted segments.
        The input spectrum is not changed.

    Raises
    ------
    MissingLandmark
        If a landmark is absent or its boundary index can not be found.

    DegenerateSegment
        If two consecutive landmarks have the same observed time.
    """
    labels = list(config.landmarks)
    observed, boundaries = locate_landmarks(spectrum, landmarks, config)
    ref_times = reference.loc[labels, "RetentionTime_s"].to_numpy()

    fits = fit_segments(observed, ref_times)
    corrected = corrected_ret_time(spectrum.ret_time, boundaries, fits)

    grid = reference_grid(ref_times[-1], config.step)
    values = resample(spectrum.values, corrected, grid)

    segments = []
    start = 0
    for label, stop, (slope, intercept) in zip(labels, boundaries, fits):
        segments.append(SegmentFit(label, slope, intercept, start, stop))
        start = stop + 1

    aligned = spectrum.replace(ret_time=grid, values=values)
    return AlignmentResult(aligned, segments)


def align_spectra(spectra, landmarks, config):
    """
    Aligns many spectra to the median landmark positions.

    Every spectrum is checked first. The reference is the median over
    the samples with a complete set of landmarks, leaving out every
    spectrum of the batch that can not be aligned. A spectrum that fails
    therefore does not change the results of the others.

    Parameters
    ----------
    spectra : iterable of imsalign.Spectrum

    landmarks : pandas.DataFrame
        Landmark table with all samples.

    config : imsalign.config.AlignmentConfig

    Returns
    -------
    tuple
        (aligned, failed) with a list of aligned spectra and a dict
        mapping sample names to the raised exception.

    Example
    -------
    >>> from imsalign.config import load_config
    >>> from imsalign.alignment import align_spectra
    >>> cfg = load_config()
    >>> aligned, failed = align_spectra(spectra, landmarks, cfg.alignment)
    """
    spectra = list(spectra)
    landmarks = validate(landmarks)

    failed = {}
    for spectrum in spectra:
        try:
            locate_landmarks(spectrum, landmarks, config)
        except AlignmentError as e:
            logger.warning("Alignment of %s failed: %s", spectrum.name, e)
            failed[spectrum.name] = e

    if len(failed) == len(spectra):
        logger.info("Aligned 0 spectra, %d failed", len(failed))
        return [], failed

    excluded = {str(i) for i in failed}
    samples = [i for i in complete_samples(landmarks, config.landmarks) if i not in excluded]
    reference = reference_landmarks(landmarks, config.landmarks, samples)

    aligned = [
        align_spectrum(spectrum, landmarks, reference, config).spectrum
        for spectrum in spectra
        if spectrum.name not in failed
    ]

    logger.info("Aligned %d spectra, %d failed", len(aligned), len(failed))
    return aligned, failed
