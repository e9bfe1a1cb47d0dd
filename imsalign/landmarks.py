"""
Landmark table handling.

A landmark table has one row per sample and landmark with the columns
SampleID, Peak, RetentionTime_s and DriftTime_ms.
"""
import logging

import pandas as pd

from imsalign.errors import MissingLandmark


logger = logging.getLogger(__name__)

COLUMNS = ["SampleID", "Peak", "RetentionTime_s", "DriftTime_ms"]


def validate(landmarks):
    """
    Checks the columns and the one row per (SampleID, Peak) rule.
    Sample ids and landmark labels are converted to strings
    so numeric labels read from csv match the configured ones.

    Parameters
    ----------
    landmarks : pandas.DataFrame
        Landmark table.

    Returns
    -------
    pandas.DataFrame
        Validated copy of the table.

    Raises
    ------
    ValueError
        If a column is missing or a landmark is annotated twice for a sample.
    """
    missing = [i for i in COLUMNS if i not in landmarks.columns]
    if missing:
        raise ValueError(f"Landmark table is missing columns: {missing}")

    df = landmarks[COLUMNS].copy()
    df["SampleID"] = df["SampleID"].astype(str)
    df["Peak"] = df["Peak"].astype(str)
    df["RetentionTime_s"] = df["RetentionTime_s"].astype(float)
    df["DriftTime_ms"] = df["DriftTime_ms"].astype(float)

    duplicated = df.duplicated(["SampleID", "Peak"], keep=False)
    if duplicated.any():
        pairs = df.loc[duplicated, ["SampleID", "Peak"]].drop_duplicates()
        pairs = [tuple(i) for i in pairs.itertuples(index=False)]
        raise ValueError(f"Landmarks annotated more than once: {pairs}")

    return df


def read_landmarks(path, **kwargs):
    """
    Reads a landmark table from a csv file.

    Parameters
    ----------
    path : str
        Absolute or relative file path.

    **kwargs
        Passed on to pandas.read_csv.

    Returns
    -------
    pandas.DataFrame
        Validated landmark table.

    Example
    -------
    >>> from imsalign.landmarks import read_landmarks
    >>> landmarks = read_landmarks("landmarks.csv")
    """
    return validate(pd.read_csv(path, dtype={"SampleID": str, "Peak": str}, **kwargs))


def reference_landmarks(landmarks, labels, samples=None):
    """
    Median position of every landmark across all samples.
    Used as the reference the samples get aligned to.

    Parameters
    ----------
    landmarks : pandas.DataFrame
        Landmark table.

    labels : sequence of str
        Ordered landmark labels.

    samples : sequence of str, optional
        Only these sample ids contribute to the medians.
        If None all samples in the table are used, by default None.

    Returns
    -------
    pandas.DataFrame
        Indexed by label in the given order with the median
        RetentionTime_s and DriftTime_ms columns.

    Raises
    ------
    MissingLandmark
        If a label is not annotated in any sample.
    """
    df = validate(landmarks)
    labels = [str(i) for i in labels]
    df = df[df["Peak"].isin(labels)]
    if samples is not None:
        df = df[df["SampleID"].isin([str(i) for i in samples])]

    reference = df.groupby("Peak")[["RetentionTime_s", "DriftTime_ms"]].median()
    absent = [i for i in labels if i not in reference.index]
    if absent:
        raise MissingLandmark(f"Landmarks not annotated in any sample: {absent}", label=absent[0])

    reference = reference.loc[labels]
    logger.debug("Reference landmarks from %d samples: %s",
                 df["SampleID"].nunique(), reference["RetentionTime_s"].to_dict())
    return reference


def sample_landmarks(landmarks, sample_id, labels):
    """
    Observed retention time of each landmark for one sample.

    Parameters
    ----------
    landmarks : pandas.DataFrame
        Validated landmark table.

    sample_id : str
        Sample identifier.

    labels : sequence of str
        Ordered landmark labels.

    Returns
    -------
    pandas.Series
        Retention times indexed by label in the given order.

    Raises
    ------
    MissingLandmark
        If any of the labels is missing for the sample.
    """
    sample_id = str(sample_id)
    rows = landmarks[landmarks["SampleID"] == sample_id]
    observed = rows.set_index("Peak")["RetentionTime_s"]

    for label in labels:
        if label not in observed.index:
            raise MissingLandmark(
                f"Landmark {label} is missing for sample {sample_id}.",
                sample=sample_id,
                label=label,
            )

    return observed.loc[list(labels)]


def complete_samples(landmarks, labels):
    """
    Sample ids that have a row for every one of the labels.

    Parameters
    ----------
    landmarks : pandas.DataFrame
        Validated landmark table.

    labels : sequence of str
        Ordered landmark labels.

    Returns
    -------
    list of str
        In order of first appearance in the table.
    """
    labels = set(labels)
    df = landmarks[landmarks["Peak"].isin(labels)]
    counts = df.groupby("SampleID", sort=False)["Peak"].nunique()
    return [i for i, n in counts.items() if n == len(labels)]
