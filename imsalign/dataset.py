import os
import json
import logging
from glob import glob
from copy import deepcopy

import h5py
import numpy as np

from imsalign.gcims import Spectrum, _parse_time, _write_group
from imsalign.alignment import align_spectra
from imsalign.config import load_config


logger = logging.getLogger(__name__)


class Dataset:
    """
    Dataset class coordinates many GC-IMS spectra
    (instances of imsalign.Spectrum class) with labels, file
    and sample names.

    Contains the methods that require multiple spectra at a time,
    like the landmark alignment. Methods return new datasets and
    leave the original spectra untouched.

    Parameters
    ----------
    data : list
        Lists instances of `imsalign.Spectrum`.

    name : str
        Name of the dataset.

    files : list
        Lists one file name per spectrum. Must be unique.

    samples : list
        Lists sample names. A sample can have multiple files in
        case of repeat determination.

    labels : list or numpy.ndarray
        Classification or regression labels.

    Attributes
    ----------
    preprocessing : list
        Keeps track of applied preprocessing steps.

    failed : dict
        Spectrum names mapped to the exception that stopped their alignment.

    Example
    -------
    >>> import imsalign
    >>> ds = imsalign.Dataset.read_csv("IMS_data")
    >>> print(ds)
    Dataset: IMS_data, 58 Spectra
    """

    def __init__(self, data, name=None, files=None, samples=None, labels=None):
        self.data = list(data)
        self.name = name
        self.files = files if files is not None else [i.name for i in self.data]
        self.samples = samples if samples is not None else [i.name for i in self.data]
        self.labels = labels if labels is not None else [None] * len(self.data)
        self.preprocessing = []
        self.failed = {}

    def __repr__(self):
        return f"Dataset: {self.name}, {len(self)} Spectra"

    def __getitem__(self, key):
        if isinstance(key, int):
            return self.data[key]

        if isinstance(key, slice):
            return self._subset(range(len(self))[key])

        if isinstance(key, list) or isinstance(key, np.ndarray):
            return self._subset(key)

        raise TypeError(f"Invalid index type: {type(key).__name__}")

    def __len__(self):
        return len(self.data)

    def __iter__(self):
        return iter(self.data)

    def _subset(self, indices):
        ds = Dataset(
            [self.data[i] for i in indices],
            self.name,
            [self.files[i] for i in indices],
            [self.samples[i] for i in indices],
            [self.labels[i] for i in indices],
        )
        ds.preprocessing = list(self.preprocessing)
        return ds

    def copy(self):
        """
        Uses deepcopy from the copy module in the standard library.

        Returns
        -------
        Dataset
            deepcopy of self.
        """
        return deepcopy(self)

    @property
    def names(self):
        """Spectrum names, used as SampleID in landmark tables."""
        return [spectrum.name for spectrum in self]

    @classmethod
    def read_csv(cls, path):
        """
        Reads all csv files in the given directory with
        imsalign.Spectrum.read_csv and combines them into a dataset.

        Parameters
        ----------
        path : str
            Absolute or relative directory path.

        Returns
        -------
        Dataset
        """
        paths = sorted(os.path.normpath(i) for i in glob(f"{path}/*.csv"))
        name = os.path.split(os.path.normpath(path))[1]
        data = [Spectrum.read_csv(i) for i in paths]
        files = [os.path.split(i)[1] for i in paths]
        logger.info("Read %d spectra from %s", len(data), path)
        return cls(data, name, files)

    @classmethod
    def read_hdf5(cls, path):
        """
        Reads hdf5 files exported by the Dataset.to_hdf5 method.

        Parameters
        ----------
        path : str
            Absolute or relative file path.

        Returns
        -------
        Dataset

        Example
        -------
        >>> import imsalign
        >>> ds.to_hdf5("aligned")
        >>> ds = imsalign.Dataset.read_hdf5("aligned.hdf5")
        """
        with h5py.File(path, "r") as f:
            labels = [i.decode() for i in f["dataset"]["labels"]]
            missing = np.array(f["dataset"]["missing_labels"], dtype=bool)
            labels = [None if m else label for label, m in zip(labels, missing)]
            samples = [i.decode() for i in f["dataset"]["samples"]]
            files = [i.decode() for i in f["dataset"]["files"]]
            preprocessing = [i.decode() for i in f["dataset"]["preprocessing"]]
            order = [i.decode() for i in f["dataset"]["order"]]

            data = []
            for key in order:
                grp = f["spectra"][key]
                meta_attr = json.loads(grp.attrs["meta_attr"]) if "meta_attr" in grp.attrs else {}
                data.append(
                    Spectrum(
                        str(grp.attrs["name"]),
                        np.array(grp["values"]),
                        np.array(grp["ret_time"]),
                        np.array(grp["drift_time"]),
                        _parse_time(grp.attrs.get("time", "")),
                        meta_attr,
                    )
                )

        name = os.path.split(path)[1].split(".")[0]
        dataset = cls(data, name, files, samples, labels)
        dataset.preprocessing = preprocessing
        return dataset

    def to_hdf5(self, name=None, path=None):
        """
        Exports the dataset as hdf5 file.
        It contains a "spectra" group with one subgroup per spectrum
        and a "dataset" group with labels etc.
        Use imsalign.Dataset.read_hdf5 to read the file and construct a dataset.

        Parameters
        ----------
        name : str, optional
            Name of the hdf5 file. File extension is not needed.
            If not set, uses the dataset name attribute,
            by default None.

        path : str, otional
            Path to save the file. If not set uses the current working
            directory, by default None.
        """
        if name is None:
            name = self.name

        if path is None:
            path = os.getcwd()

        with h5py.File(f"{path}/{name}.hdf5", "w-") as f:
            data = f.create_group("dataset")
            data.create_dataset("labels", data=_encode(self.labels))
            data.create_dataset("samples", data=_encode(self.samples))
            data.create_dataset("files", data=_encode(self.files))
            data.create_dataset("preprocessing", data=_encode(self.preprocessing))
            missing = np.array([i is None for i in self.labels], dtype=bool)
            data.create_dataset("missing_labels", data=missing)
            data.create_dataset("order", data=_encode(self.names))

            spectra = f.create_group("spectra")
            for spectrum in self:
                _write_group(spectra.create_group(spectrum.name), spectrum)

    def align_landmarks(self, landmarks, config=None):
        """
        Segmented retention time alignment based on manually annotated landmarks.
        All spectra are interpolated to the same retention time grid
        between zero and the median position of the last landmark.

        Spectra that can not be aligned, because a landmark is missing
        or two landmarks coincide, are left out of the returned dataset
        and listed in its failed attribute.

        Parameters
        ----------
        landmarks : pandas.DataFrame
            Landmark table with SampleID, Peak, RetentionTime_s
            and DriftTime_ms columns. SampleID must match the spectrum names.

        config : imsalign.config.AlignmentConfig, optional
            Ordered landmark labels and grid step. If None the
            alignment section of the packaged config.yaml is used,
            by default None.

        Returns
        -------
        Dataset
            New dataset with the aligned spectra.

        Example
        -------
        >>> import imsalign
        >>> from imsalign.landmarks import read_landmarks
        >>> ds = imsalign.Dataset.read_csv("IMS_data")
        >>> cfg = imsalign.load_config()
        >>> aligned = ds.align_landmarks(read_landmarks("landmarks.csv"), cfg.alignment)
        >>> aligned.failed
        {}
        """
        if config is None:
            config = load_config().alignment

        aligned, failed = align_spectra(self.data, landmarks, config)
        keep = [i for i, spectrum in enumerate(self.data) if spectrum.name not in failed]

        ds = self._subset(keep)
        ds.data = aligned
        ds.failed = failed
        ds.preprocessing.append(f"align_landmarks({', '.join(config.landmarks)})")
        return ds

    def get_xy(self, flatten=True):
        """
        Returns features (X) and labels (y) as numpy arrays.
        All spectra must have the same shape, which is the
        case after align_landmarks.

        Parameters
        ----------
        flatten : bool, optional
            Flattens 3D datasets to 2D, by default True

        Returns
        -------
        tuple
            (X, y)
        """
        X = np.stack([i.values for i in self.data])
        y = np.array(self.labels)

        if flatten:
            a, b, c = X.shape
            X = X.reshape(a, b * c)

        return (X, y)


def _encode(values):
    """Fixed length byte strings, the string type hdf5 datasets store."""
    return np.array([str(i).encode() for i in values], dtype="S")
