import os
import json
from copy import deepcopy
from datetime import datetime

import h5py
import numpy as np
import pandas as pd


class Spectrum:
    """
    Represents one GC-IMS spectrum with the data matrix,
    retention and drift time coordinates.
    The sample name is used as identifier to look up landmarks.

    Methods never change the instance inplace. Transformations like the
    landmark alignment return a new Spectrum, use the replace method
    to do the same.

    Parameters
    ----------
    name : str
        Sample name as a unique identifier.
        Reader methods set this attribute to the file name without extension.

    values : numpy.ndarray of shape (n_ret_time, n_drift_time)
        Intensity matrix.

    ret_time : numpy.ndarray of shape (n_ret_time,)
        Retention time coordinate in seconds.

    drift_time : numpy.ndarray of shape (n_drift_time,)
        Drift time coordinate.

    time : datetime object, optional
        Timestamp when the spectrum was recorded.

    meta_attr : dict, optional
        Additional instrument meta attributes.

    Example
    -------
    >>> import imsalign
    >>> sample = imsalign.Spectrum.read_csv("sample.csv")
    >>> print(sample)
    GC-IMS Spectrum: sample
    """

    def __init__(self, name, values, ret_time, drift_time, time=None, meta_attr=None):
        values = np.asarray(values, dtype=float)
        ret_time = np.asarray(ret_time, dtype=float)
        drift_time = np.asarray(drift_time, dtype=float)

        if values.shape != (len(ret_time), len(drift_time)):
            raise ValueError(
                f"Spectrum {name}: values of shape {values.shape} do not match "
                f"retention time ({len(ret_time)}) and drift time ({len(drift_time)})."
            )

        self.name = name
        self.values = values
        self.ret_time = ret_time
        self.drift_time = drift_time
        self.time = time
        self.meta_attr = meta_attr if meta_attr is not None else {}

    def __repr__(self):
        return f"GC-IMS Spectrum: {self.name}"

    @property
    def shape(self):
        """
        Shape property of the data matrix.
        Equivalent to `imsalign.Spectrum.values.shape`.
        """
        return self.values.shape

    def copy(self):
        """
        Uses deepcopy from the copy module in the standard library.

        Returns
        -------
        Spectrum
            deepcopy of self.
        """
        return deepcopy(self)

    def replace(self, **kwargs):
        """
        Returns a new spectrum with the given attributes replaced.
        Arrays are copied so the new spectrum never shares memory
        with the old one.

        Parameters
        ----------
        **kwargs
            Any of name, values, ret_time, drift_time, time and meta_attr.

        Returns
        -------
        Spectrum

        Example
        -------
        >>> import numpy as np
        >>> import imsalign
        >>> sample = imsalign.Spectrum("a", np.ones((3, 2)), [0, 1, 2], [0, 1])
        >>> shifted = sample.replace(ret_time=[1, 2, 3])
        >>> sample.ret_time
        array([0., 1., 2.])
        """
        fields = ("name", "values", "ret_time", "drift_time", "time", "meta_attr")
        unknown = set(kwargs) - set(fields)
        if unknown:
            raise TypeError(f"Unknown Spectrum attributes: {sorted(unknown)}")

        attrs = {key: getattr(self, key) for key in fields}
        attrs.update(kwargs)
        for key in ("values", "ret_time", "drift_time"):
            attrs[key] = np.array(attrs[key], dtype=float, copy=True)
        attrs["meta_attr"] = deepcopy(attrs["meta_attr"])
        return Spectrum(**attrs)

    @classmethod
    def read_csv(cls, path):
        """
        Reads generic csv files. The first row must be
        the drift time values and the first column must be
        the retention time values. Values inbetween are the
        intensity matrix.
        Uses the time when the file was created as timestamp.

        Parameters
        ----------
        path : str
            Absolute or relative file path.

        Returns
        -------
        Spectrum

        Example
        -------
        >>> import imsalign
        >>> sample = imsalign.Spectrum.read_csv("sample.csv")
        >>> print(sample)
        GC-IMS Spectrum: sample
        """
        name = os.path.split(path)[1]
        name = name.split(".")[0]
        df = pd.read_csv(path, index_col=[0])
        values = df.values
        ret_time = np.array(df.index, dtype=float)
        drift_time = df.columns.to_numpy().astype(float)
        timestamp = datetime.fromtimestamp(os.path.getctime(path))
        return cls(name, values, ret_time, drift_time, timestamp)

    def to_csv(self, path=None):
        """
        Exports the spectrum in the layout read_csv expects.

        Parameters
        ----------
        path : str, optional
            Directory to export the file to,
            by default the current working directory.
        """
        if path is None:
            path = os.getcwd()

        df = pd.DataFrame(self.values, index=self.ret_time, columns=self.drift_time)
        df.to_csv(f"{path}/{self.name}.csv")

    @classmethod
    def read_hdf5(cls, path):
        """
        Reads hdf5 files exported by the to_hdf5 method.
        Convenient way to store aligned spectra.

        Parameters
        ----------
        path : str
            Absolute or relative file path.

        Returns
        -------
        Spectrum

        Example
        -------
        >>> import imsalign
        >>> sample = imsalign.Spectrum.read_csv("sample.csv")
        >>> sample.to_hdf5()
        >>> sample = imsalign.Spectrum.read_hdf5("sample.hdf5")
        """
        with h5py.File(path, "r") as f:
            values = np.array(f["values"])
            ret_time = np.array(f["ret_time"])
            drift_time = np.array(f["drift_time"])
            name = str(f.attrs["name"])
            time = _parse_time(f.attrs.get("time", ""))
            meta_attr = json.loads(f.attrs["meta_attr"]) if "meta_attr" in f.attrs else {}

        return cls(name, values, ret_time, drift_time, time, meta_attr)

    def to_hdf5(self, path=None):
        """
        Exports spectrum as hdf5 file.

        Parameters
        ----------
        path : str, optional
            Directory to export files to,
            by default the current working directory.
        """
        if path is None:
            path = os.getcwd()

        with h5py.File(f"{path}/{self.name}.hdf5", "w-") as f:
            _write_group(f, self)


def _parse_time(value):
    if not value:
        return None
    return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S")


def _write_group(group, spectrum):
    """Writes datasets and attributes of one spectrum into a hdf5 group or file."""
    group.create_dataset("values", data=spectrum.values)
    group.create_dataset("ret_time", data=spectrum.ret_time)
    group.create_dataset("drift_time", data=spectrum.drift_time)
    group.attrs["name"] = spectrum.name
    if spectrum.time is not None:
        group.attrs["time"] = datetime.strftime(spectrum.time, "%Y-%m-%dT%H:%M:%S")
    group.attrs["meta_attr"] = json.dumps(spectrum.meta_attr)
