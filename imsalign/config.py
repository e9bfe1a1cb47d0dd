"""
Settings for landmark alignment and PQN.

The defaults live in the `config.yaml` file next to this module.
Use `load_config` to read them or a custom YAML file with the same layout.
"""
from pathlib import Path

import yaml


DEFAULT_CONFIG = Path(__file__).resolve().parent / "config.yaml"


class AlignmentConfig:
    """
    Parameters of the segmented landmark alignment.

    Parameters
    ----------
    landmarks : sequence of str
        Landmark labels ordered from earliest to latest retention time.
        The order defines the segment boundaries.

    step : float, optional
        Step size of the shared reference time grid in seconds,
        by default 0.1.

    match_index : int, optional
        Which of the matching indices (after rounding) marks a segment
        boundary. 1 selects the second match and falls back to the first
        one if there is only a single match, by default 1.

    decimals : int, optional
        Number of decimals used when rounding retention times to
        search the boundary index, by default 0.

    Example
    -------
    >>> from imsalign.config import AlignmentConfig
    >>> cfg = AlignmentConfig(["Inj", "1", "2"], step=0.5)
    >>> cfg.n_segments
    3
    """

    def __init__(self, landmarks, step=0.1, match_index=1, decimals=0):
        landmarks = tuple(str(i) for i in landmarks)
        if not landmarks:
            raise ValueError("At least one landmark label is required.")
        if len(set(landmarks)) != len(landmarks):
            raise ValueError(f"Landmark labels must be unique: {landmarks}")
        if step <= 0:
            raise ValueError(f"Step size must be positive, got {step}.")
        if match_index < 0:
            raise ValueError(f"match_index must be >= 0, got {match_index}.")

        self.landmarks = landmarks
        self.step = float(step)
        self.match_index = int(match_index)
        self.decimals = int(decimals)

    def __repr__(self):
        return (
            f"AlignmentConfig(landmarks={list(self.landmarks)}, step={self.step}, "
            f"match_index={self.match_index}, decimals={self.decimals})"
        )

    @property
    def n_segments(self):
        return len(self.landmarks)


class PQNConfig:
    """
    Parameters of the probabilistic quotient normalization.

    Parameters
    ----------
    min_samples : int, optional
        Below this number of samples a warning is raised,
        by default 10.

    exclude : sequence of str, optional
        Peak table columns removed before normalization,
        by default ("NA",) for peaks that were not assigned to a cluster.
    """

    def __init__(self, min_samples=10, exclude=("NA",)):
        if min_samples < 1:
            raise ValueError(f"min_samples must be >= 1, got {min_samples}.")
        self.min_samples = int(min_samples)
        self.exclude = tuple(exclude)

    def __repr__(self):
        return f"PQNConfig(min_samples={self.min_samples}, exclude={list(self.exclude)})"


class Config:
    """Bundles alignment and normalization settings."""

    def __init__(self, alignment, pqn=None):
        self.alignment = alignment
        self.pqn = pqn if pqn is not None else PQNConfig()

    def __repr__(self):
        return f"Config({self.alignment!r}, {self.pqn!r})"

    @classmethod
    def from_dict(cls, config):
        """
        Builds the settings from a nested mapping with
        "alignment" and "pqn" sections.

        Raises
        ------
        ValueError
            If a section or key is unknown or the alignment section is missing.
        """
        unknown = set(config) - {"alignment", "pqn"}
        if unknown:
            raise ValueError(f"Unknown config sections: {sorted(unknown)}")
        if "alignment" not in config:
            raise ValueError("Config requires an 'alignment' section.")

        try:
            alignment = AlignmentConfig(**config["alignment"])
            pqn = PQNConfig(**(config.get("pqn") or {}))
        except TypeError as e:
            raise ValueError(f"Invalid config entry: {e}") from e

        return cls(alignment, pqn)


def load_config(path=None):
    """
    Loads settings from a YAML file.

    Parameters
    ----------
    path : str or pathlib.Path, optional
        Path to the YAML file. If None the packaged defaults are used,
        by default None.

    Returns
    -------
    Config

    Raises
    ------
    FileNotFoundError
        If the file does not exist.

    Example
    -------
    >>> from imsalign.config import load_config
    >>> cfg = load_config()
    >>> cfg.alignment.landmarks
    ('Inj', '1', '2', '3')
    """
    path = DEFAULT_CONFIG if path is None else Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found at: {path}")

    with open(path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    return Config.from_dict(config)
