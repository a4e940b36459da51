"""Base module variables."""

__version__ = "0.1.0"
__packagename__ = "pyTUDA"
__copyright__ = "Copyright 2026, The pyTUDA developers"
__credits__ = ["The pyTUDA developers"]
__description__ = (
    "Temporally constrained clustering of time-resolved decoding models for "
    "neuroimaging data."
)

__requires__ = [
    "dask>=2023.1.0",
    "distributed>=2023.1.0",
    "dask-jobqueue>=0.8.0",
    "numpy>=1.23",
    "pyyaml>=6.0",
    "scikit-learn>=1.2",
    "scipy>=1.10",
]

__tests_require__ = [
    "pytest>=7.0",
    "pytest-cov",
]
