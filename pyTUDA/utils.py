"""Utils of pyTUDA."""

import logging
from contextlib import contextmanager
from os import cpu_count

import yaml
from dask import config
from dask.distributed import Client
from dask_jobqueue import PBSCluster, SGECluster, SLURMCluster

LGR = logging.getLogger("GENERAL")
RefLGR = logging.getLogger("REFERENCES")

_JOBQUEUE_WARNING = (
    "dask jobqueue configuration wasn't detected, "
    "if you are running on a cluster please write a jobqueue YAML file "
    "with a 'jobqueue' entry naming 'sge', 'pbs' or 'slurm' and pass it "
    "to pyTUDA; the local scheduler will be used."
)


def setup_loggers(logname=None, refname=None, quiet=False, debug=False):
    """Set up loggers.

    Parameters
    ----------
    logname : str, optional
        Name of the log file, by default None
    refname : str, optional
        Name of the reference file, by default None
    quiet : bool, optional
        Whether the logger should run in quiet mode, by default False
    debug : bool, optional
        Whether the logger should run in debug mode, by default False
    """
    log_formatter = logging.Formatter(
        "%(asctime)s\t%(module)s.%(funcName)-12s\t%(levelname)-8s\t%(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    stream_formatter = logging.Formatter(
        "%(levelname)-8s %(module)s:%(funcName)s:%(lineno)d %(message)s"
    )
    if logname:
        log_handler = logging.FileHandler(logname)
        log_handler.setFormatter(log_formatter)
        LGR.addHandler(log_handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(stream_formatter)
    LGR.addHandler(stream_handler)

    if quiet:
        LGR.setLevel(logging.WARNING)
    elif debug:
        LGR.setLevel(logging.DEBUG)
    else:
        LGR.setLevel(logging.INFO)

    # Loggers for references
    text_formatter = logging.Formatter("%(message)s")

    if refname:
        ref_handler = logging.FileHandler(refname)
        ref_handler.setFormatter(text_formatter)
        RefLGR.setLevel(logging.INFO)
        RefLGR.addHandler(ref_handler)
        RefLGR.propagate = False


def teardown_loggers():
    """Remove logger handlers."""
    for local_logger in (RefLGR, LGR):
        for handler in local_logger.handlers[:]:
            handler.close()
            local_logger.removeHandler(handler)


def get_dask_scheduler_name(n_jobs):
    """Get the name of the dask scheduler used for data-parallel loops.

    Parameters
    ----------
    n_jobs : int
        Number of parallel jobs requested by the estimator.

    Returns
    -------
    scheduler : str
        ``"synchronous"`` for a single job, ``"threads"`` otherwise.
    """
    if n_jobs is None or n_jobs == 1:
        return "synchronous"
    return "threads"


def get_num_workers(n_jobs):
    """Translate ``n_jobs`` into a dask ``num_workers`` value.

    Negative values follow the joblib convention (-1 means all processors).
    """
    if n_jobs is None or n_jobs == 1:
        return 1
    if n_jobs < 0:
        return max((cpu_count() or 1) + 1 + n_jobs, 1)
    return n_jobs


def dask_scheduler(jobs, jobqueue=None):
    """
    Check if the user has a dask_jobqueue configuration file.

    If so, return the appropriate scheduler according to the file parameters.

    Parameters
    ----------
    jobs : int
        Number of jobs.
    jobqueue : str, optional
        Path to the jobqueue YAML file, by default None

    Returns
    -------
    client : dask.distributed.Client
        Dask client.
    cluster : dask.distributed.Cluster
        Dask cluster.
    """
    if jobqueue is None:
        data = None
    else:
        LGR.info(f"Using jobqueue configuration file: {jobqueue}")
        with open(jobqueue) as stream:
            data = yaml.load(stream, Loader=yaml.FullLoader)

    if data is None:
        LGR.warning(_JOBQUEUE_WARNING)
        cluster = None
    else:
        cluster = initiate_cluster(data, jobs)
    client = None if cluster is None else Client(cluster)
    return client, cluster


def initiate_cluster(data, jobs):
    """
    Initiate a dask cluster.

    Parameters
    ----------
    data : dict
        Dictionary with the jobqueue parameters.
    jobs : int
        Number of jobs.

    Returns
    -------
    result : dask.distributed.Cluster or None
        Dask cluster, or None if the jobqueue entry is not recognised.
    """
    config.set(distributed__comm__timeouts__tcp="90s")
    config.set(distributed__comm__timeouts__connect="90s")
    config.set({"distributed.scheduler.allowed-failures": 50})
    jobqueue = str(data.get("jobqueue", "")).lower()
    if "sge" in jobqueue:
        result = SGECluster()
        result.scale(jobs)
    elif "pbs" in jobqueue:
        result = PBSCluster()
        result.scale(jobs)
    elif "slurm" in jobqueue:
        result = SLURMCluster()
        result.scale(jobs)
    else:
        LGR.warning(_JOBQUEUE_WARNING)
        result = None
    return result


@contextmanager
def dask_client(jobs, jobqueue=None):
    """Open a dask client on a jobqueue cluster for the duration of a fit.

    Parameters
    ----------
    jobs : int
        Number of jobs requested from the cluster.
    jobqueue : str, optional
        Path to the jobqueue YAML file. If None, no client is started and the
        local dask schedulers are used.

    Yields
    ------
    client : dask.distributed.Client or None
        Client of the cluster, or None if no cluster was started.
    """
    if jobqueue is None:
        yield None
        return

    client, cluster = dask_scheduler(jobs, jobqueue)
    try:
        yield client
    finally:
        if client is not None:
            client.close()
            cluster.close()
