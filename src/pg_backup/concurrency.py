"""Concurrency sizing from the host CPU count.

Converts the number of CPUs into a pool size (how many databases are
backed up or restored at once) and a per-job parallelism (the ``-j``
argument handed to ``pg_dump`` / ``pg_restore`` for directory format).

Usage:
    from pg_backup.concurrency import calc_concurrency, plan_concurrency

    plan = calc_concurrency()          # uses os.cpu_count()
    plan = plan_concurrency(20)        # ConcurrencyPlan(cpus=20, pool_size=4, job_parallelism=4)
"""

import os

from pydantic import BaseModel, ConfigDict

# CPUs left for the OS and disk I/O before sizing the pool
RESERVED_CPUS = 4

# pg_dump / pg_restore see little gain past this many -j workers
MAX_JOB_PARALLELISM = 4


class ConcurrencyPlan(BaseModel):
    """Pool size and per-job parallelism, computed once per process."""

    model_config = ConfigDict(frozen=True)

    cpus: int
    pool_size: int
    job_parallelism: int


def plan_concurrency(cpus: int) -> ConcurrencyPlan:
    """Size the worker pool and per-job parallelism for ``cpus`` CPUs.

    Hosts with 2 or fewer CPUs run one job with no internal parallelism;
    3-4 CPUs run one job with ``-j 2``.  Above that, 4 CPUs are held back
    and the rest are split into jobs of at most 4 workers each.

    Both values are floored to 1 only after both are computed.  For 5-7
    CPUs the intermediate parallelism is 0; the pool size quotient is then
    taken as 0 and floored with the rest, giving ``(1, 1)``.

    Args:
        cpus: Number of CPUs on the host.

    Returns:
        Frozen ``ConcurrencyPlan``.

    Example:
        >>> plan_concurrency(9)
        ConcurrencyPlan(cpus=9, pool_size=5, job_parallelism=1)
    """
    if cpus <= 2:
        return ConcurrencyPlan(cpus=cpus, pool_size=1, job_parallelism=1)
    if cpus <= 4:
        return ConcurrencyPlan(cpus=cpus, pool_size=1, job_parallelism=2)

    spare = cpus - RESERVED_CPUS
    job_parallelism = min(MAX_JOB_PARALLELISM, spare // RESERVED_CPUS)
    pool_size = spare // job_parallelism if job_parallelism else 0

    return ConcurrencyPlan(
        cpus=cpus,
        pool_size=max(pool_size, 1),
        job_parallelism=max(job_parallelism, 1),
    )


def calc_concurrency() -> ConcurrencyPlan:
    """Plan concurrency for the CPUs reported by the operating system."""
    return plan_concurrency(os.cpu_count() or 1)
