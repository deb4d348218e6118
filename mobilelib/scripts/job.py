"""
Scripts to manage scheduled jobs of mobile services.
"""

from .utils import confirm, DocOptArgs, entrypoint, on_success, show
from ..plumbing import mobile
from ..plumbing.channel import Context
from ..tasks import jobs


@entrypoint
def list_(ctx: Context, service: str):
    """
    List scheduled jobs of a mobile service.

    Usage: {script} SERVICE
    """
    def done(items):
        if not items:
            print("There are no scheduled jobs")
        for job in items or ():
            if job.get("intervalUnit"):
                interval = "{} {}".format(job.get("intervalPeriod"), job["intervalUnit"])
            else:
                interval = "on demand"
            print("{}\t{}\t{}\t{}".format(job.get("name"), job.get("status"), interval,
                                          job.get("lastRun") or "N/A"))

    mobile.list_jobs(ctx, service, on_success(done))


@entrypoint
def create(opts: DocOptArgs, ctx: Context, service: str, job: str):
    """
    Create a scheduled job, initially disabled.

    Usage: {script} [options] SERVICE JOB

    Options:
        --interval=N        job interval [default: 15]
        --unit=UNIT         second, minute, hour, day, month, year, or none for on-demand jobs
                            [default: minute]
        --start-time=TIME   time of the first run, in ISO format (defaults to now)
    """
    def done(result):
        print("Job was created in disabled state, enable it with mobile-job-update")
        show(result.value)

    jobs.create_job(ctx, service, job, opts["--interval"], opts["--unit"], opts["--start-time"],
                    callback=on_success(done))


@entrypoint
def update(opts: DocOptArgs, ctx: Context, service: str, job: str):
    """
    Change the schedule or status of a job.

    Usage: {script} [options] SERVICE JOB

    Options:
        --interval=N        job interval
        --unit=UNIT         second, minute, hour, day, month, year, or none for on-demand jobs
        --start-time=TIME   time of the first run, in ISO format
        --status=STATUS     enabled or disabled
    """
    def done(result):
        if result:
            print("Job updated")
        else:
            print("Job settings already match, no changes made")

    jobs.update_job(ctx, service, job, opts["--interval"], opts["--unit"], opts["--start-time"],
                    opts["--status"], callback=on_success(done))


@entrypoint
def delete(opts: DocOptArgs, ctx: Context, service: str, job: str):
    """
    Delete a scheduled job and its script.

    Usage: {script} [--quiet] SERVICE JOB
    """
    confirm("Delete job {}?".format(job), opts["--quiet"])
    mobile.delete_job(ctx, service, job, on_success(lambda result: print("Deleted job")))
