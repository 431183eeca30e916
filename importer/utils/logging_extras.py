# ------------------------------------------------------------
# Module: importer/utils/logging_extras.py
# Purpose: Tag log lines of one import job with its job id.
# ------------------------------------------------------------

"""Job-scoped logger adapter.

Ingestion drivers wrap their module logger once per job so every line of
one import carries `job=<id>` and can be grepped together, even when several
jobs write to the same stream.
"""

import logging


class JobLogAdapter(logging.LoggerAdapter):
    """Prefix messages with `job=<id>`; pass through when no id is set."""

    def process(self, msg, kwargs):
        msg, kwargs = super().process(msg, kwargs)
        job_id = self.extra.get("job_id") if self.extra else None
        if job_id:
            msg = f"job={job_id} {msg}"
        return msg, kwargs


def log_adapter(logger: logging.Logger, job_id: str | None) -> JobLogAdapter:
    return JobLogAdapter(logger, {"job_id": job_id})
