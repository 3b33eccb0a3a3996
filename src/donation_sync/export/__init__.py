"""Submission export pipeline: gate, mapper, sanitizer, submitter, worker, trigger."""
