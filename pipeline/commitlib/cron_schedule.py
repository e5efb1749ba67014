import time
from datetime import datetime
from datetime import timezone

from croniter import croniter

from commitlib.errors import SchedulingError


#============================================
def utc_now() -> datetime:
	"""
	Return UTC now as a timezone-aware datetime.
	"""
	return datetime.now(timezone.utc)


#============================================
def parse_cron(cron_expression: str) -> croniter:
	"""
	Parse a cron expression, raising SchedulingError when it is invalid.
	"""
	if not isinstance(cron_expression, str) or not cron_expression.strip():
		raise SchedulingError(f"Cron expression must be a non-empty string: {cron_expression!r}")
	try:
		return croniter(cron_expression.strip(), utc_now())
	except (ValueError, KeyError) as error:
		raise SchedulingError(f"Invalid cron expression {cron_expression!r}: {error}") from error


#============================================
def next_fire_time(cron_expression: str, after: datetime) -> datetime:
	"""
	Return the first fire time strictly after the given instant.
	"""
	if after.tzinfo is None:
		after = after.replace(tzinfo=timezone.utc)
	parse_cron(cron_expression)
	return croniter(cron_expression.strip(), after).get_next(datetime)


#============================================
def run_on_schedule(
	cron_expression: str,
	job,
	log_fn=None,
	now_fn=None,
	sleep_fn=None,
	max_runs: int | None = None,
) -> int:
	"""
	Run job on every cron tick until max_runs ticks have fired.

	The loop is sequential: the next fire time is computed after the
	previous job returns, so ticks that pass while a job runs are dropped.
	With max_runs=None it runs until the process is terminated.

	Args:
		cron_expression: Validated cron expression.
		job: Zero-argument callable run on each tick.
		log_fn: Optional one-line logger.
		now_fn: Clock returning timezone-aware datetimes.
		sleep_fn: Sleep function taking seconds.
		max_runs: Optional cap on ticks, used by tests.

	Returns:
		Number of ticks that fired.
	"""
	now_fn = now_fn or utc_now
	sleep_fn = sleep_fn or time.sleep
	parse_cron(cron_expression)
	run_count = 0
	while (max_runs is None) or (run_count < max_runs):
		now = now_fn()
		fire_time = next_fire_time(cron_expression, now)
		if log_fn is not None:
			log_fn(f"Next sync cycle scheduled at {fire_time.isoformat()}")
		wait_seconds = (fire_time - now).total_seconds()
		if wait_seconds > 0:
			sleep_fn(wait_seconds)
		job()
		run_count += 1
	return run_count
