import os
from dataclasses import dataclass

import yaml

from commitlib import cron_schedule
from commitlib.errors import ConfigError
from commitlib.errors import SchedulingError

STORE_EXTENSION = ".sqlite"


#============================================
@dataclass(frozen=True)
class RunOptions:
	repo: str
	owner: str
	cron_schedule: str
	kv_path: str
	clear_kv_on_startup: bool
	use_github_token: bool


DEFAULT_RUN_OPTIONS = RunOptions(
	repo="cs4550hw01",
	owner="nakennedy11",
	cron_schedule="*/5 * * * *",
	kv_path=".commitHistory.sqlite",
	clear_kv_on_startup=True,
	use_github_token=False,
)


#============================================
def get_repo_root() -> str:
	"""
	Return repository root based on this module location.
	"""
	module_dir = os.path.dirname(os.path.abspath(__file__))
	pipeline_dir = os.path.dirname(module_dir)
	return os.path.dirname(pipeline_dir)


#============================================
def resolve_settings_path(path_text: str) -> str:
	"""
	Resolve settings path against cwd first, then repo root.
	"""
	if os.path.isabs(path_text):
		return path_text
	cwd_candidate = os.path.abspath(path_text)
	if os.path.isfile(cwd_candidate):
		return cwd_candidate
	repo_candidate = os.path.join(get_repo_root(), path_text)
	return os.path.abspath(repo_candidate)


#============================================
def load_settings(path_text: str) -> tuple[dict, str]:
	"""
	Load YAML (or JSON) settings dict and return it with resolved path.
	"""
	resolved_path = resolve_settings_path(path_text)
	if not os.path.isfile(resolved_path):
		return {}, resolved_path
	with open(resolved_path, "r", encoding="utf-8") as handle:
		try:
			data = yaml.safe_load(handle.read())
		except yaml.YAMLError as error:
			raise ConfigError([f"Cannot parse settings file {resolved_path}: {error}"]) from error
	if data is None:
		return {}, resolved_path
	if not isinstance(data, dict):
		raise ConfigError([f"Settings file must contain a mapping: {resolved_path}"])
	return data, resolved_path


#============================================
def is_filled_string(value) -> bool:
	return isinstance(value, str) and value.strip() != ""


#============================================
def _log(log_fn, message: str) -> None:
	if log_fn is not None:
		log_fn(message)


#============================================
def validate_repo_owner(raw: dict, defaults: RunOptions, strict: bool, errors: list, log_fn=None) -> dict:
	"""
	Accept repo and owner only as a pair; never mix custom and default halves.
	"""
	repo_value = raw.get("repo")
	owner_value = raw.get("owner")
	repo_ok = is_filled_string(repo_value)
	owner_ok = is_filled_string(owner_value)
	if repo_ok and owner_ok:
		return {"repo": repo_value.strip(), "owner": owner_value.strip()}
	if repo_ok or owner_ok:
		message = (
			"repo and owner must both be set; "
			+ f"got repo={repo_value!r}, owner={owner_value!r}"
		)
		if strict:
			errors.append(message)
		else:
			_log(
				log_fn,
				f"{message}. Using default {defaults.owner}/{defaults.repo}.",
			)
	return {"repo": defaults.repo, "owner": defaults.owner}


#============================================
def validate_cron_schedule(raw: dict, defaults: RunOptions, strict: bool, errors: list, log_fn=None) -> dict:
	"""
	Keep a parsable cron expression, otherwise log and use the default.
	"""
	value = raw.get("cronSchedule")
	if value is None or value == "":
		return {"cron_schedule": defaults.cron_schedule}
	try:
		cron_schedule.parse_cron(value)
	except SchedulingError as error:
		_log(log_fn, f"Error parsing cron expression, using default {defaults.cron_schedule!r}: {error}")
		return {"cron_schedule": defaults.cron_schedule}
	return {"cron_schedule": value.strip()}


#============================================
def validate_kv_path(raw: dict, defaults: RunOptions, strict: bool, errors: list, log_fn=None) -> dict:
	"""
	Keep a store filename ending in .sqlite; kvPath wins over kvFilename.
	"""
	value = raw.get("kvPath")
	if value is None or value == "":
		value = raw.get("kvFilename")
	if value is None or value == "":
		return {"kv_path": defaults.kv_path}
	if not is_filled_string(value):
		message = f"Store filename must be a non-empty string: {value!r}"
	elif os.path.splitext(value.strip())[1] != STORE_EXTENSION:
		message = f"Incorrect file extension for store filename {value!r}, expected {STORE_EXTENSION}"
	else:
		return {"kv_path": value.strip()}
	if strict:
		errors.append(message)
	else:
		_log(log_fn, f"{message}. Using default {defaults.kv_path!r}.")
	return {"kv_path": defaults.kv_path}


#============================================
def _validate_bool(raw: dict, key: str, field_name: str, default_value: bool, errors: list) -> dict:
	if key not in raw:
		return {field_name: default_value}
	value = raw[key]
	if not isinstance(value, bool):
		errors.append(f"{key} must be true or false, got {value!r}")
		return {field_name: default_value}
	return {field_name: value}


#============================================
def validate_clear_kv_on_startup(raw: dict, defaults: RunOptions, strict: bool, errors: list, log_fn=None) -> dict:
	return _validate_bool(raw, "clearKvOnStartup", "clear_kv_on_startup", defaults.clear_kv_on_startup, errors)


#============================================
def validate_use_github_token(raw: dict, defaults: RunOptions, strict: bool, errors: list, log_fn=None) -> dict:
	return _validate_bool(raw, "useGithubToken", "use_github_token", defaults.use_github_token, errors)


FIELD_VALIDATORS = (
	validate_repo_owner,
	validate_cron_schedule,
	validate_kv_path,
	validate_clear_kv_on_startup,
	validate_use_github_token,
)


#============================================
def validate_run_options(
	raw: dict | None,
	defaults: RunOptions = DEFAULT_RUN_OPTIONS,
	strict: bool = False,
	log_fn=None,
) -> RunOptions:
	"""Build validated RunOptions from raw config values.

	Each field validator reads the raw mapping and contributes its fields,
	falling back to defaults where the value is unusable. Hard failures are
	collected across all fields and raised together.

	Args:
		raw: Loosely typed mapping loaded from the settings file.
		defaults: Fallback values for every field.
		strict: Treat a partial repo/owner pair and a wrong store
			extension as errors instead of falling back.
		log_fn: Optional logger for non-fatal fallbacks.

	Returns:
		Fully populated RunOptions.

	Raises:
		ConfigError: One or more fields are invalid.
	"""
	if raw is None:
		raw = {}
	if not isinstance(raw, dict):
		raise ConfigError([f"Config must be a mapping, got {type(raw).__name__}"])
	errors: list[str] = []
	fields: dict = {}
	for validator in FIELD_VALIDATORS:
		fields.update(validator(raw, defaults, strict, errors, log_fn=log_fn))
	if errors:
		raise ConfigError(errors)
	return RunOptions(**fields)
