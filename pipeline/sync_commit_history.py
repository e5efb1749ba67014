#!/usr/bin/env python3
import argparse
import os
from datetime import datetime

import rich.console

from commitlib import commit_store
from commitlib import cron_schedule
from commitlib import github_client
from commitlib import run_options
from commitlib import sync_cycle
from commitlib.errors import ConfigError
from commitlib.errors import FetchError
from commitlib.errors import StoreError

GITHUB_TOKEN_ENV_VAR = "GITHUB_PAT"
RICH_CONSOLE = rich.console.Console()


#============================================
def log_step(message: str) -> None:
	"""
	Print one timestamped progress line.
	"""
	now_text = datetime.now().strftime("%H:%M:%S")
	line = f"[sync_commit_history {now_text}] {message}"
	lower = message.lower()
	style = "cyan"
	if ("failed" in lower) or ("error" in lower):
		style = "bold red"
	elif ("rate limit" in lower) or ("using default" in lower) or ("skipping" in lower):
		style = "yellow"
	elif ("wrote " in lower) or ("removing" in lower):
		style = "green"
	RICH_CONSOLE.print(line, style=style, markup=False, highlight=False)


#============================================
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(
		description="Mirror a GitHub repository's commit history into a local SQLite store."
	)
	parser.add_argument(
		"--settings",
		default="settings.yaml",
		help="YAML or JSON settings path (missing file means all defaults).",
	)
	parser.add_argument(
		"--strict-config",
		action="store_true",
		help="Reject a partial repo/owner pair or a non-.sqlite store filename instead of using defaults.",
	)
	return parser.parse_args(argv)


#============================================
def resolve_token(options: run_options.RunOptions) -> str:
	"""
	Read the GitHub token from the environment when the options ask for it.
	"""
	if not options.use_github_token:
		return ""
	return (os.environ.get(GITHUB_TOKEN_ENV_VAR, "") or "").strip()


#============================================
def run_cycle_logged(options: run_options.RunOptions, store, client) -> bool:
	"""
	Run one sync cycle, logging instead of raising cycle-level failures.
	"""
	calls_before = client.api_call_count()
	succeeded = True
	try:
		sync_cycle.run_cycle(options.repo, options.owner, store, client, log_fn=log_step)
	except (FetchError, StoreError) as error:
		log_step(f"Sync cycle failed: {error}")
		log_step("Waiting for the next scheduled trigger.")
		succeeded = False
	cycle_calls = client.api_call_count() - calls_before
	log_step(f"GitHub API usage this cycle: calls={cycle_calls}")
	return succeeded


#============================================
def load_options(args: argparse.Namespace) -> run_options.RunOptions:
	"""
	Load the settings file and validate it into RunOptions.
	"""
	raw_settings, settings_path = run_options.load_settings(args.settings)
	log_step(f"Using settings file: {settings_path}")
	options = run_options.validate_run_options(
		raw_settings,
		strict=args.strict_config,
		log_fn=log_step,
	)
	log_step(
		f"Repository: {options.owner}/{options.repo}; schedule: {options.cron_schedule!r}; "
		+ f"store: {options.kv_path}; clear on startup: {options.clear_kv_on_startup}"
	)
	return options


#============================================
def main(argv: list[str] | None = None) -> None:
	"""
	Validate config, prepare the store, sync once, then sync on schedule.
	"""
	args = parse_args(argv)
	try:
		options = load_options(args)
	except ConfigError as error:
		log_step(str(error))
		log_step("Aborting before any store or network access.")
		raise SystemExit(1) from error

	if options.clear_kv_on_startup:
		log_step("Cleaning commit store files.")
		try:
			commit_store.clear_store_files(options.kv_path, log_fn=log_step)
		except StoreError as error:
			log_step(str(error))
			raise SystemExit(1) from error

	token = resolve_token(options)
	if token:
		log_step(f"Using authenticated GitHub API mode via {GITHUB_TOKEN_ENV_VAR}.")
	else:
		log_step("Using unauthenticated GitHub API mode (lower rate limit).")
	client = github_client.GitHubClient(token, log_fn=log_step)

	try:
		store = commit_store.CommitStore(options.kv_path)
	except StoreError as error:
		log_step(str(error))
		raise SystemExit(1) from error

	guard = sync_cycle.SingleFlightGuard(log_fn=log_step)
	with store:
		guard.run(lambda: run_cycle_logged(options, store, client))
		cron_schedule.run_on_schedule(
			options.cron_schedule,
			lambda: guard.run(lambda: run_cycle_logged(options, store, client)),
			log_fn=log_step,
		)


if __name__ == "__main__":
	main()
