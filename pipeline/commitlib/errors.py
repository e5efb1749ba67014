"""Error types raised by the commit history sync pipeline."""


#============================================
class SyncError(RuntimeError):
	"""
	Base class for commit sync failures.
	"""


#============================================
class ConfigError(SyncError):
	"""
	Raised when run options are invalid or only partially specified.
	"""

	def __init__(self, errors: list[str]):
		self.errors = list(errors)
		super().__init__("Invalid configuration: " + "; ".join(self.errors))


#============================================
class FetchError(SyncError):
	"""
	Raised when listing commits from GitHub fails mid-pagination.
	"""


#============================================
class RateLimitError(FetchError):
	"""
	Raised when GitHub API rate limits block further requests.
	"""


#============================================
class StoreError(SyncError):
	"""
	Raised when the commit store cannot be opened, read, written or purged.
	"""


#============================================
class SchedulingError(SyncError):
	"""
	Raised when a cron expression cannot be parsed.
	"""
