"""
Importing the package registers every mapped class, so string relationship
targets ("RefreshToken", "Task", ...) resolve wherever a model is first used.
"""

from taskflow.app.models import refresh_token, task, user  # noqa: F401
