"""Root conftest: runs before any test module imports."""

import os

# Rich honours FORCE_COLOR and would inject ANSI codes into CLI output that
# tests parse as JSON or match as plain text.
os.environ.pop("FORCE_COLOR", None)
os.environ["NO_COLOR"] = "1"
