"""Build version information."""

VERSION = "v0.7.1"
GIT_COMMIT = "NONE"
BUILD_DATE = "UNKNOWN"


def to_string() -> str:
    """Return the version, commit and build date as a JSON object."""
    return f'{{"version": "{VERSION}", "gitCommit": "{GIT_COMMIT}", "buildDate": "{BUILD_DATE}"}}'