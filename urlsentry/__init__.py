"""URL Sentry: submit URLs for spam scoring and track the results."""

__version__ = "0.1.0"
