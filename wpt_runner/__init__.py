"""Run web-platform-tests in an embedded DOM environment and reconcile outcomes."""
