"""Exercise tracker: register users and log their exercises over HTTP."""
