"""Ingress shims: sendmail-compatible CLI and SMTP capture listener."""
