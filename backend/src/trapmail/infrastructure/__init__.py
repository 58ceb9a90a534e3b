"""Infrastructure adapters: filesystem store and ingress shims."""
