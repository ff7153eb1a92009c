"""External capabilities: degree registry and trusted time-oracle."""
