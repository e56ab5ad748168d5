"""Services: submission gate, content classifier, messaging gateways."""
