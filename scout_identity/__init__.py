"""Site identity resolution for Citrix Scout diagnostic bundles."""
