"""Value types for probes, outcomes and reports."""
