"""lighttrap_pipeline.transforms — enrichment, QC, redaction and visit linkage."""
