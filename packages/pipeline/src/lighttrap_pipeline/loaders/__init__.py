"""lighttrap_pipeline.loaders — release table writers."""
