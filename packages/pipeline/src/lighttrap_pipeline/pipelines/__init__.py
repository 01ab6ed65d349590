"""
lighttrap_pipeline.pipelines — End-to-end pipeline orchestrators.

    from lighttrap_pipeline.pipelines import release

    results = await release.run(config=load_release_config("config/release.toml"))
"""
