"""
lmiadata_pipeline.pipelines — End-to-end orchestration.

    from lmiadata_pipeline.pipelines import lmia

    result = await lmia.run()
"""
