"""
Request handling domain: the pipeline and the stages it runs.
"""
