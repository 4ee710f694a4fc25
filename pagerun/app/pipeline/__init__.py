"""
Pipeline core: mode dispatch, consistency guard, computed artifacts,
result assembly, and the orchestrator that sequences them.
"""
