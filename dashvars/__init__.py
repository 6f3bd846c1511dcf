"""dashvars - dashboard template variables.

Variable kinds and their adapters live in dashvars.variables, the state store
and refresh flows in dashvars.state, and the per-dashboard entry point is
dashvars.session.TemplatingSession.
"""

__version__ = "0.1.0"
