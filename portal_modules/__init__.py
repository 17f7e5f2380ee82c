"""
Portal Modules.

One package per document family.  Each contains:
- Status enums (the nouns' lifecycles)
- Workflows (guarded state machines)
- Configuration schemas where the family has settings

``portal_modules.registry.default_registry()`` assembles every workflow.
"""
