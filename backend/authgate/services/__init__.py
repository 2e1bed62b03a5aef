"""Service layer.

Subpackages are imported directly (``authgate.services.tokens.service``
and so on); nothing is re-exported here so the models and infrastructure
can import the shared ports without pulling in every service.
"""
