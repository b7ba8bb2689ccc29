"""
sarif-ai-fixer -- resolve SARIF rule violations and apply AI-generated fixes.

Pipeline: parse SARIF -> match rules -> extract context -> build prompt ->
completion service -> review -> apply fix (commented original kept as audit trail).
"""

__version__ = "0.1.0"
